"""
Errors
======
Exception hierarchy for the build server.

Only conditions that abort an operation are exceptions. Checkout and step
failures are recorded as values on results and in the BuildRecord.

    AutomatError
    ├── ConfigurationError     project or step definition rejected
    ├── InfrastructureError    build root cannot be created
    ├── PipelineFault          unexpected fault while the pipeline ran
    ├── RecordStateError       illegal BuildRecord mutation
    ├── ProjectNotFoundError   unknown project name
    └── VCSError               a git subprocess failed
"""
from typing import Optional


class AutomatError(Exception):
    """Base class for all build server errors."""


class ConfigurationError(AutomatError, ValueError):
    """A project definition is invalid and cannot be built."""


class InfrastructureError(AutomatError):
    """The build environment itself is unusable (e.g. build root creation failed)."""


class PipelineFault(AutomatError):
    """An unexpected exception escaped a checkout or step while a build ran."""


class RecordStateError(AutomatError):
    """A BuildRecord was mutated after finalization or a unit transitioned twice."""


class ProjectNotFoundError(AutomatError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Project not found: {self.name}"


class VCSError(AutomatError):
    """
    A version-control operation failed.

    Parameters
    ----------
    operation : str
        Short operation name ("clone", "fetch", "clean", "checkout", "resolve").
    path : str
        Working copy (or parent directory for clone) the command ran in.
    detail : str
        Captured stderr or exception text.
    """

    def __init__(self, operation: str, path: str, detail: Optional[str] = "") -> None:
        self.operation = operation
        self.path = path
        self.detail = (detail or "").strip()
        message = f"git {operation} failed in {path}"
        if self.detail:
            message = f"{message}: {self.detail}"
        super().__init__(message)
