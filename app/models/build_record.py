"""
Build Record Model
==================
Pydantic models for the structured, timestamped outcome of one pipeline run.

Lifecycle:
    1. ``BuildRecord.from_project`` — every component and step is NOT_RUN.
       The components key set and the steps length match the project and
       never change afterwards.
    2. The pipeline calls ``set_revision`` once per component and
       ``set_status`` once per step as each unit completes.
    3. ``finalize`` stamps the fingerprint and total duration; the record is
       read-only from then on and ownership passes to the caller.

Status transitions:
    NOT_RUN → OK | FAILED | SKIPPED, exactly once per unit. Re-applying the
    identical outcome is a no-op; any other second transition, or any
    mutation after finalize, raises RecordStateError.

Serialized shape (durations as ISO 8601, e.g. "PT2.5S"):
    {hash, duration, name, started_at, status,
     components: {name: {duration, status, name, url, revision, requested, error}},
     steps: [{duration, status, directory, command, description, exit_code,
             error, log_excerpt}]}
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr, computed_field

from app.core.errors import RecordStateError
from app.models.project import Project

Duration = Union[timedelta, float, int]


class BuildStatus(str, Enum):
    NOT_RUN = "NOT_RUN"
    OK = "OK"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


def _as_timedelta(duration: Duration) -> timedelta:
    if isinstance(duration, timedelta):
        return duration
    return timedelta(seconds=float(duration))


class CheckoutRecord(BaseModel):
    duration: timedelta = timedelta(0)
    status: BuildStatus = BuildStatus.NOT_RUN
    name: str
    url: str
    revision: str = ""          # resolved commit id, or requested ref on failure
    requested: str = ""         # ref as declared in the project
    error: Optional[str] = None


class StepRecord(BaseModel):
    duration: timedelta = timedelta(0)
    status: BuildStatus = BuildStatus.NOT_RUN
    directory: str
    command: List[str]
    description: str = ""
    exit_code: Optional[int] = None
    error: Optional[str] = None
    log_excerpt: Optional[str] = None   # only when output is captured


class BuildRecord(BaseModel):
    hash: str = ""
    duration: timedelta = timedelta(0)
    name: str
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    components: Dict[str, CheckoutRecord] = Field(default_factory=dict)
    steps: List[StepRecord] = Field(default_factory=list)

    _finalized: bool = PrivateAttr(default=False)

    @classmethod
    def from_project(cls, project: Project) -> "BuildRecord":
        """Snapshot the project shape; directory and command are copied now."""
        components = {
            key: CheckoutRecord(
                name=component.name or key,
                url=component.url,
                requested=component.revision,
            )
            for key, component in project.components.items()
        }
        steps = [
            StepRecord(
                directory=step.directory,
                command=list(step.command),
                description=step.description,
            )
            for step in project.steps
        ]
        return cls(name=project.name, components=components, steps=steps)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------
    def _ensure_open(self) -> None:
        if self._finalized:
            raise RecordStateError(f"build record for {self.name!r} is finalized")

    def set_revision(
        self,
        component_name: str,
        revision: str,
        duration: Duration,
        status: BuildStatus,
        error: Optional[str] = None,
    ) -> None:
        self._ensure_open()
        if component_name not in self.components:
            raise RecordStateError(f"unknown component {component_name!r}")
        if status == BuildStatus.NOT_RUN:
            raise RecordStateError("cannot transition a component back to NOT_RUN")

        current = self.components[component_name]
        updated = current.model_copy(update={
            "revision": revision,
            "duration": _as_timedelta(duration),
            "status": status,
            "error": error,
        })
        if current.status != BuildStatus.NOT_RUN:
            if updated == current:
                return
            raise RecordStateError(
                f"component {component_name!r} already recorded as {current.status.value}"
            )
        self.components[component_name] = updated

    def set_status(
        self,
        step_index: int,
        status: BuildStatus,
        duration: Duration,
        exit_code: Optional[int] = None,
        error: Optional[str] = None,
        log_excerpt: Optional[str] = None,
    ) -> None:
        self._ensure_open()
        if not 0 <= step_index < len(self.steps):
            raise RecordStateError(f"step index {step_index} out of range")
        if status == BuildStatus.NOT_RUN:
            raise RecordStateError("cannot transition a step back to NOT_RUN")

        current = self.steps[step_index]
        updated = current.model_copy(update={
            "status": status,
            "duration": _as_timedelta(duration),
            "exit_code": exit_code,
            "error": error,
            "log_excerpt": log_excerpt,
        })
        if current.status != BuildStatus.NOT_RUN:
            if updated == current:
                return
            raise RecordStateError(
                f"step {step_index} already recorded as {current.status.value}"
            )
        self.steps[step_index] = updated

    def finalize(self, fingerprint: str, duration: Duration) -> "BuildRecord":
        self._ensure_open()
        self.hash = fingerprint
        self.duration = _as_timedelta(duration)
        self._finalized = True
        return self

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def is_finalized(self) -> bool:
        return self._finalized

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> BuildStatus:
        """FAILED if any unit failed, OK if every unit succeeded, else NOT_RUN."""
        statuses = [c.status for c in self.components.values()] + [s.status for s in self.steps]
        if BuildStatus.FAILED in statuses:
            return BuildStatus.FAILED
        if all(s == BuildStatus.OK for s in statuses):
            return BuildStatus.OK
        return BuildStatus.NOT_RUN

    @property
    def failed_components(self) -> List[str]:
        return sorted(
            key for key, c in self.components.items() if c.status == BuildStatus.FAILED
        )
