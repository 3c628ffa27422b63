"""
Step Executor
=============
Runs a single build step as a local process and reports status and timing.

BOUNDARY RULES:
    - Executor ONLY runs one command and observes it.
    - Executor NEVER decides whether later steps run; that is the
      pipeline's failure policy.
    - Executor NEVER raises for build failures; a missing directory, a
      launch error and a non-zero exit all come back as FAILED results.

OUTPUT:
    - Default: stdout/stderr inherited from the server process.
    - sink: any file object; stdout and stderr are redirected into it.
    - capture=True: output collected into StepResult.full_log with a
      head/tail excerpt for dashboards.

No shell is involved: command and args are passed as an argument vector.
No timeout is applied; callers needing a deadline wrap the whole build.
"""
import os
import subprocess
import time
import logging
from dataclasses import dataclass
from typing import IO, Any, List, Optional, Sequence

from app.executor.environment import environment_to_dict
from app.models.build_record import BuildStatus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Step Result (returned to the pipeline)
# ---------------------------------------------------------------------------
@dataclass
class StepResult:
    """
    Structured output from a single step execution.

    Fields
    ------
    status : BuildStatus
        OK on exit code 0, FAILED otherwise.
    duration : float
        Wall clock seconds from launch attempt to completion.
    exit_code : int | None
        Process exit code; None when the process never started.
    full_log : str
        Combined stdout + stderr, only populated with capture=True.
    log_excerpt : str
        Abbreviated log (first + last N lines).
    error : str | None
        Why the step failed, if it did.
    """
    status: BuildStatus = BuildStatus.NOT_RUN
    duration: float = 0.0
    exit_code: Optional[int] = None
    full_log: str = ""
    log_excerpt: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == BuildStatus.OK


# ---------------------------------------------------------------------------
# Log Excerpt Helper
# ---------------------------------------------------------------------------
_EXCERPT_HEAD_LINES = 30
_EXCERPT_TAIL_LINES = 30


def create_log_excerpt(full_log: str,
                       head: int = _EXCERPT_HEAD_LINES,
                       tail: int = _EXCERPT_TAIL_LINES) -> str:
    """
    Create an abbreviated log showing the first and last N lines.

    Returns the log unchanged when it has at most head + tail lines.
    """
    lines = full_log.splitlines()
    total = len(lines)

    if total <= head + tail:
        return full_log

    omitted = total - head - tail
    return "\n".join(
        lines[:head]
        + [f"\n... ({omitted} lines omitted) ...\n"]
        + lines[-tail:]
    )


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------
def run_step(
    directory: str,
    environment: List[str],
    command: str,
    args: Sequence[str] = (),
    sink: Optional[IO[Any]] = None,
    capture: bool = False,
) -> StepResult:
    """
    Execute ``command args...`` in ``directory`` with ``environment``.

    Parameters
    ----------
    directory : str
        Absolute working directory (already resolved against the build root).
    environment : list[str]
        NAME=VALUE bindings from the environment resolver. This is the
        complete environment of the child process.
    command : str
        Executable name or path.
    args : Sequence[str]
        Remaining argument vector.
    sink : file object | None
        Destination for stdout/stderr; ignored when capture=True.
    capture : bool
        Collect output into the result instead of streaming it.

    Returns
    -------
    StepResult
        Always returned; step failures never raise.
    """
    result = StepResult()
    start_time = time.monotonic()
    argv = [command, *args]

    if not os.path.isdir(directory):
        result.status = BuildStatus.FAILED
        result.error = f"Directory not found: {directory}"
        result.duration = time.monotonic() - start_time
        logger.error("[STEP] %s", result.error)
        return result

    if capture:
        stdout: Any = subprocess.PIPE
        stderr: Any = subprocess.STDOUT
    elif sink is not None:
        # Text already buffered in the sink goes out before the child writes
        sink.flush()
        stdout = sink
        stderr = sink
    else:
        stdout = None
        stderr = None

    logger.info("[STEP] Running %s in %s", argv, directory)

    try:
        completed = subprocess.run(
            argv,
            cwd=directory,
            env=environment_to_dict(environment),
            stdout=stdout,
            stderr=stderr,
            check=False,
        )
        result.exit_code = completed.returncode
        if capture and completed.stdout:
            result.full_log = completed.stdout.decode("utf-8", errors="replace")
        if completed.returncode == 0:
            result.status = BuildStatus.OK
        else:
            result.status = BuildStatus.FAILED
            result.error = f"Command exited with status {completed.returncode}"

    except OSError as e:
        # Executable missing, not executable, bad cwd between check and launch...
        result.status = BuildStatus.FAILED
        result.error = f"Failed to launch {command!r}: {e}"
        logger.error("[STEP] %s", result.error)

    result.duration = time.monotonic() - start_time
    result.log_excerpt = create_log_excerpt(result.full_log)

    logger.info(
        "[STEP] Complete | status=%s | exit=%s | time=%.2fs",
        result.status.value, result.exit_code, result.duration,
    )
    return result
