"""
Build Pipeline
==============
Drives one build of a project: Init → Checkout → Steps → Done.

Failure policy:
    - Checkouts are independent. Every component is attempted, in
      lexicographic order of its key, even after an earlier one failed.
    - Any checkout failure marks the build failed before the first step,
      so every step is SKIPPED.
    - Steps run in declaration order. The first FAILED step marks the
      build failed and every later step is SKIPPED without running.

Fingerprint:
    Fed in exactly the checkout order and the declaration order, whether
    or not units ran (see app.utils.fingerprint). The returned record always
    carries a hash, including for fully failed builds.

Errors:
    - ConfigurationError  raised before any process starts (no record).
    - InfrastructureError build root cannot be created (no record).
    - PipelineFault       any unexpected exception while units ran; logged
                          and raised rather than returning a partial record
                          that could look successful.

Concurrency:
    Synchronous and single-threaded. The caller must not run two builds on
    the same build root at once (the scheduler holds a per-root lock).
"""
import os
import time
import logging
from typing import IO, Any, Mapping, Optional

from app.core.errors import AutomatError, InfrastructureError, PipelineFault
from app.executor.checkout import checkout_component
from app.executor.environment import resolve_environment
from app.executor.step_executor import run_step
from app.models.build_record import BuildRecord, BuildStatus
from app.models.project import Project
from app.services.git_client import GitClient, VCSClient
from app.utils.fingerprint import BuildFingerprint
from app.utils.path_utils import resolve_under

logger = logging.getLogger(__name__)


def ensure_build_root(build_root: str) -> str:
    """Create the build root (with parents) or raise InfrastructureError."""
    root = os.path.abspath(build_root)
    try:
        os.makedirs(root, exist_ok=True)
    except OSError as e:
        logger.critical("Failed to create build directory %s: %s", root, e)
        raise InfrastructureError(f"Failed to create build directory {root}: {e}") from e
    return root


class BuildPipeline:
    """
    Runs checkouts then steps for a project and returns its BuildRecord.

    Parameters
    ----------
    vcs : VCSClient | None
        Version-control collaborator; GitClient by default.
    base_env : Mapping[str, str] | None
        Base environment for every step. When None, a snapshot of the host
        environment is taken at the start of each run.
    sink : file object | None
        Where step output goes (inherited stdout/stderr when None).
    capture_output : bool
        Capture step output into the step results instead of streaming it.
    """

    def __init__(
        self,
        vcs: Optional[VCSClient] = None,
        base_env: Optional[Mapping[str, str]] = None,
        sink: Optional[IO[Any]] = None,
        capture_output: bool = False,
    ) -> None:
        self.vcs = vcs or GitClient()
        self.base_env = dict(base_env) if base_env is not None else None
        self.sink = sink
        self.capture_output = capture_output

    def run(self, project: Project, build_root: str) -> BuildRecord:
        project = project.check()
        root = ensure_build_root(build_root)

        logger.info("Build started | project=%s | root=%s", project.name, root)
        build_start = time.monotonic()
        record = BuildRecord.from_project(project)
        fingerprint = BuildFingerprint()
        base_env = self.base_env if self.base_env is not None else dict(os.environ)

        try:
            build_failed = self._checkout_all(project, root, record, fingerprint)
            self._run_steps(project, root, record, fingerprint, base_env, build_failed)
        except AutomatError:
            raise
        except Exception as e:
            logger.exception("Build of %s aborted by an unexpected fault", project.name)
            raise PipelineFault(f"Build of {project.name} aborted: {type(e).__name__}: {e}") from e

        record.finalize(fingerprint.hexdigest(), time.monotonic() - build_start)
        logger.info(
            "Build finished | project=%s | status=%s | hash=%s | time=%.2fs",
            project.name, record.status.value, record.hash,
            record.duration.total_seconds(),
        )
        return record

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def _checkout_all(
        self,
        project: Project,
        root: str,
        record: BuildRecord,
        fingerprint: BuildFingerprint,
    ) -> bool:
        """Attempt every checkout; return True if any of them failed."""
        logger.info("[CHECKOUT] %d component(s)", len(project.components))
        failed = False
        for key in sorted(project.components):
            component = project.components[key]
            result = checkout_component(
                component.url, component.name, component.revision, root, vcs=self.vcs,
            )
            if result.ok:
                record.set_revision(key, result.revision, result.duration, BuildStatus.OK)
            else:
                failed = True
                record.set_revision(
                    key, result.revision, result.duration, BuildStatus.FAILED, error=result.error,
                )
            fingerprint.add_component(component.url, component.name, result.revision)
        return failed

    def _run_steps(
        self,
        project: Project,
        root: str,
        record: BuildRecord,
        fingerprint: BuildFingerprint,
        base_env: Mapping[str, str],
        build_failed: bool,
    ) -> None:
        logger.info("[STEPS] %d step(s)", len(project.steps))
        for index, step in enumerate(project.steps):
            start = time.monotonic()
            if build_failed:
                record.set_status(index, BuildStatus.SKIPPED, time.monotonic() - start)
                logger.info("[STEPS] Step %d skipped: %s", index, step.command)
            else:
                environment = resolve_environment(root, project.env, step.env, base_env)
                result = run_step(
                    resolve_under(root, step.directory),
                    environment,
                    step.command[0],
                    step.command[1:],
                    sink=self.sink,
                    capture=self.capture_output,
                )
                record.set_status(
                    index, result.status, result.duration,
                    exit_code=result.exit_code, error=result.error,
                    log_excerpt=result.log_excerpt if self.capture_output else None,
                )
                if not result.ok:
                    build_failed = True
                    logger.warning("[STEPS] Step %d failed, skipping the rest: %s", index, result.error)
            fingerprint.add_step(step.directory, step.command)
