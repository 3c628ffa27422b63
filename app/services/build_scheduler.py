"""
Build Scheduler
===============
Runs builds on behalf of the HTTP layer.

    submit(name)   queue a background build, return a BuildJob to poll
    run_now(name)  run a build in the calling thread and return its record
    get(job_id)    current view of a submitted job

Guarantees:
    - One build at a time per build root. Background and synchronous builds
      of the same project share one lock, so working copies are never
      touched by two pipelines at once.
    - The project definition is snapshotted when the build starts; edits
      made while it runs apply to the next build.
    - Jobs end FINISHED when the pipeline returned a record (whatever the
      build outcome) and ERROR when it raised.
    - Only the newest ``job_history`` finished jobs are kept; older ones are
      forgotten and get() returns None for them. Queued and running jobs are
      never evicted.

The pool and the job table live in memory; restarting the server forgets
submitted jobs but not persisted records.
"""
import threading
import uuid
import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Deque, Dict, Optional

from app.core.config import JOB_HISTORY, MAX_WORKERS
from app.core.errors import ProjectNotFoundError
from app.models.build_job import BuildJob, JobState
from app.models.build_record import BuildRecord
from app.pipeline.builder import BuildPipeline
from app.services.project_store import ProjectStore
from app.services.record_writer import RecordWriter

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BuildScheduler:

    def __init__(
        self,
        store: ProjectStore,
        pipeline: BuildPipeline,
        writer: Optional[RecordWriter] = None,
        max_workers: int = MAX_WORKERS,
        job_history: int = JOB_HISTORY,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.writer = writer
        self.job_history = max(1, job_history)
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="build")
        self._jobs: Dict[str, BuildJob] = {}
        self._futures: Dict[str, Future] = {}
        self._finished: Deque[str] = deque()
        self._root_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def _root_lock(self, build_root: str) -> threading.Lock:
        with self._lock:
            return self._root_locks.setdefault(build_root, threading.Lock())

    def _update(self, job_id: str, **changes) -> None:
        with self._lock:
            self._jobs[job_id] = self._jobs[job_id].model_copy(update=changes)

    def _finish(self, job_id: str, **changes) -> None:
        """Record the final state, drop the future and evict old finished jobs."""
        with self._lock:
            self._jobs[job_id] = self._jobs[job_id].model_copy(update=changes)
            self._futures.pop(job_id, None)
            self._finished.append(job_id)
            while len(self._finished) > self.job_history:
                evicted = self._finished.popleft()
                self._jobs.pop(evicted, None)
                logger.debug("[JOB:%s] Evicted from job history", evicted)

    # ------------------------------------------------------------------
    # Synchronous
    # ------------------------------------------------------------------
    def run_now(self, name: str) -> BuildRecord:
        """
        Build project ``name`` in the calling thread.

        Raises ProjectNotFoundError and whatever the pipeline raises
        (ConfigurationError, InfrastructureError, PipelineFault).
        """
        build_root = self.store.build_root(name)
        with self._root_lock(build_root):
            project = self.store.get(name)
            record = self.pipeline.run(project, build_root)
        if self.writer is not None:
            self.writer.write_record(record)
        return record

    # ------------------------------------------------------------------
    # Background
    # ------------------------------------------------------------------
    def submit(self, name: str) -> BuildJob:
        if not self.store.exists(name):
            raise ProjectNotFoundError(name)
        job = BuildJob(job_id=uuid.uuid4().hex[:12], project=name, submitted_at=_now())
        with self._lock:
            self._jobs[job.job_id] = job
        logger.info("[JOB:%s] Queued build of %s", job.job_id, name)
        future = self._executor.submit(self._run_job, job.job_id, name)
        with self._lock:
            current = self._jobs.get(job.job_id)
            # A fast job may already have finished and retired itself
            if current is not None and not current.done:
                self._futures[job.job_id] = future
        return job

    def _run_job(self, job_id: str, name: str) -> None:
        build_root = self.store.build_root(name)
        with self._root_lock(build_root):
            self._update(job_id, state=JobState.RUNNING, started_at=_now())
            logger.info("[JOB:%s] Running build of %s", job_id, name)
            try:
                project = self.store.get(name)
                record = self.pipeline.run(project, build_root)
            except Exception as e:
                logger.error("[JOB:%s] Build of %s produced no record: %s", job_id, name, e)
                self._finish(job_id, state=JobState.ERROR, finished_at=_now(), error=str(e))
                return
        if self.writer is not None:
            self.writer.write_record(record)
        self._finish(job_id, state=JobState.FINISHED, finished_at=_now(), record=record)
        logger.info("[JOB:%s] Finished build of %s: %s", job_id, name, record.status.value)

    def get(self, job_id: str) -> Optional[BuildJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[BuildJob]:
        """Block until job ``job_id`` is done; None once it left the history."""
        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            future.result(timeout=timeout)
        return self.get(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
