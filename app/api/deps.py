"""
API Dependencies
================
Process-wide service instances and path types shared by the routers.

Tests replace them through ``app.dependency_overrides``.
"""
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Path

from app.core.config import AUTOMAT_ROOT, CAPTURE_OUTPUT, MAX_WORKERS, PERSIST_RECORDS
from app.core.constants import PROJECT_NAME_PATTERN
from app.pipeline.builder import BuildPipeline
from app.services.build_scheduler import BuildScheduler
from app.services.git_client import GitClient
from app.services.project_store import ProjectStore
from app.services.record_writer import RecordWriter

# Project name as a validated URL path segment
ProjectName = Annotated[str, Path(pattern=PROJECT_NAME_PATTERN)]


@lru_cache(maxsize=1)
def get_store() -> ProjectStore:
    store = ProjectStore(AUTOMAT_ROOT)
    store.load_all()
    return store


@lru_cache(maxsize=1)
def get_git() -> GitClient:
    return GitClient()


@lru_cache(maxsize=1)
def get_writer() -> Optional[RecordWriter]:
    return RecordWriter(AUTOMAT_ROOT) if PERSIST_RECORDS else None


@lru_cache(maxsize=1)
def get_scheduler() -> BuildScheduler:
    pipeline = BuildPipeline(vcs=get_git(), capture_output=CAPTURE_OUTPUT)
    return BuildScheduler(get_store(), pipeline, writer=get_writer(), max_workers=MAX_WORKERS)
