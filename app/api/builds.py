"""
Build endpoints
===============
Routes:
    GET  /projects/{name}/build                 run a build now, return the BuildRecord
    POST /projects/{name}/builds                queue a build, 202 + BuildJob
    GET  /builds/{job_id}                       poll a queued build
    GET  /projects/{name}/builds/latest         last persisted BuildRecord
    GET  /projects/{name}/components/{component}/remote
                                                checked-out vs remote revision

A build that ran returns 200 with its record even when checkouts or steps
failed; the record statuses say what happened. Only builds that produced no
record map to error codes:
    422  configuration error (definition cannot be built)
    500  infrastructure error or pipeline fault
"""
import os
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.deps import ProjectName, get_git, get_scheduler, get_store, get_writer
from app.core.errors import (
    ConfigurationError,
    InfrastructureError,
    PipelineFault,
    ProjectNotFoundError,
    VCSError,
)
from app.models.build_job import BuildJob
from app.models.build_record import BuildRecord
from app.services.build_scheduler import BuildScheduler
from app.services.git_client import GitClient, is_working_copy
from app.services.project_store import ProjectStore
from app.services.record_writer import RecordWriter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Builds"])


class RemoteRevision(BaseModel):
    component: str
    requested: str
    revision: str
    remote_revision: Optional[str] = None
    up_to_date: Optional[bool] = None


def _not_found(name: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Project {name} not found")


@router.get("/projects/{name}/build", response_model=BuildRecord)
def build_project(name: ProjectName, scheduler: BuildScheduler = Depends(get_scheduler)):
    try:
        return scheduler.run_now(name)
    except ProjectNotFoundError:
        raise _not_found(name)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InfrastructureError as e:
        logger.error("Build of %s aborted: %s", name, e)
        raise HTTPException(status_code=500, detail="Failed to create build directory")
    except PipelineFault as e:
        raise HTTPException(status_code=500, detail=f"A critical error occurred during the build: {e}")


@router.post("/projects/{name}/builds", response_model=BuildJob, status_code=202)
def submit_build(name: ProjectName, scheduler: BuildScheduler = Depends(get_scheduler)):
    try:
        return scheduler.submit(name)
    except ProjectNotFoundError:
        raise _not_found(name)


@router.get("/builds/{job_id}", response_model=BuildJob)
def get_build_job(job_id: str, scheduler: BuildScheduler = Depends(get_scheduler)):
    job = scheduler.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Build job {job_id} not found")
    return job


@router.get("/projects/{name}/builds/latest", response_model=BuildRecord)
def latest_build(
    name: ProjectName,
    store: ProjectStore = Depends(get_store),
    writer: Optional[RecordWriter] = Depends(get_writer),
):
    if not store.exists(name):
        raise _not_found(name)
    record = writer.latest(name) if writer is not None else None
    if record is None:
        raise HTTPException(status_code=404, detail=f"No recorded builds for {name}")
    return record


@router.get("/projects/{name}/components/{component}/remote", response_model=RemoteRevision)
def component_remote(
    name: ProjectName,
    component: str,
    store: ProjectStore = Depends(get_store),
    git: GitClient = Depends(get_git),
):
    """
    Compare a component's checked-out commit with origin/<revision>.

    ``remote_revision`` is null when the requested revision is not a branch
    on origin (tags and commit ids).
    """
    try:
        project = store.get(name)
    except ProjectNotFoundError:
        raise _not_found(name)
    if component not in project.components:
        raise HTTPException(status_code=404, detail=f"Component {component} not found in {name}")

    declared = project.components[component]
    dest_path = os.path.join(store.build_root(name), declared.name)
    if not is_working_copy(dest_path):
        raise HTTPException(status_code=404, detail=f"Component {component} has not been checked out")

    try:
        revision = git.head_revision(dest_path)
    except VCSError as e:
        raise HTTPException(status_code=500, detail=str(e))

    result = RemoteRevision(component=component, requested=declared.revision, revision=revision)
    try:
        result.remote_revision = git.remote_revision(dest_path, declared.revision)
        result.up_to_date = result.remote_revision == revision
    except VCSError as e:
        logger.info("No remote branch for %s/%s: %s", name, component, e.detail)
    return result
