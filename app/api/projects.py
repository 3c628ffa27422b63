"""
Project endpoints
=================
CRUD over project definitions.

Routes:
    GET    /projects            sorted list of project names
    GET    /projects/{name}     project definition
    PUT    /projects/{name}     create or replace (POST accepted too)
    DELETE /projects/{name}     remove, returns the removed definition

The body name must equal the path name; mismatches and invalid definitions
are rejected with 400 before anything is written.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.deps import ProjectName, get_store
from app.core.errors import ConfigurationError, ProjectNotFoundError
from app.models.project import Project
from app.services.project_store import ProjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.get("", response_model=List[str])
def list_projects(store: ProjectStore = Depends(get_store)):
    return store.list_names()


@router.get("/{name}", response_model=Project)
def get_project(name: ProjectName, store: ProjectStore = Depends(get_store)):
    try:
        return store.get(name)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project {name} not found")


@router.api_route("/{name}", methods=["PUT", "POST"], response_model=Project)
async def put_project(request: Request, name: ProjectName, store: ProjectStore = Depends(get_store)):
    body = (await request.body()).decode("utf-8", errors="replace")
    try:
        project = Project.read_json(body)
    except ConfigurationError as e:
        logger.warning("Rejected definition for %s: %s", name, e)
        raise HTTPException(status_code=400, detail=str(e))
    if project.name != name:
        raise HTTPException(
            status_code=400,
            detail=f"Project name {project.name!r} does not match path {name!r}",
        )
    try:
        store.save(project)
    except OSError as e:
        logger.error("Failed to save project %s: %s", name, e)
        raise HTTPException(status_code=500, detail="Failed to save the project")
    return project


@router.delete("/{name}", response_model=Project)
def delete_project(name: ProjectName, store: ProjectStore = Depends(get_store)):
    try:
        return store.delete(name)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project {name} not found")
    except OSError as e:
        logger.error("Failed to delete project %s: %s", name, e)
        raise HTTPException(status_code=500, detail="Failed to delete the project")
