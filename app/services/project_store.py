"""
Project Store
=============
File-backed persistence of project definitions, keyed by project name.

Layout under the data root:
    projects/<name>.json     written by save()
    projects/<name>.yaml     hand-written definitions are also loaded
    builds/<name>/           build root handed to the pipeline

Loading rules:
    - Only regular files with a .json/.yaml/.yml suffix are considered.
    - A file that fails to parse, or whose project name differs from the
      file stem, is logged and skipped; the server still starts.

The in-memory map is guarded by a lock because FastAPI runs sync handlers
in a thread pool.
"""
import os
import logging
import threading
from typing import Dict, List

from app.core.constants import BUILDS_DIR, PROJECTS_DIR, PROJECT_FILE_SUFFIXES
from app.core.errors import ConfigurationError, ProjectNotFoundError
from app.models.project import Project

logger = logging.getLogger(__name__)


class ProjectStore:

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)
        self.projects_dir = os.path.join(self.root, PROJECTS_DIR)
        self.builds_dir = os.path.join(self.root, BUILDS_DIR)
        self._projects: Dict[str, Project] = {}
        self._files: Dict[str, str] = {}
        self._lock = threading.RLock()
        os.makedirs(self.projects_dir, exist_ok=True)

    def load_all(self) -> int:
        """
        (Re)load every project file from disk.

        Returns
        -------
        int
            Number of projects loaded.
        """
        logger.info("Loading projects from %s", self.projects_dir)
        projects: Dict[str, Project] = {}
        files: Dict[str, str] = {}
        for entry in sorted(os.listdir(self.projects_dir)):
            path = os.path.join(self.projects_dir, entry)
            stem, suffix = os.path.splitext(entry)
            if not os.path.isfile(path) or suffix not in PROJECT_FILE_SUFFIXES:
                continue
            try:
                project = Project.load(path)
            except (OSError, ConfigurationError) as e:
                logger.error("Project failed: %s %s", entry, e)
                continue
            if project.name != stem:
                logger.error("Project skipped: %s declares name %r", entry, project.name)
                continue
            if project.name in projects:
                logger.warning("Project %s defined twice, keeping %s", project.name, files[project.name])
                continue
            projects[project.name] = project
            files[project.name] = path
            logger.info("Project loaded: %s", entry)

        with self._lock:
            self._projects = projects
            self._files = files
        logger.info("Loaded %d project(s)", len(projects))
        return len(projects)

    def list_names(self) -> List[str]:
        with self._lock:
            return sorted(self._projects)

    def get(self, name: str) -> Project:
        with self._lock:
            try:
                return self._projects[name].model_copy(deep=True)
            except KeyError:
                raise ProjectNotFoundError(name) from None

    def exists(self, name: str) -> bool:
        with self._lock:
            return name in self._projects

    def save(self, project: Project) -> None:
        """Persist ``project`` as <name>.json and make it visible to get()."""
        path = os.path.join(self.projects_dir, f"{project.name}.json")
        with self._lock:
            project.save(path)
            previous = self._files.get(project.name)
            if previous and previous != path and os.path.exists(previous):
                os.remove(previous)
            self._projects[project.name] = project.model_copy(deep=True)
            self._files[project.name] = path
        logger.info("Project saved: %s", path)

    def delete(self, name: str) -> Project:
        """Remove the project file and return the removed definition."""
        with self._lock:
            if name not in self._projects:
                raise ProjectNotFoundError(name)
            path = self._files.pop(name)
            project = self._projects.pop(name)
            try:
                os.remove(path)
            except FileNotFoundError:
                logger.warning("Project file already gone: %s", path)
        logger.info("Project deleted: %s", name)
        return project

    def build_root(self, name: str) -> str:
        return os.path.join(self.builds_dir, name)
