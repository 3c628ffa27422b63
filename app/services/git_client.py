"""
Git Client
==========
The version-control collaborator used by the checkout executor.

Every operation shells out to the git executable with an argument vector,
captures its output, and raises VCSError on failure. Callers decide what a
failure means; the checkout executor turns it into a FAILED component.

Operations:
    clone(url, dest_name, root)   git clone <url> <dest_name>      (cwd=root)
    fetch(dest_path)              git fetch
    clean(dest_path)              git clean -d -f -x
    checkout(dest_path, ref)      git checkout <ref>
    head_revision(dest_path)      git rev-list -n 1 HEAD
    remote_revision(dest_path, ref)  git rev-list -n 1 origin/<ref>
"""
import os
import subprocess
import logging
from typing import List, Protocol

from app.core.config import GIT_EXECUTABLE
from app.core.errors import VCSError

logger = logging.getLogger(__name__)


class VCSClient(Protocol):
    """Capabilities the checkout executor needs from a version-control tool."""

    def clone(self, url: str, dest_name: str, root: str) -> None: ...

    def fetch(self, dest_path: str) -> None: ...

    def clean(self, dest_path: str) -> None: ...

    def checkout(self, dest_path: str, ref: str) -> None: ...

    def head_revision(self, dest_path: str) -> str: ...


def is_working_copy(path: str) -> bool:
    return os.path.exists(os.path.join(path, ".git"))


class GitClient:
    """
    Thin subprocess wrapper around the git command line.
    """

    def __init__(self, executable: str = GIT_EXECUTABLE) -> None:
        self.executable = executable

    def _run(self, operation: str, args: List[str], cwd: str) -> str:
        argv = [self.executable, *args]
        logger.debug("[GIT] %s (cwd=%s)", argv, cwd)
        try:
            res = subprocess.run(
                argv,
                cwd=cwd,
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            logger.error("[GIT] %s failed in %s: %s", operation, cwd, (e.stderr or "").strip())
            raise VCSError(operation, cwd, e.stderr) from e
        except OSError as e:
            logger.error("[GIT] %s could not start in %s: %s", operation, cwd, e)
            raise VCSError(operation, cwd, str(e)) from e
        return res.stdout

    def clone(self, url: str, dest_name: str, root: str) -> None:
        logger.info("Cloning %s into %s", url, os.path.join(root, dest_name))
        self._run("clone", ["clone", url, dest_name], cwd=root)

    def fetch(self, dest_path: str) -> None:
        self._run("fetch", ["fetch"], cwd=dest_path)

    def clean(self, dest_path: str) -> None:
        # -x also removes ignored files: the working copy must be pristine
        self._run("clean", ["clean", "-d", "-f", "-x"], cwd=dest_path)

    def checkout(self, dest_path: str, ref: str) -> None:
        self._run("checkout", ["checkout", ref], cwd=dest_path)

    def head_revision(self, dest_path: str) -> str:
        if not is_working_copy(dest_path):
            raise VCSError("resolve", dest_path, "git repository not found")
        revision = self._run("resolve", ["rev-list", "-n", "1", "HEAD"], cwd=dest_path).strip()
        if not revision:
            raise VCSError("resolve", dest_path, "HEAD did not resolve to a commit")
        return revision

    def remote_revision(self, dest_path: str, ref: str) -> str:
        """Resolve ``origin/<ref>`` as of the last fetch."""
        if not is_working_copy(dest_path):
            raise VCSError("resolve", dest_path, "git repository not found")
        return self._run(
            "resolve", ["rev-list", "-n", "1", f"origin/{ref}"], cwd=dest_path
        ).strip()
