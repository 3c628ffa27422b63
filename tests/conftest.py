"""
Shared fixtures: an in-memory VCS double and helpers for Python-driven steps.
"""
import os
import sys
from typing import Dict, List, Optional, Set

import pytest

from app.core.errors import VCSError


class FakeVCS:
    """
    VCSClient double.

    ``commits`` maps a requested ref to the commit id it resolves to
    (unknown refs resolve to "sha-<ref>"). Components listed in
    ``fail_on`` raise VCSError at the given operation. ``remote`` maps
    branch names to their origin/<branch> commit.
    """

    def __init__(self, commits: Optional[Dict[str, str]] = None,
                 fail_on: Optional[Dict[str, str]] = None,
                 remote: Optional[Dict[str, str]] = None) -> None:
        self.commits = commits or {}
        self.fail_on = fail_on or {}
        self.remote = remote or {}
        self.calls: List[tuple] = []
        self.cloned: Set[str] = set()
        self._heads: Dict[str, str] = {}

    def _maybe_fail(self, operation: str, path: str) -> None:
        name = os.path.basename(path)
        if self.fail_on.get(name) == operation:
            raise VCSError(operation, path, f"simulated {operation} failure")

    def clone(self, url: str, dest_name: str, root: str) -> None:
        dest = os.path.join(root, dest_name)
        self.calls.append(("clone", dest_name))
        self._maybe_fail("clone", dest)
        os.makedirs(os.path.join(dest, ".git"), exist_ok=True)
        self.cloned.add(dest_name)

    def fetch(self, dest_path: str) -> None:
        self.calls.append(("fetch", os.path.basename(dest_path)))
        self._maybe_fail("fetch", dest_path)

    def clean(self, dest_path: str) -> None:
        self.calls.append(("clean", os.path.basename(dest_path)))
        self._maybe_fail("clean", dest_path)

    def checkout(self, dest_path: str, ref: str) -> None:
        self.calls.append(("checkout", os.path.basename(dest_path), ref))
        self._maybe_fail("checkout", dest_path)
        self._heads[dest_path] = self.commits.get(ref, f"sha-{ref}")

    def head_revision(self, dest_path: str) -> str:
        self.calls.append(("resolve", os.path.basename(dest_path)))
        self._maybe_fail("resolve", dest_path)
        return self._heads[dest_path]

    def remote_revision(self, dest_path: str, ref: str) -> str:
        self.calls.append(("remote", os.path.basename(dest_path), ref))
        if ref not in self.remote:
            raise VCSError("resolve", dest_path, f"unknown revision origin/{ref}")
        return self.remote[ref]


def py(code: str) -> List[str]:
    """Command vector running ``code`` with the current interpreter."""
    return [sys.executable, "-c", code]


@pytest.fixture
def fake_vcs():
    return FakeVCS(commits={"main": "abc123"})


@pytest.fixture
def base_env():
    # Minimal, deterministic environment for step processes
    env = {"PATH": os.environ.get("PATH", "")}
    if "SYSTEMROOT" in os.environ:
        env["SYSTEMROOT"] = os.environ["SYSTEMROOT"]
    return env
