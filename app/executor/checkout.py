"""
Checkout Executor
=================
Positions one component's working copy at the requested revision.

Sequence (all inside <build_root>/<name>):
    1. Create build_root if missing.
    2. Clone if the directory is not yet a working copy.
    3. fetch → clean (untracked and ignored files too) → checkout <revision>.
    4. Resolve HEAD to an immutable commit id.

The resolved commit id, not the requested ref, identifies the component in
the build fingerprint, so moving branches and tags do not alias builds.

Failures never raise. The result carries the *requested* revision and an
error naming the failing operation, and sibling checkouts are unaffected.
"""
import os
import time
import logging
from dataclasses import dataclass
from typing import Optional

from app.core.errors import VCSError
from app.services.git_client import GitClient, VCSClient, is_working_copy

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    revision: str
    duration: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def checkout_component(
    url: str,
    name: str,
    revision: str,
    build_root: str,
    vcs: Optional[VCSClient] = None,
) -> CheckoutResult:
    """
    Ensure ``<build_root>/<name>`` is a clean working copy of ``url`` at ``revision``.

    Parameters
    ----------
    url : str
        Repository locator passed to clone.
    name : str
        Working copy directory name (a validated single path segment).
    revision : str
        Requested branch, tag or commit.
    build_root : str
        Directory holding all working copies of this build.
    vcs : VCSClient | None
        Version-control implementation; GitClient by default.

    Returns
    -------
    CheckoutResult
        ``revision`` is the resolved commit id on success and the requested
        ref on failure.
    """
    vcs = vcs or GitClient()
    start_time = time.monotonic()
    dest_path = os.path.join(build_root, name)

    def _failed(message: str) -> CheckoutResult:
        logger.error("[CHECKOUT] %s: %s", name, message)
        return CheckoutResult(
            revision=revision,
            duration=time.monotonic() - start_time,
            error=message,
        )

    try:
        os.makedirs(build_root, exist_ok=True)
    except OSError as e:
        return _failed(f"Failed to create directory {build_root}: {e}")

    try:
        if not is_working_copy(dest_path):
            vcs.clone(url, name, build_root)
        vcs.fetch(dest_path)
        vcs.clean(dest_path)
        vcs.checkout(dest_path, revision)
        resolved = vcs.head_revision(dest_path)
    except VCSError as e:
        return _failed(str(e))

    duration = time.monotonic() - start_time
    logger.info("[CHECKOUT] %s %s -> %s (%.2fs)", name, revision, resolved, duration)
    return CheckoutResult(revision=resolved, duration=duration)
