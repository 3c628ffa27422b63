"""
Path Utils
==========
Path validation helpers for everything that lands under a build root.

Responsibilities:
    - Validate component names as single safe path segments
    - Validate step directories as relative paths that stay inside the root
    - Resolve a step directory against a build root
"""
import os
import posixpath


def is_safe_segment(name: str) -> bool:
    """
    Return True if ``name`` can be used as one directory name under a root.

    Rejects empty names, ``.``/``..``, path separators and NUL bytes.
    """
    if not name or name in (".", ".."):
        return False
    return not any(ch in name for ch in ("/", "\\", "\x00"))


def is_confined_relative_path(path: str) -> bool:
    """
    Return True if ``path`` is relative and never walks above its root.

    The empty string and ``.`` denote the root itself and are accepted.
    """
    if "\x00" in path:
        return False
    normalised = path.replace("\\", "/")
    if normalised.startswith("/") or (len(path) > 1 and path[1] == ":"):
        return False
    collapsed = posixpath.normpath(normalised) if normalised else "."
    return collapsed != ".." and not collapsed.startswith("../")


def resolve_under(root: str, relative: str) -> str:
    """Join ``relative`` onto ``root`` and return the normalised absolute path."""
    if not relative:
        return os.path.abspath(root)
    return os.path.abspath(os.path.join(root, relative))
