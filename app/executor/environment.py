"""
Environment Resolver
====================
Builds the environment a build step runs with.

Resolution order:
    1. Seed a working table with the base environment snapshot.
    2. Apply project declarations, in declaration order.
    3. Apply step declarations, in declaration order. Step values override
       project values with the same name and may reference them.

Expansion (applied to every declared value):
    $NAME, ${NAME}   replaced by the lookup below
    $$               literal "$"
    other "$"        kept as-is

Lookup:
    BUILD_ROOT       always the build root, even if declared by the project
    anything else    current value in the working table, "" when unset

BUILD_ROOT is also exported to the step, overwriting any declared value, so
the child sees the same root its references expanded to.

The base environment is an explicit input. Callers wanting host inheritance
pass a snapshot of ``os.environ`` themselves, which keeps resolution
deterministic under test.

Output is a list of NAME=VALUE strings sorted by name.
"""
import re
from typing import Callable, Dict, List, Mapping, Optional

from app.core.constants import BUILD_ROOT_VAR

_REFERENCE_RE = re.compile(
    r"\$(?:(\$)|\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))"
)


def expand(value: str, lookup: Callable[[str], str]) -> str:
    """Substitute $NAME / ${NAME} references in ``value`` using ``lookup``."""

    def _replace(match: "re.Match[str]") -> str:
        if match.group(1):
            return "$"
        return lookup(match.group(2) or match.group(3))

    return _REFERENCE_RE.sub(_replace, value)


def resolve_environment(
    build_root: str,
    project_env: Optional[Mapping[str, str]],
    step_env: Optional[Mapping[str, str]],
    base_env: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """
    Merge base, project and step environments into NAME=VALUE bindings.

    Parameters
    ----------
    build_root : str
        Value bound to the reserved BUILD_ROOT reference.
    project_env : Mapping[str, str] | None
        Project-scope raw declarations.
    step_env : Mapping[str, str] | None
        Step-scope raw declarations, applied after the project scope.
    base_env : Mapping[str, str] | None
        Starting table (normally a snapshot of the host environment).

    Returns
    -------
    list[str]
        Sorted NAME=VALUE strings, always including BUILD_ROOT. Unresolved
        references expand to "".
    """
    work_env: Dict[str, str] = dict(base_env or {})

    def lookup(name: str) -> str:
        if name == BUILD_ROOT_VAR:
            return build_root
        return work_env.get(name, "")

    for scope in (project_env or {}, step_env or {}):
        for name, raw in scope.items():
            work_env[name] = expand(raw, lookup)
    work_env[BUILD_ROOT_VAR] = build_root

    return [f"{name}={work_env[name]}" for name in sorted(work_env)]


def environment_to_dict(bindings: List[str]) -> Dict[str, str]:
    """Convert NAME=VALUE strings into a mapping suitable for subprocess."""
    env: Dict[str, str] = {}
    for binding in bindings:
        name, sep, value = binding.partition("=")
        if not sep:
            continue
        env[name] = value
    return env
