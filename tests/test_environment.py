"""
Unit Tests — Environment Resolver
=================================
Merging order, substitution rules and the reserved BUILD_ROOT reference.
"""
from app.executor.environment import environment_to_dict, expand, resolve_environment


def _resolve(project_env=None, step_env=None, base_env=None, root="/builds/p"):
    return environment_to_dict(resolve_environment(root, project_env, step_env, base_env))


class TestExpand:

    def test_plain_and_braced_references(self):
        lookup = {"A": "1", "B": "2"}.get
        assert expand("$A-${B}", lambda n: lookup(n) or "") == "1-2"

    def test_unresolved_reference_is_empty(self):
        assert expand("x${MISSING}y$NOPE", lambda n: "") == "xy"

    def test_double_dollar_is_literal(self):
        assert expand("cost: $$5", lambda n: "X") == "cost: $5"

    def test_lone_dollar_kept(self):
        assert expand("a $ b $1", lambda n: "X") == "a $ b $1"

    def test_name_stops_at_non_identifier(self):
        assert expand("$A/out", lambda n: "root" if n == "A" else "") == "root/out"


class TestResolveEnvironment:

    def test_base_environment_is_seeded(self):
        env = _resolve(base_env={"HOME": "/home/ci"})
        assert env["HOME"] == "/home/ci"

    def test_step_overrides_project(self):
        env = _resolve(project_env={"FOO": "1"}, step_env={"FOO": "2"})
        assert env["FOO"] == "2"

    def test_step_references_project_value(self):
        env = _resolve(project_env={"PREFIX": "/opt"}, step_env={"BIN": "$PREFIX/bin"})
        assert env["BIN"] == "/opt/bin"

    def test_project_references_base_value(self):
        env = _resolve(project_env={"PATH": "/tools:$PATH"}, base_env={"PATH": "/usr/bin"})
        assert env["PATH"] == "/tools:/usr/bin"

    def test_build_root_reserved(self):
        env = _resolve(step_env={"OUT": "$BUILD_ROOT/out"}, root="/builds/p")
        assert env["OUT"] == "/builds/p/out"

    def test_build_root_not_overridable(self):
        env = _resolve(
            project_env={"BUILD_ROOT": "/elsewhere"},
            step_env={"OUT": "${BUILD_ROOT}/out"},
            root="/builds/p",
        )
        assert env["OUT"] == "/builds/p/out"

    def test_unresolved_reference_never_errors(self):
        env = _resolve(step_env={"X": "${UNDEFINED_THING}"})
        assert env["X"] == ""

    def test_project_declarations_applied_in_order(self):
        env = _resolve(project_env={"A": "a", "B": "${A}b"})
        assert env["B"] == "ab"

    def test_output_sorted_and_deterministic(self):
        args = ("/r", {"Z": "1", "A": "2"}, {"M": "3"}, {"B": "4"})
        first = resolve_environment(*args)
        assert first == resolve_environment(*args)
        assert first == sorted(first)
        assert first == ["A=2", "B=4", "BUILD_ROOT=/r", "M=3", "Z=1"]

    def test_base_env_not_mutated(self):
        base = {"FOO": "base"}
        _resolve(project_env={"FOO": "changed"}, base_env=base)
        assert base == {"FOO": "base"}

    def test_none_scopes(self):
        assert resolve_environment("/r", None, None, None) == ["BUILD_ROOT=/r"]

    def test_build_root_exported(self):
        env = _resolve(base_env={"HOME": "/home/ci"}, root="/builds/p")
        assert env["BUILD_ROOT"] == "/builds/p"

    def test_declared_build_root_does_not_reach_the_step(self):
        env = _resolve(
            project_env={"BUILD_ROOT": "/elsewhere"},
            step_env={"BUILD_ROOT": "/other"},
            base_env={"BUILD_ROOT": "/inherited"},
            root="/builds/p",
        )
        assert env["BUILD_ROOT"] == "/builds/p"


def test_environment_to_dict_keeps_equals_in_value():
    assert environment_to_dict(["OPTS=a=b", "EMPTY=", "junk"]) == {"OPTS": "a=b", "EMPTY": ""}
