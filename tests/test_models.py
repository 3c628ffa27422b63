"""
Unit Tests — Project and BuildRecord models
===========================================
Configuration-error boundary, record shape and status transitions.
"""
import json
from datetime import timedelta

import pytest

from app.core.errors import ConfigurationError, RecordStateError
from app.models.build_record import BuildRecord, BuildStatus
from app.models.project import BuildStep, Component, Project


def _project(**overrides):
    data = {
        "name": "p",
        "components": {"lib": {"url": "u", "revision": "main"}},
        "steps": [{"directory": "lib", "command": ["make"]}],
    }
    data.update(overrides)
    return Project.from_dict(data)


# ---------------------------------------------------------------------------
# 1. Project validation
# ---------------------------------------------------------------------------
class TestProjectValidation:

    def test_component_name_defaults_to_key(self):
        project = _project()
        assert project.components["lib"].name == "lib"

    def test_explicit_component_name_kept(self):
        project = _project(components={"lib": {"name": "libfoo", "url": "u", "revision": "v1"}})
        assert project.components["lib"].name == "libfoo"

    def test_empty_name_rejected(self):
        with pytest.raises(ConfigurationError):
            _project(name="")

    def test_name_with_slash_rejected(self):
        with pytest.raises(ConfigurationError):
            _project(name="a/b")

    def test_empty_command_rejected(self):
        with pytest.raises(ConfigurationError):
            _project(steps=[{"directory": "lib", "command": []}])

    def test_empty_executable_rejected(self):
        with pytest.raises(ConfigurationError):
            _project(steps=[{"directory": "lib", "command": ["", "x"]}])

    @pytest.mark.parametrize("bad", ["..", ".", "a/b", "..\\x", ""])
    def test_unsafe_component_name_rejected(self, bad):
        with pytest.raises(ConfigurationError):
            _project(components={"lib": {"name": bad or "x/", "url": "u", "revision": "r"}})

    def test_shared_working_copy_name_rejected(self):
        with pytest.raises(ConfigurationError, match="share the working copy name"):
            _project(components={
                "a": {"name": "x", "url": "ua", "revision": "main"},
                "b": {"name": "x", "url": "ub", "revision": "main"},
            })

    def test_explicit_name_colliding_with_other_key_rejected(self):
        with pytest.raises(ConfigurationError):
            _project(components={
                "lib": {"url": "u1", "revision": "main"},
                "other": {"name": "lib", "url": "u2", "revision": "main"},
            })

    def test_caller_component_not_mutated(self):
        component = Component(url="u", revision="main")
        project = Project(name="p", components={"lib": component})
        assert project.components["lib"].name == "lib"
        assert component.name == ""

    def test_unsafe_component_key_rejected(self):
        with pytest.raises(ConfigurationError):
            _project(components={"../evil": {"url": "u", "revision": "r"}})

    @pytest.mark.parametrize("bad", ["/abs", "../up", "lib/../../up"])
    def test_escaping_step_directory_rejected(self, bad):
        with pytest.raises(ConfigurationError):
            _project(steps=[{"directory": bad, "command": ["make"]}])

    def test_nested_step_directory_allowed(self):
        project = _project(steps=[{"directory": "lib/build/../out", "command": ["make"]}])
        assert project.steps[0].directory == "lib/build/../out"

    def test_read_json_rejects_garbage(self):
        with pytest.raises(ConfigurationError):
            Project.read_json("{not json")

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(ConfigurationError):
            Project.from_dict(["p"])

    def test_check_catches_unvalidated_instances(self):
        project = _project()
        project.steps.append(BuildStep.model_construct(description="", directory="", command=[], env={}))
        with pytest.raises(ConfigurationError):
            project.check()

    def test_add_helpers(self):
        project = Project(name="p")
        project.add_component("lib", "https://example.com/lib.git", "main")
        project.add_build_step("compile", "lib", ["make", "all"], env={"CC": "gcc"})
        assert project.components["lib"].url == "https://example.com/lib.git"
        assert project.steps[0].command == ["make", "all"]
        with pytest.raises(ConfigurationError):
            project.add_build_step("broken", "lib", [])
        with pytest.raises(ConfigurationError):
            project.add_component("..", "u", "r")
        project.components["vendored"] = project.components["lib"].model_copy(update={"name": "vendor"})
        with pytest.raises(ConfigurationError):
            project.add_component("vendor", "u", "r")


class TestProjectFiles:

    def test_save_and_load_json(self, tmp_path):
        project = _project(env={"FOO": "1"})
        path = str(tmp_path / "p.json")
        project.save(path)
        assert json.loads((tmp_path / "p.json").read_text())["name"] == "p"
        assert Project.load(path) == project

    def test_load_yaml(self, tmp_path):
        (tmp_path / "p.yaml").write_text(
            "name: p\n"
            "components:\n"
            "  lib: {url: u, revision: main}\n"
            "steps:\n"
            "  - directory: lib\n"
            "    command: [make, test]\n"
        )
        project = Project.load(str(tmp_path / "p.yaml"))
        assert project.steps[0].command == ["make", "test"]
        assert project.components["lib"].name == "lib"

    def test_load_invalid_yaml(self, tmp_path):
        (tmp_path / "p.yml").write_text("name: [unclosed\n")
        with pytest.raises(ConfigurationError):
            Project.load(str(tmp_path / "p.yml"))


# ---------------------------------------------------------------------------
# 2. BuildRecord
# ---------------------------------------------------------------------------
class TestBuildRecord:

    def test_initial_shape_matches_project(self):
        project = _project(
            components={"a": {"url": "ua", "revision": "1"}, "b": {"url": "ub", "revision": "2"}},
            steps=[{"command": ["x"]}, {"command": ["y"]}, {"command": ["z"]}],
        )
        record = BuildRecord.from_project(project)
        assert set(record.components) == {"a", "b"}
        assert len(record.steps) == 3
        assert all(c.status == BuildStatus.NOT_RUN for c in record.components.values())
        assert all(s.status == BuildStatus.NOT_RUN for s in record.steps)
        assert record.components["a"].requested == "1"
        assert record.steps[1].command == ["y"]
        assert record.hash == ""

    def test_step_command_is_copied(self):
        project = _project()
        record = BuildRecord.from_project(project)
        project.steps[0].command.append("extra")
        assert record.steps[0].command == ["make"]

    def test_set_revision_and_status(self):
        record = BuildRecord.from_project(_project())
        record.set_revision("lib", "abc123", 1.5, BuildStatus.OK)
        record.set_status(0, BuildStatus.OK, timedelta(seconds=2), exit_code=0)
        assert record.components["lib"].revision == "abc123"
        assert record.components["lib"].duration == timedelta(seconds=1.5)
        assert record.steps[0].status == BuildStatus.OK
        assert record.status == BuildStatus.OK

    def test_transition_only_once(self):
        record = BuildRecord.from_project(_project())
        record.set_status(0, BuildStatus.FAILED, 1, exit_code=2)
        # Identical update is a no-op
        record.set_status(0, BuildStatus.FAILED, 1, exit_code=2)
        with pytest.raises(RecordStateError):
            record.set_status(0, BuildStatus.OK, 1, exit_code=0)

    def test_cannot_return_to_not_run(self):
        record = BuildRecord.from_project(_project())
        with pytest.raises(RecordStateError):
            record.set_revision("lib", "x", 0, BuildStatus.NOT_RUN)

    def test_unknown_units_rejected(self):
        record = BuildRecord.from_project(_project())
        with pytest.raises(RecordStateError):
            record.set_revision("nope", "x", 0, BuildStatus.OK)
        with pytest.raises(RecordStateError):
            record.set_status(5, BuildStatus.OK, 0)

    def test_read_only_after_finalize(self):
        record = BuildRecord.from_project(_project())
        record.finalize("deadbeef", 3)
        assert record.is_finalized
        with pytest.raises(RecordStateError):
            record.set_revision("lib", "abc", 0, BuildStatus.OK)
        with pytest.raises(RecordStateError):
            record.set_status(0, BuildStatus.OK, 0)
        with pytest.raises(RecordStateError):
            record.finalize("again", 1)

    def test_overall_status(self):
        record = BuildRecord.from_project(_project())
        assert record.status == BuildStatus.NOT_RUN
        record.set_revision("lib", "main", 0, BuildStatus.FAILED, error="boom")
        record.set_status(0, BuildStatus.SKIPPED, 0)
        assert record.status == BuildStatus.FAILED
        assert record.failed_components == ["lib"]

    def test_json_shape(self):
        record = BuildRecord.from_project(_project())
        record.set_revision("lib", "abc123", 2, BuildStatus.OK)
        record.set_status(0, BuildStatus.OK, 2, exit_code=0)
        record.finalize("f" * 64, 4)
        data = json.loads(record.model_dump_json())
        assert data["hash"] == "f" * 64
        assert data["name"] == "p"
        assert data["status"] == "OK"
        assert data["duration"] == "PT4S"
        lib = data["components"]["lib"]
        assert {"duration", "status", "name", "url", "revision"} <= set(lib)
        assert lib["status"] == "OK"
        assert data["steps"][0]["command"] == ["make"]
        assert data["steps"][0]["directory"] == "lib"
