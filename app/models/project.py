"""
Project Model
=============
Pydantic models for the declarative definition of a build.

    Project     — name, components, ordered steps, project-scope env
    Component   — one source dependency checked out under the build root
    BuildStep   — one command run in a directory relative to the build root

Validation is the configuration-error boundary: anything rejected here never
reaches the pipeline, so no external process is started for it.

Invariants:
    - Project.name is non-empty and matches PROJECT_NAME_PATTERN
      (it is the persistence key and a URL path segment).
    - Component keys and names are single safe path segments, so checkouts
      stay confined to <build_root>/<name>.
    - No two components share a working copy name.
    - BuildStep.command has at least one element and a non-empty executable.
    - BuildStep.directory is relative and never escapes the build root.
"""
import json
import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from app.core.constants import PROJECT_NAME_RE
from app.core.errors import ConfigurationError
from app.utils.path_utils import is_confined_relative_path, is_safe_segment

logger = logging.getLogger(__name__)


class Component(BaseModel):
    name: str = ""
    url: str
    revision: str

    @field_validator("name")
    @classmethod
    def _safe_name(cls, v: str) -> str:
        if v and not is_safe_segment(v):
            raise ValueError(f"component name must be a single path segment: {v!r}")
        return v

    @field_validator("url", "revision")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class BuildStep(BaseModel):
    description: str = ""
    directory: str = ""
    command: List[str] = Field(min_length=1)
    env: Dict[str, str] = Field(default_factory=dict)

    @field_validator("command")
    @classmethod
    def _executable_present(cls, v: List[str]) -> List[str]:
        if not v[0]:
            raise ValueError("command executable must not be empty")
        return v

    @field_validator("directory")
    @classmethod
    def _confined_directory(cls, v: str) -> str:
        if not is_confined_relative_path(v):
            raise ValueError(f"step directory must stay inside the build root: {v!r}")
        return v


class Project(BaseModel):
    name: str
    components: Dict[str, Component] = Field(default_factory=dict)
    steps: List[BuildStep] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _valid_name(cls, v: str) -> str:
        if not v:
            raise ValueError("project name must not be empty")
        if not PROJECT_NAME_RE.match(v):
            raise ValueError(f"project name may only contain letters, digits, '-' and '_': {v!r}")
        return v

    @model_validator(mode="after")
    def _component_names(self) -> "Project":
        owners: Dict[str, str] = {}
        for key, component in list(self.components.items()):
            if not is_safe_segment(key):
                raise ValueError(f"component key must be a single path segment: {key!r}")
            if not component.name:
                # Copy: the caller may still hold this instance
                component = component.model_copy(update={"name": key})
                self.components[key] = component
            if component.name in owners:
                raise ValueError(
                    f"components {owners[component.name]!r} and {key!r} share the "
                    f"working copy name {component.name!r}"
                )
            owners[component.name] = key
        return self

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_dict(cls, data: Any) -> "Project":
        """Validate a decoded document, raising ConfigurationError on failure."""
        if not isinstance(data, dict):
            raise ConfigurationError("project definition must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"invalid project definition: {e}") from e

    @classmethod
    def read_json(cls, text: str) -> "Project":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"project body is not valid JSON: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: str) -> "Project":
        """
        Load a project from a JSON or YAML file.

        Files ending in .yaml/.yml are parsed with PyYAML, anything else as JSON.
        OSError propagates; malformed content raises ConfigurationError.
        """
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
        if path.endswith((".yaml", ".yml")):
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"{path}: invalid YAML: {e}") from e
            return cls.from_dict(data)
        try:
            return cls.read_json(content)
        except ConfigurationError as e:
            raise ConfigurationError(f"{path}: {e}") from e

    def save(self, path: str) -> None:
        """Write the project as indented JSON, replacing the file atomically."""
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(mode="json"), f, indent=4)
            f.write("\n")
        os.replace(tmp_path, path)

    def check(self) -> "Project":
        """
        Re-run validation on this instance.

        Catches definitions built with ``model_construct`` or mutated after
        validation; used by the pipeline before any process is launched.
        """
        try:
            return type(self).model_validate(self.model_dump())
        except ValidationError as e:
            raise ConfigurationError(f"invalid project definition: {e}") from e

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------
    def add_component(self, name: str, url: str, revision: str) -> Component:
        if not is_safe_segment(name):
            raise ConfigurationError(f"component name must be a single path segment: {name!r}")
        for key, existing in self.components.items():
            if key != name and existing.name == name:
                raise ConfigurationError(f"component {key!r} already checks out into {name!r}")
        try:
            component = Component(name=name, url=url, revision=revision)
        except ValidationError as e:
            raise ConfigurationError(f"invalid component {name!r}: {e}") from e
        self.components[name] = component
        return component

    def add_build_step(
        self,
        description: str,
        directory: str,
        command: List[str],
        env: Optional[Dict[str, str]] = None,
    ) -> BuildStep:
        try:
            step = BuildStep(
                description=description,
                directory=directory,
                command=list(command),
                env=dict(env or {}),
            )
        except ValidationError as e:
            raise ConfigurationError(f"invalid build step {description!r}: {e}") from e
        self.steps.append(step)
        return step
