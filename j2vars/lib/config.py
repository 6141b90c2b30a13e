"""Configuration management for j2vars.

Schema of j2.yaml:
- default_shell: shell used when a var does not name one
- max_workers / timeout / on_collision: resolution-pass tuning
- vars: list of producers, each one of
  - name + script: expression variable
  - name + cmd: single shell command
  - name + cmds: several shell commands joined by newlines
  - function + arguments + script: function exposed as a template filter
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from j2vars.core.producers import (
    Configuration,
    Function,
    MultiCommand,
    Producer,
    ScriptVariable,
    SingleCommand,
)
from j2vars.lib.errors import ConfigError

CONFIG_FILE_NAME = "j2.yaml"


class ArgumentSpec(BaseModel):
    """A single argument of a script function."""

    model_config = {"extra": "forbid"}

    name: str = Field(description="Argument name, bound positionally")


class VarSpec(BaseModel):
    """One entry of ``vars``: a variable or a function."""

    model_config = {"extra": "forbid"}

    name: str | None = Field(
        default=None, description="Variable name exposed to the template"
    )
    function: str | None = Field(
        default=None, description="Function name exposed as a template filter"
    )
    arguments: list[ArgumentSpec] = Field(
        default_factory=list, description="Function arguments"
    )
    script: str = Field(default="", description="Expression or function body")
    cmd: str | None = Field(default=None, description="Single shell command")
    cmds: list[str] | None = Field(default=None, description="Shell commands")
    shell: str | None = Field(default=None, description="Per-variable shell")
    cwd: str | None = Field(default=None, description="Per-variable working dir")
    env: dict[str, str | int | float | bool] | None = Field(
        default=None, description="Per-variable environment overrides"
    )

    @model_validator(mode="after")
    def check_single_source(self) -> "VarSpec":
        """Ensure exactly one way of producing the value is given."""
        sources = [
            label
            for label, present in (
                ("script", bool(self.script.strip())),
                ("cmd", self.cmd is not None),
                ("cmds", self.cmds is not None),
            )
            if present
        ]
        if len(sources) > 1:
            raise ValueError(f"only one of script/cmd/cmds may be set, got {sources}")

        if self.function is not None:
            if self.cmd is not None or self.cmds is not None:
                raise ValueError(
                    f"function '{self.function}' takes a script, not cmd/cmds"
                )
            for option in ("shell", "cwd", "env"):
                if getattr(self, option) is not None:
                    raise ValueError(
                        f"function '{self.function}' does not accept '{option}'"
                    )
        elif self.arguments:
            raise ValueError("'arguments' is only valid together with 'function'")
        return self

    def environment(self) -> dict[str, str] | None:
        """Environment overrides with scalar values rendered as shell strings."""
        if not self.env:
            return None
        return {
            key: str(value).lower() if isinstance(value, bool) else str(value)
            for key, value in self.env.items()
        }

    def to_producer(self) -> Producer:
        """Convert to the matching producer descriptor."""
        if self.function is not None:
            return Function(
                name=self.function,
                parameter_names=tuple(a.name for a in self.arguments),
                script_source=self.script,
            )
        if self.cmd is not None:
            return SingleCommand(
                name=self.name,
                command=self.cmd,
                shell=self.shell,
                env=self.environment(),
                cwd=self.cwd,
            )
        if self.cmds is not None:
            return MultiCommand(
                name=self.name,
                commands=tuple(self.cmds),
                shell=self.shell,
                env=self.environment(),
                cwd=self.cwd,
            )
        return ScriptVariable(name=self.name, script_source=self.script)


class RootConfig(BaseModel):
    """Top-level j2.yaml configuration."""

    model_config = {"extra": "forbid"}

    default_shell: str | None = Field(
        default=None, description="Shell used when a var does not set one"
    )
    max_workers: int | None = Field(
        default=None, ge=1, description="Producers resolved concurrently"
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Per-command timeout in seconds"
    )
    on_collision: Literal["last-wins", "error"] = Field(
        default="last-wins", description="What to do when two vars share a name"
    )
    vars: list[VarSpec] = Field(default_factory=list, description="Producers")

    def to_configuration(self) -> Configuration:
        return Configuration(
            default_shell=self.default_shell,
            producers=tuple(spec.to_producer() for spec in self.vars),
        )


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "(root)"
        lines.append(f"{location}: {item['msg']}")
    return "; ".join(lines)


def parse_config(text: str, source: str = CONFIG_FILE_NAME) -> RootConfig:
    """Parse j2.yaml text. An empty document is an empty configuration."""
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"{source}: invalid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: top level must be a mapping")

    try:
        return RootConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"{source}: {_format_validation_error(e)}") from e


def load_config(path: Path) -> RootConfig:
    """Load j2.yaml from path."""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    return parse_config(text, source=str(path))
