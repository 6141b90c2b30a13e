"""Producer descriptors - what produces each variable or filter."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple, Union

# The closed set of values a producer can yield.
Value = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class ScriptVariable:
    """A variable whose value is an expression in the embedded script language."""

    name: Optional[str]
    script_source: str = ""

    kind = "script"


@dataclass(frozen=True)
class SingleCommand:
    """A variable whose value is the trimmed stdout of one shell command."""

    name: Optional[str]
    command: str
    shell: Optional[str] = None
    env: Optional[Mapping[str, str]] = None
    cwd: Optional[str] = None

    kind = "cmd"


@dataclass(frozen=True)
class MultiCommand:
    """A variable whose value joins the output of several commands with newlines."""

    name: Optional[str]
    commands: Tuple[str, ...]
    shell: Optional[str] = None
    env: Optional[Mapping[str, str]] = None
    cwd: Optional[str] = None

    kind = "cmds"


@dataclass(frozen=True)
class Function:
    """A script function exposed to templates as a filter."""

    name: str
    parameter_names: Tuple[str, ...] = ()
    script_source: str = ""

    kind = "function"


Producer = Union[ScriptVariable, SingleCommand, MultiCommand, Function]
CommandProducer = Union[SingleCommand, MultiCommand]


@dataclass(frozen=True)
class Configuration:
    """Everything a resolution pass needs: the default shell and the producers.

    Producer order is the declaration order. It decides collision winners and
    error reporting, never execution order.
    """

    default_shell: Optional[str] = None
    producers: Tuple[Producer, ...] = field(default_factory=tuple)

    @property
    def functions(self) -> Tuple[Tuple[int, Function], ...]:
        return tuple(
            (i, p) for i, p in enumerate(self.producers) if isinstance(p, Function)
        )

    @property
    def value_producers(self) -> Tuple[Tuple[int, Producer], ...]:
        return tuple(
            (i, p)
            for i, p in enumerate(self.producers)
            if not isinstance(p, Function)
        )


@dataclass(frozen=True)
class ShellSpec:
    """Fully materialized plan for one shell invocation."""

    executable: str
    command_line: str
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Optional[Path] = None

    @property
    def argv(self) -> list[str]:
        return [self.executable, "-c", self.command_line]

    def with_command(self, command_line: str) -> "ShellSpec":
        """Same shell, env and cwd, different command line."""
        return ShellSpec(
            executable=self.executable,
            command_line=command_line,
            env=self.env,
            cwd=self.cwd,
        )


def producer_label(index: int, producer: Producer) -> str:
    """Name used when reporting on a producer: its name, or its position."""
    return producer.name or f"#{index}"
