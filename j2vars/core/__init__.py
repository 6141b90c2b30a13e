"""Resolution core: producers, backends, scheduler and renderer."""

from j2vars.core.filters import TemplateFilter, adapt
from j2vars.core.process import FALLBACK_SHELL, build_shell_spec, resolve_shell
from j2vars.core.producers import (
    Configuration,
    Function,
    MultiCommand,
    ScriptVariable,
    ShellSpec,
    SingleCommand,
)
from j2vars.core.renderer import TemplateRenderer
from j2vars.core.scheduler import Failure, Resolution, Resolver, resolve
from j2vars.core.script import CompiledFunction, ScriptEngine

__all__ = [
    "FALLBACK_SHELL",
    "CompiledFunction",
    "Configuration",
    "Failure",
    "Function",
    "MultiCommand",
    "Resolution",
    "Resolver",
    "ScriptEngine",
    "ScriptVariable",
    "ShellSpec",
    "SingleCommand",
    "TemplateFilter",
    "TemplateRenderer",
    "adapt",
    "build_shell_spec",
    "resolve",
    "resolve_shell",
]
