"""Filter adapter - exposes compiled script functions to Jinja templates."""

from __future__ import annotations

from typing import Any

from j2vars.core.producers import Value
from j2vars.core.script import CompiledFunction, to_value
from j2vars.lib.errors import FilterError, ScriptError


class TemplateFilter:
    """Callable registered with the template engine under ``name``.

    Arguments arrive as template-native values (``{{ x | name(y) }}`` passes
    ``x, y``). Any failure is raised as a FilterError naming the filter, at
    render time.
    """

    def __init__(self, name: str, compiled: CompiledFunction):
        self.name = name
        self.compiled = compiled

    def __call__(self, *args: Any) -> Value:
        values = []
        for position, arg in enumerate(args):
            try:
                values.append(to_value(arg))
            except TypeError as e:
                raise FilterError(self.name, f"argument {position}: {e}") from e

        try:
            result = self.compiled.invoke(values)
        except ScriptError as e:
            raise FilterError(self.name, e.message) from e

        # invoke() already narrows to a Value, which Jinja renders natively.
        return result

    def __repr__(self) -> str:
        return f"TemplateFilter({self.name!r}, arity={self.compiled.arity})"


def adapt(name: str, compiled: CompiledFunction) -> TemplateFilter:
    """Wrap a compiled function so the template engine can call it."""
    return TemplateFilter(name, compiled)
