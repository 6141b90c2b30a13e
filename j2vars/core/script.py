"""Script backend - sandboxed Jinja2 expressions as the embedded script language.

Scripts are single expressions (``"2 + 2"``, ``'name | upper'``,
``'"x".join(items)'``) evaluated in an immutable sandbox. Every evaluation
gets a fresh context, so scripts cannot leak state into each other.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Sequence

from jinja2 import StrictUndefined, TemplateError, TemplateSyntaxError, Undefined
from jinja2.exceptions import UndefinedError
from jinja2.sandbox import ImmutableSandboxedEnvironment

from j2vars.core.producers import Value
from j2vars.lib.errors import ArityMismatch, CompileFailure, RuntimeFailure, ScriptError

log = logging.getLogger(__name__)

Expression = Callable[..., Any]


def to_value(obj: Any) -> Value:
    """Narrow an arbitrary Python object to the closed Value variant.

    Raises:
        TypeError: If the object is not a string, number, boolean or None.
    """
    if obj is None or isinstance(obj, (bool, int, float)):
        return obj
    if isinstance(obj, str):
        # Drops Markup and other str subclasses down to plain text.
        return str(obj)
    if isinstance(obj, Undefined):
        raise TypeError(_undefined_message(obj))
    raise TypeError(f"value of type '{type(obj).__name__}' is not representable")


def _undefined_message(value: Undefined) -> str:
    try:
        str(value)
    except UndefinedError as exc:
        return exc.message or "undefined value"
    return "undefined value"


def _describe(source: str, name: Optional[str]) -> str:
    if name:
        return f"'{name}'"
    preview = source.strip().splitlines()[0] if source.strip() else ""
    return f"'{preview[:40]}'"


class ScriptEngine:
    """Compiles and evaluates scripts.

    One engine is shared by a resolution pass. It holds no per-script state:
    the only thing scripts see besides their own arguments is the read-only
    function namespace handed in at call time.
    """

    def __init__(self) -> None:
        self.env = ImmutableSandboxedEnvironment(undefined=StrictUndefined)

    def compile(self, source: str, name: Optional[str] = None) -> Expression:
        """Compile an expression into a callable taking the context as kwargs.

        Empty source compiles to a no-op returning None.

        Raises:
            CompileFailure: If the source does not parse.
        """
        if not source.strip():
            return lambda **_: None

        try:
            return self.env.compile_expression(source, undefined_to_none=False)
        except TemplateSyntaxError as exc:
            log.debug(
                "Compile of %s failed at line %s", _describe(source, name), exc.lineno
            )
            raise CompileFailure(
                f"syntax error in {_describe(source, name)}: {exc.message}"
            ) from exc

    def evaluate(
        self,
        expression: Expression,
        context: Mapping[str, Any],
        source: str = "",
        name: Optional[str] = None,
    ) -> Value:
        """Run a compiled expression and narrow its result to a Value.

        Raises:
            RuntimeFailure: If evaluation fails or yields a non-Value result.
            ScriptError: Errors raised by nested function calls propagate as-is.
        """
        try:
            result = expression(**context)
        except ScriptError:
            raise
        except TemplateError as exc:
            raise RuntimeFailure(
                f"error evaluating {_describe(source, name)}: {exc.message or exc}"
            ) from exc
        except Exception as exc:
            raise RuntimeFailure(
                f"error evaluating {_describe(source, name)}: "
                f"{type(exc).__name__}: {exc}"
            ) from exc

        try:
            return to_value(result)
        except TypeError as exc:
            raise RuntimeFailure(
                f"error evaluating {_describe(source, name)}: {exc}"
            ) from exc

    def compile_and_eval(
        self,
        source: str,
        name: Optional[str] = None,
        functions: Optional[Mapping[str, "CompiledFunction"]] = None,
    ) -> Value:
        """Compile and evaluate a bare expression."""
        expression = self.compile(source, name)
        return self.evaluate(expression, dict(functions or {}), source, name)

    def compile_function(
        self,
        source: str,
        params: Sequence[str],
        name: Optional[str] = None,
        functions: Optional[Mapping[str, "CompiledFunction"]] = None,
    ) -> "CompiledFunction":
        """Compile a function body with named positional parameters.

        Raises:
            CompileFailure: If the body does not parse or a parameter name
                is invalid or repeated.
        """
        seen: set[str] = set()
        for param in params:
            if not param.isidentifier():
                raise CompileFailure(
                    f"invalid parameter name {param!r} in function {_describe(source, name)}"
                )
            if param in seen:
                raise CompileFailure(
                    f"duplicate parameter {param!r} in function {_describe(source, name)}"
                )
            seen.add(param)

        expression = self.compile(source, name)
        return CompiledFunction(
            engine=self,
            expression=expression,
            params=tuple(params),
            source=source,
            name=name,
            functions=functions,
        )


class CompiledFunction:
    """A compiled script function with fixed arity."""

    def __init__(
        self,
        engine: ScriptEngine,
        expression: Expression,
        params: tuple[str, ...],
        source: str = "",
        name: Optional[str] = None,
        functions: Optional[Mapping[str, "CompiledFunction"]] = None,
    ):
        self.engine = engine
        self.expression = expression
        self.params = params
        self.source = source
        self.name = name
        # Shared with the other functions of the same pass, filled in by the
        # scheduler once every function is compiled.
        self.functions: Mapping[str, CompiledFunction] = (
            functions if functions is not None else {}
        )

    @property
    def arity(self) -> int:
        return len(self.params)

    def invoke(self, args: Sequence[Any]) -> Value:
        """Call the function with positional arguments.

        Raises:
            ArityMismatch: If ``len(args)`` differs from the declared arity.
            RuntimeFailure: If the body fails to evaluate.
        """
        if len(args) != self.arity:
            raise ArityMismatch(self.arity, len(args), self.name)

        context: dict[str, Any] = dict(self.functions)
        context.update(zip(self.params, args))
        return self.engine.evaluate(self.expression, context, self.source, self.name)

    def __call__(self, *args: Any) -> Value:
        return self.invoke(args)

    def __repr__(self) -> str:
        return f"CompiledFunction({self.name or '<anonymous>'}({', '.join(self.params)}))"


_default_engine: Optional[ScriptEngine] = None


def _engine() -> ScriptEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = ScriptEngine()
    return _default_engine


def compile_and_eval(
    source: str,
    name: Optional[str] = None,
    functions: Optional[Mapping[str, CompiledFunction]] = None,
) -> Value:
    """Evaluate an expression with the default engine."""
    return _engine().compile_and_eval(source, name, functions)


def compile_function(
    source: str,
    params: Sequence[str],
    name: Optional[str] = None,
) -> CompiledFunction:
    """Compile a function with the default engine."""
    return _engine().compile_function(source, params, name)
