"""Resolution scheduler - turns producers into bindings and filters.

Algorithm:
1. Compile every Function producer (nothing runs) into the filter table
2. Resolve each command producer's ShellSpec
3. Dispatch every value producer concurrently, bounded by ``max_workers``
4. Join, then merge outcomes single-threaded in declaration order

Failures are collected per producer and never cancel siblings. Whether any
failure is fatal is for the caller to decide.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Literal, Mapping, Optional, Sequence

from j2vars.core.filters import TemplateFilter, adapt
from j2vars.core.process import build_shell_spec, run, run_commands
from j2vars.core.producers import (
    Configuration,
    MultiCommand,
    Producer,
    ScriptVariable,
    SingleCommand,
    Value,
    producer_label,
)
from j2vars.core.script import CompiledFunction, ScriptEngine
from j2vars.lib.errors import J2VarsError, NameCollisionError, ProcessError, ScriptError

log = logging.getLogger(__name__)

CollisionPolicy = Literal["last-wins", "error"]

BACKEND_SCRIPT = "script"
BACKEND_PROCESS = "process"
BACKEND_SCHEDULER = "scheduler"


def default_max_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass
class Failure:
    """One producer that did not resolve."""

    producer: str
    backend: str
    error: J2VarsError
    index: int

    def __str__(self) -> str:
        return f"{self.producer} [{self.backend}]: {self.error}"


@dataclass
class Resolution:
    """Result of one resolution pass."""

    bindings: dict[str, Value] = field(default_factory=dict)
    filters: dict[str, TemplateFilter] = field(default_factory=dict)
    failures: list[Failure] = field(default_factory=list)
    value_producers: int = 0
    resolved: int = 0

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def total_failure(self) -> bool:
        """True when a value producer failed and no binding was produced.

        Unnamed producers that succeed do not count: they bind nothing.
        """
        return (
            self.value_producers > 0
            and self.resolved < self.value_producers
            and not self.bindings
        )


@dataclass
class _Outcome:
    value: Value = None
    error: Optional[J2VarsError] = None
    backend: str = BACKEND_SCRIPT


class Resolver:
    """Resolves a Configuration into a Resolution."""

    def __init__(
        self,
        configuration: Configuration,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
        on_collision: CollisionPolicy = "last-wins",
        base_env: Optional[Mapping[str, str]] = None,
    ):
        """Initialize the resolver.

        Args:
            configuration: Producers plus the default shell.
            max_workers: Upper bound on concurrently running producers.
            timeout: Per-command timeout in seconds. None waits forever.
            on_collision: "last-wins" lets the later declaration of a name win;
                "error" keeps the first and records a failure for the rest.
            base_env: Environment producers' ``env`` is layered over.
                Defaults to ``os.environ``.
        """
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if on_collision not in ("last-wins", "error"):
            raise ValueError(f"Unknown collision policy: {on_collision!r}")

        self.configuration = configuration
        self.max_workers = max_workers or default_max_workers()
        self.timeout = timeout
        self.on_collision = on_collision
        self.base_env = base_env

    def dispatch_order(
        self, entries: Sequence[tuple[int, Producer]]
    ) -> Iterable[tuple[int, Producer]]:
        """Order in which value producers are handed to the pool.

        Any order yields the same Resolution; subclasses may reorder.
        """
        return entries

    def resolve(self) -> Resolution:
        """Run a full resolution pass on a fresh event loop."""
        return asyncio.run(self.resolve_async())

    async def resolve_async(self) -> Resolution:
        """Run a full resolution pass on the running event loop."""
        engine = ScriptEngine()
        resolution = Resolution()

        functions = self._compile_functions(engine, resolution)
        namespace = MappingProxyType(functions)

        entries = self.configuration.value_producers
        resolution.value_producers = len(entries)

        semaphore = asyncio.Semaphore(self.max_workers)
        tasks: dict[int, asyncio.Task[_Outcome]] = {}
        for index, producer in self.dispatch_order(entries):
            tasks[index] = asyncio.create_task(
                self._resolve_one(engine, namespace, semaphore, index, producer)
            )
        log.debug(
            "Dispatched %d producer(s) with up to %d worker(s)",
            len(tasks),
            self.max_workers,
        )
        await asyncio.gather(*tasks.values())

        claimed: dict[str, int] = {}
        for index, producer in entries:
            self._merge(resolution, claimed, index, producer, tasks[index].result())
        resolution.failures.sort(key=lambda f: f.index)

        log.info(
            "Resolved %d/%d variable(s), %d filter(s), %d failure(s)",
            resolution.resolved,
            resolution.value_producers,
            len(resolution.filters),
            len(resolution.failures),
        )
        return resolution

    def _compile_functions(
        self, engine: ScriptEngine, resolution: Resolution
    ) -> dict[str, CompiledFunction]:
        """Compile Function producers into the filter table.

        Every function shares the returned namespace, so bodies may call
        each other by name.
        """
        namespace: dict[str, CompiledFunction] = {}
        claimed: dict[str, int] = {}

        for index, producer in self.configuration.functions:
            try:
                compiled = engine.compile_function(
                    producer.script_source,
                    producer.parameter_names,
                    name=producer.name,
                    functions=namespace,
                )
            except ScriptError as e:
                self._fail(resolution, index, producer, BACKEND_SCRIPT, e)
                continue

            if not self._claim(resolution, claimed, producer.name, index, producer):
                continue
            namespace[producer.name] = compiled
            resolution.filters[producer.name] = adapt(producer.name, compiled)

        return namespace

    async def _resolve_one(
        self,
        engine: ScriptEngine,
        functions: Mapping[str, CompiledFunction],
        semaphore: asyncio.Semaphore,
        index: int,
        producer: Producer,
    ) -> _Outcome:
        async with semaphore:
            label = producer_label(index, producer)
            try:
                if isinstance(producer, ScriptVariable):
                    value = await asyncio.to_thread(
                        engine.compile_and_eval,
                        producer.script_source,
                        producer.name,
                        functions,
                    )
                    outcome = _Outcome(value=value, backend=BACKEND_SCRIPT)
                else:
                    value = await self._run_command(producer)
                    outcome = _Outcome(value=value, backend=BACKEND_PROCESS)
            except ScriptError as e:
                outcome = _Outcome(error=e, backend=BACKEND_SCRIPT)
            except ProcessError as e:
                outcome = _Outcome(error=e, backend=BACKEND_PROCESS)

            if outcome.error is None:
                log.debug("Resolved %s", label)
            else:
                log.debug("Failed to resolve %s: %s", label, outcome.error)
            return outcome

    async def _run_command(self, producer: Producer) -> str:
        if isinstance(producer, SingleCommand):
            spec = build_shell_spec(
                producer.command,
                shell=producer.shell,
                default_shell=self.configuration.default_shell,
                env=producer.env,
                cwd=producer.cwd,
                base_env=self.base_env,
            )
            return await run(spec, timeout=self.timeout)

        if isinstance(producer, MultiCommand):
            base = build_shell_spec(
                "",
                shell=producer.shell,
                default_shell=self.configuration.default_shell,
                env=producer.env,
                cwd=producer.cwd,
                base_env=self.base_env,
            )
            return await run_commands(producer.commands, base, timeout=self.timeout)

        raise TypeError(f"Not a command producer: {producer!r}")

    def _merge(
        self,
        resolution: Resolution,
        claimed: dict[str, int],
        index: int,
        producer: Producer,
        outcome: _Outcome,
    ) -> None:
        if outcome.error is not None:
            self._fail(resolution, index, producer, outcome.backend, outcome.error)
            return

        resolution.resolved += 1
        name = producer.name
        if name is None:
            return
        if self._claim(resolution, claimed, name, index, producer):
            resolution.bindings[name] = outcome.value

    def _claim(
        self,
        resolution: Resolution,
        claimed: dict[str, int],
        name: str,
        index: int,
        producer: Producer,
    ) -> bool:
        """Apply the collision policy. Returns True if ``producer`` may write ``name``."""
        first = claimed.get(name)
        if first is None:
            claimed[name] = index
            return True

        if self.on_collision == "error":
            self._fail(
                resolution,
                index,
                producer,
                BACKEND_SCHEDULER,
                NameCollisionError(name, first, index),
            )
            return False

        log.debug("'%s' redeclared by producer #%d, overriding #%d", name, index, first)
        claimed[name] = index
        return True

    @staticmethod
    def _fail(
        resolution: Resolution,
        index: int,
        producer: Producer,
        backend: str,
        error: J2VarsError,
    ) -> None:
        failure = Failure(
            producer=producer_label(index, producer),
            backend=backend,
            error=error,
            index=index,
        )
        log.info("%s", failure)
        resolution.failures.append(failure)


def resolve(configuration: Configuration, **kwargs) -> Resolution:
    """Resolve a configuration with a fresh Resolver."""
    return Resolver(configuration, **kwargs).resolve()
