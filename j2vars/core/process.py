"""Process backend - runs shell commands and captures their output.

Shell selection order:
1. The producer's own ``shell``
2. The configuration's ``default_shell``
3. ``FALLBACK_SHELL``
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Mapping, Optional, Sequence

from j2vars.core.producers import ShellSpec
from j2vars.lib.errors import NonZeroExit, ProcessError, SpawnFailure, Timeout

log = logging.getLogger(__name__)

FALLBACK_SHELL = "sh"

# Unicode White_Space property.
WHITESPACE = (
    "\t\n\x0b\x0c\r \x85\xa0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000"
)


def resolve_shell(shell: Optional[str], default_shell: Optional[str]) -> str:
    """Pick the shell executable for a command. Empty strings count as unset."""
    return shell or default_shell or FALLBACK_SHELL


def build_shell_spec(
    command: str,
    shell: Optional[str] = None,
    default_shell: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> ShellSpec:
    """Materialize the execution plan for one command.

    Args:
        command: Command line handed to ``<shell> -c``.
        shell: Producer-level shell override.
        default_shell: Configuration-level default shell.
        env: Producer environment, layered over ``base_env``.
        cwd: Working directory; ``~`` is expanded.
        base_env: Ambient environment. Defaults to ``os.environ``.

    Returns:
        The resolved ShellSpec. Neither ``env`` nor ``base_env`` is mutated.
    """
    merged = dict(os.environ if base_env is None else base_env)
    if env:
        merged.update({str(k): str(v) for k, v in env.items()})

    return ShellSpec(
        executable=resolve_shell(shell, default_shell),
        command_line=command,
        env=merged,
        cwd=Path(os.path.expanduser(cwd)) if cwd else None,
    )


def normalize_output(raw: bytes) -> str:
    """Decode stdout and trim trailing whitespace only.

    Only Unicode White_Space is trimmed; other control characters
    (``\\x1c``-``\\x1f``, which ``str.isspace`` accepts) are kept.
    """
    return raw.decode("utf-8", errors="replace").rstrip(WHITESPACE)


def _check_nul(spec: ShellSpec) -> None:
    """Reject NUL bytes, which no argv, env or path can carry."""
    fields = [("command", a) for a in spec.argv]
    fields += [("environment", item) for pair in spec.env.items() for item in pair]
    if spec.cwd is not None:
        fields.append(("cwd", str(spec.cwd)))

    for label, value in fields:
        if "\0" in value:
            raise SpawnFailure(f"embedded null byte in {label}")


def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it spawned."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            process.kill()
        except ProcessLookupError:
            pass


async def run(spec: ShellSpec, timeout: Optional[float] = None) -> str:
    """Execute one ShellSpec and return its normalized stdout.

    Raises:
        SpawnFailure: If the shell or working directory cannot be used.
        NonZeroExit: If the command exits with a non-zero status.
        Timeout: If ``timeout`` elapses; the process group is killed.
    """
    log.debug(
        "Running %r with %s (cwd=%s)", spec.command_line, spec.executable, spec.cwd
    )

    _check_nul(spec)

    try:
        process = await asyncio.create_subprocess_exec(
            *spec.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(spec.cwd) if spec.cwd is not None else None,
            env=dict(spec.env),
            start_new_session=True,
        )
    except OSError as e:
        raise SpawnFailure(f"{spec.executable}: {e.strerror or e}") from e
    except ValueError as e:
        raise SpawnFailure(f"{spec.executable}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill(process)
        await process.wait()
        raise Timeout(timeout or 0)

    if process.returncode != 0:
        raise NonZeroExit(
            process.returncode,
            stderr.decode("utf-8", errors="replace").strip(),
        )

    return normalize_output(stdout)


async def run_commands(
    commands: Sequence[str],
    base: ShellSpec,
    timeout: Optional[float] = None,
) -> str:
    """Run commands one after another with the same shell, env and cwd.

    Outputs are joined with a single newline. The first failing command stops
    the sequence; its error carries the command's index.
    """
    outputs: list[str] = []
    for index, command in enumerate(commands):
        try:
            outputs.append(await run(base.with_command(command), timeout=timeout))
        except ProcessError as e:
            e.index = index
            raise
    return "\n".join(outputs)
