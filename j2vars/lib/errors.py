"""Shared error handling for j2vars."""

from __future__ import annotations

import sys
from typing import NoReturn

import typer


class J2VarsError(Exception):
    """Base exception for j2vars operations."""

    def __init__(self, message: str, exit_code: int = 1) -> None:
        self.message = message
        self.exit_code = exit_code
        super().__init__(message)


class ConfigError(J2VarsError):
    """Raised when j2.yaml is missing, malformed or violates the schema."""


# =============================================================================
# Script backend
# =============================================================================


class ScriptError(J2VarsError):
    """Base exception for script compilation and evaluation errors."""


class CompileFailure(ScriptError):
    """Raised when a script does not parse."""


class RuntimeFailure(ScriptError):
    """Raised when a script fails while evaluating."""


class ArityMismatch(ScriptError):
    """Raised when a function is called with the wrong number of arguments."""

    def __init__(self, expected: int, got: int, name: str | None = None):
        self.expected = expected
        self.got = got
        self.name = name
        target = f"function '{name}'" if name else "function"
        super().__init__(f"{target} expects {expected} argument(s), got {got}")


# =============================================================================
# Process backend
# =============================================================================


class ProcessError(J2VarsError):
    """Base exception for shell command failures.

    ``index`` is set for multi-command producers and names the command
    (zero-based) that failed.
    """

    def __init__(self, message: str, index: int | None = None):
        self.detail = message
        self.index = index
        super().__init__(message)

    def __str__(self) -> str:
        if self.index is None:
            return self.detail
        return f"command #{self.index}: {self.detail}"


class SpawnFailure(ProcessError):
    """Raised when the shell cannot be launched."""

    def __init__(self, reason: str, index: int | None = None):
        self.reason = reason
        super().__init__(f"failed to launch: {reason}", index=index)


class NonZeroExit(ProcessError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, code: int, stderr: str = "", index: int | None = None):
        self.code = code
        self.stderr = stderr
        message = f"exited with status {code}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message, index=index)


class Timeout(ProcessError):
    """Raised when a command runs longer than the configured timeout."""

    def __init__(self, seconds: float, index: int | None = None):
        self.seconds = seconds
        super().__init__(f"timed out after {seconds:g}s", index=index)


# =============================================================================
# Scheduler / rendering
# =============================================================================


class SchedulerError(J2VarsError):
    """Base exception for resolution-pass errors."""


class NameCollisionError(SchedulerError):
    """Raised when two producers declare the same name under the 'error' policy."""

    def __init__(self, name: str, first: int, second: int):
        self.name = name
        self.first = first
        self.second = second
        super().__init__(
            f"'{name}' is already declared by producer #{first} "
            f"(redeclared by producer #{second})"
        )


class RenderError(J2VarsError):
    """Raised when the template cannot be rendered."""


class FilterError(J2VarsError):
    """Raised at render time when a filter call fails."""

    def __init__(self, filter_name: str, message: str):
        self.filter_name = filter_name
        super().__init__(f"filter '{filter_name}': {message}")


def exit_with_error(message: str, exit_code: int = 1) -> NoReturn:
    """Exit the program with an error message."""
    typer.echo(f"Error: {message}", err=True)
    sys.exit(exit_code)


def handle_error(error: Exception) -> NoReturn:
    """Handle and exit on j2vars errors."""
    if isinstance(error, J2VarsError):
        exit_with_error(error.message, error.exit_code)
    else:
        # Unexpected error
        typer.echo(f"Unexpected error: {error}", err=True)
        sys.exit(1)
