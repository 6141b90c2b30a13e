"""Render command - resolve j2.yaml and render a template"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from j2vars._version import __version__
from j2vars.core.process import FALLBACK_SHELL
from j2vars.core.renderer import TemplateRenderer
from j2vars.core.scheduler import Resolution, Resolver
from j2vars.lib.config import CONFIG_FILE_NAME, load_config
from j2vars.lib.errors import J2VarsError

from .utils import console

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PARTIAL = 2


def report_failures(resolution: Resolution) -> None:
    """Print every failed producer with its backend and message."""
    for failure in resolution.failures:
        console.print(
            f"[red]✗[/red] [bold]{escape(failure.producer)}[/bold] "
            f"[dim]\\[{failure.backend}][/dim] {escape(str(failure.error))}"
        )


def render_command(
    template: Path,
    allow_partial: bool = False,
    config_path: Optional[Path] = None,
) -> None:
    """Resolve every producer, render the template and print it to stdout.

    Exits with EXIT_FAILURE when nothing could be resolved, and with
    EXIT_PARTIAL when the template rendered but some producers failed
    (unless ``allow_partial``).

    Raises:
        J2VarsError: Config load, template read and render failures.
    """
    config_path = config_path or Path.cwd() / CONFIG_FILE_NAME
    root = load_config(config_path)

    if not template.is_file():
        raise J2VarsError(f"Template not found: {template}")
    try:
        source = template.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise J2VarsError(f"Cannot read template {template}: {e}") from e

    resolver = Resolver(
        root.to_configuration(),
        max_workers=root.max_workers,
        timeout=root.timeout,
        on_collision=root.on_collision,
    )
    resolution = resolver.resolve()
    report_failures(resolution)

    if resolution.total_failure:
        console.print("[red]Error:[/red] no variable could be resolved")
        raise typer.Exit(EXIT_FAILURE)

    output = TemplateRenderer(resolution).render(source, name=str(template))
    typer.echo(output)

    if resolution.failures:
        log.info("%d producer(s) failed", len(resolution.failures))
        if not allow_partial:
            raise typer.Exit(EXIT_PARTIAL)


def info_command() -> None:
    """Print version and shell details."""
    typer.echo(f"j2vars v{__version__}")
    typer.echo(f"Fallback shell: {FALLBACK_SHELL}")
    location = shutil.which(FALLBACK_SHELL)
    typer.echo(f"Fallback shell path: {location or 'not found on PATH'}")

    config_path = Path.cwd() / CONFIG_FILE_NAME
    state = "found" if config_path.exists() else "missing"
    typer.echo(f"Config: {config_path} ({state})")
