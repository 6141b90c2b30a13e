"""j2vars CLI Main Entry Point

Renders a Jinja2 template whose variables come from j2.yaml: script
expressions, shell commands and script functions exposed as filters.

Usage:
    j2vars -t template.j2            # Render template with ./j2.yaml
    j2vars -t template.j2 -v         # Also log the resolution summary
    j2vars -t t.j2 --allow-partial   # Exit 0 even if some vars failed
    j2vars -i                        # Show version and shell info
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from ._version import __version__
from .commands import info_command, render_command
from .commands.utils import setup_logging
from .lib.errors import J2VarsError, handle_error

typer_app = typer.Typer(add_completion=False)


@typer_app.command()
def cli(
    template: Optional[Path] = typer.Option(
        None, "-t", "--template", help="Path to the Jinja template."
    ),
    info: bool = typer.Option(
        False, "-i", "--info", help="Print version and shell info and exit."
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging."),
    allow_partial: bool = typer.Option(
        False,
        "--allow-partial",
        help="Exit 0 when the template rendered even if some variables failed.",
    ),
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    """Render a Jinja template with variables resolved from j2.yaml.

    Examples:
        j2vars -t motd.j2           Render motd.j2
        j2vars -i                   Show version and shell info
    """
    setup_logging(verbose)

    if version:
        typer.echo(f"j2vars {__version__}")
        raise typer.Exit()

    if info:
        info_command()
        raise typer.Exit()

    if template is None:
        typer.secho(
            "Error: Missing option '-t' / '--template'.",
            err=True,
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)

    try:
        render_command(template, allow_partial=allow_partial)
    except J2VarsError as exc:
        handle_error(exc)


def app() -> None:
    """Entry point for the CLI."""
    typer_app()


if __name__ == "__main__":
    app()
