"""CLI commands"""

from .render import info_command, render_command

__all__ = ["info_command", "render_command"]
