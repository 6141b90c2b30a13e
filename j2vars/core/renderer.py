"""Template rendering with resolved bindings and filters."""

from __future__ import annotations

import logging
from typing import Any

from jinja2 import BaseLoader, Environment, TemplateError, TemplateSyntaxError

from j2vars.core.scheduler import Resolution
from j2vars.lib.errors import FilterError, RenderError

log = logging.getLogger(__name__)


def _finalize(value: Any) -> Any:
    # Null values render as nothing rather than "None".
    return "" if value is None else value


class TemplateRenderer:
    """Renders Jinja2 templates against a Resolution.

    Filters are registered twice: as filters (``{{ name | shout }}``) and as
    global functions (``{{ today() }}``), so zero-argument functions are usable.
    Undefined variables render empty, which keeps partially resolved runs
    renderable.
    """

    def __init__(self, resolution: Resolution):
        self.resolution = resolution
        self.env = Environment(
            loader=BaseLoader(),
            autoescape=False,
            keep_trailing_newline=True,
            finalize=_finalize,
        )
        for name, template_filter in resolution.filters.items():
            self.env.filters[name] = template_filter
            self.env.globals[name] = template_filter

    def render(self, source: str, name: str = "template") -> str:
        """Render template source with the resolved bindings.

        Raises:
            RenderError: On syntax errors, runtime template errors and
                filter failures.
        """
        log.debug(
            "Rendering %s with %d binding(s), %d filter(s)",
            name,
            len(self.resolution.bindings),
            len(self.resolution.filters),
        )
        try:
            template = self.env.from_string(source)
            return template.render(self.resolution.bindings)
        except TemplateSyntaxError as e:
            raise RenderError(f"{name}:{e.lineno}: {e.message}") from e
        except FilterError as e:
            raise RenderError(f"{name}: {e.message}") from e
        except TemplateError as e:
            raise RenderError(f"{name}: {e.message or e}") from e
        except Exception as e:
            raise RenderError(f"{name}: {type(e).__name__}: {e}") from e


def render(source: str, resolution: Resolution, name: str = "template") -> str:
    """Render template source against a Resolution."""
    return TemplateRenderer(resolution).render(source, name)
