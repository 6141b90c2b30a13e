"""j2vars - render Jinja templates with variables resolved from j2.yaml."""

from j2vars._version import __version__

__all__ = ["__version__"]
