"""Tests for template rendering."""

import pytest

from j2vars.core.producers import Configuration, Function, ScriptVariable
from j2vars.core.renderer import TemplateRenderer, render
from j2vars.core.scheduler import Resolution, resolve
from j2vars.lib.errors import RenderError


@pytest.fixture
def resolution():
    return resolve(
        Configuration(
            producers=(
                ScriptVariable("name", '"World"'),
                ScriptVariable("count", "3"),
                ScriptVariable("nothing", ""),
                Function("shout", ("s",), "s | upper"),
                Function("wrap", ("s", "left", "right"), "left ~ s ~ right"),
                Function("answer", (), "42"),
            )
        )
    )


def test_bindings(resolution):
    assert render("Hello, {{ name }}!", resolution) == "Hello, World!"


def test_filter(resolution):
    assert render("{{ name | shout }}", resolution) == "WORLD"


def test_filter_with_arguments(resolution):
    assert render("{{ name | wrap('[', ']') }}", resolution) == "[World]"


def test_function_as_global(resolution):
    assert render("{{ answer() }} {{ shout('hi') }}", resolution) == "42 HI"


def test_builtin_filters_still_available(resolution):
    assert render("{{ name | lower }} {{ count + 1 }}", resolution) == "world 4"


def test_none_renders_empty(resolution):
    assert render("[{{ nothing }}]", resolution) == "[]"


def test_missing_variable_renders_empty(resolution):
    assert render("[{{ not_declared }}]", resolution) == "[]"


def test_no_autoescape(resolution):
    assert render("{{ '<b>&</b>' }}", resolution) == "<b>&</b>"


def test_trailing_newline_kept(resolution):
    assert render("{{ name }}\n", resolution) == "World\n"


def test_control_flow(resolution):
    source = "{% for i in range(count) %}{{ i }}{% endfor %}"
    assert render(source, resolution) == "012"


def test_syntax_error_reports_location(resolution):
    with pytest.raises(RenderError, match=r"motd\.j2:2:"):
        render("ok\n{% if %}", resolution, name="motd.j2")


def test_filter_error(resolution):
    with pytest.raises(RenderError, match="filter 'answer'"):
        render("{{ name | answer }}", resolution)


def test_unknown_filter(resolution):
    with pytest.raises(RenderError):
        render("{{ name | no_such_filter }}", resolution)


def test_empty_resolution():
    renderer = TemplateRenderer(Resolution())
    assert renderer.render("static text") == "static text"
