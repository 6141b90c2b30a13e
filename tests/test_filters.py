"""Tests for the filter adapter."""

import pytest
from jinja2 import Environment, StrictUndefined

from j2vars.core.filters import TemplateFilter, adapt
from j2vars.core.script import compile_function
from j2vars.lib.errors import FilterError


def make_filter(name, params, source):
    return adapt(name, compile_function(source, params, name=name))


def test_adapt_returns_named_filter():
    f = make_filter("shout", ["s"], "s | upper")
    assert isinstance(f, TemplateFilter)
    assert f.name == "shout"
    assert "arity=1" in repr(f)


def test_filter_call():
    assert make_filter("shout", ["s"], "s | upper")("hi") == "HI"


def test_filter_with_extra_arguments():
    join = make_filter("join_with", ["a", "sep", "b"], "a ~ sep ~ b")
    assert join("x", "-", "y") == "x-y"


def test_zero_arity_filter():
    assert make_filter("answer", [], "42")() == 42


def test_arity_mismatch_names_filter():
    f = make_filter("answer", [], "42")
    with pytest.raises(FilterError, match="filter 'answer'") as excinfo:
        f("piped")
    assert excinfo.value.filter_name == "answer"
    assert "expects 0 argument(s), got 1" in str(excinfo.value)


def test_runtime_failure_names_filter():
    f = make_filter("broken", ["x"], "x.nope()")
    with pytest.raises(FilterError, match="filter 'broken'"):
        f("value")


def test_unrepresentable_argument():
    f = make_filter("shout", ["s"], "s | upper")
    with pytest.raises(FilterError, match="argument 0"):
        f(["a", "list"])


def test_undefined_argument():
    undefined = Environment(undefined=StrictUndefined).undefined(name="missing")
    f = make_filter("shout", ["s"], "s | upper")
    with pytest.raises(FilterError, match="missing"):
        f(undefined)
