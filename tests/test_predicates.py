"""Tests for environment predicates.

Tests cover:
- Composable predicate objects
- Missing attributes
- Expression parsing
- Malformed expressions
"""

import pytest

from qualitygate.errors import ConfigurationError
from qualitygate.model import Environment
from qualitygate.predicates import (
    ALWAYS,
    All,
    AnyOf,
    Eq,
    In,
    Not,
    NotEq,
    compile_predicate,
    evaluates,
    on_os,
    parse_predicate,
)

LINUX = Environment("ubuntu-latest", attrs={"os": "Linux", "arch": "x86_64"})
MAC = Environment("macos-latest", attrs={"os": "macOS", "arch": "arm64"})
WINDOWS = Environment("windows-latest", attrs={"os": "Windows"})


class TestPredicateObjects:
    def test_absent_predicate_is_true(self):
        assert evaluates(None, LINUX) is True
        assert evaluates(None, {}) is True

    def test_eq(self):
        assert evaluates(Eq("os", "Linux"), LINUX)
        assert not evaluates(Eq("os", "Linux"), MAC)

    def test_string_comparison_ignores_case(self):
        assert evaluates(Eq("os", "linux"), LINUX)

    def test_in(self):
        p = In("os", ("Linux", "macOS"))
        assert evaluates(p, LINUX)
        assert evaluates(p, MAC)
        assert not evaluates(p, WINDOWS)

    def test_operators_compose(self):
        p = on_os("Linux", "macOS") & ~Eq("arch", "arm64")
        assert evaluates(p, LINUX)
        assert not evaluates(p, MAC)
        assert evaluates(Eq("os", "Windows") | Eq("os", "macOS"), WINDOWS)

    def test_missing_attribute_makes_comparison_false(self):
        # WINDOWS has no arch; neither == nor != matches
        assert not evaluates(Eq("arch", "x86_64"), WINDOWS)
        assert not evaluates(NotEq("arch", "x86_64"), WINDOWS)
        assert not evaluates(In("arch", ("x86_64",)), WINDOWS)

    def test_new_attributes_do_not_change_existing_predicates(self):
        richer = Environment("ubuntu-latest", attrs={"os": "Linux", "gpu": True, "runner": {"os": "Linux"}})
        assert evaluates(on_os("Linux"), richer) == evaluates(on_os("Linux"), LINUX)

    def test_dotted_path(self):
        env = Environment("x", attrs={"runner": {"os": "Linux"}})
        assert evaluates(Eq("runner.os", "Linux"), env)
        assert not evaluates(Eq("runner.arch", "x86_64"), env)

    def test_name_is_part_of_descriptor(self):
        assert evaluates(Eq("name", "macos-latest"), MAC)

    def test_evaluates_accepts_plain_mapping(self):
        assert evaluates("os == 'Linux'", {"os": "Linux"})


class TestParsePredicate:
    def test_simple_equality(self):
        assert parse_predicate("os == 'Linux'") == Eq("os", "Linux")

    def test_workflow_wrapper_is_stripped(self):
        p = parse_predicate("${{ runner.os == 'Linux' }}")
        assert p == Eq("runner.os", "Linux")

    def test_precedence_and_binds_tighter_than_or(self):
        p = parse_predicate("os == 'Windows' || os == 'Linux' && arch == 'x86_64'")
        assert isinstance(p, AnyOf)
        assert isinstance(p.items[1], All)
        assert evaluates(p, WINDOWS)
        assert evaluates(p, LINUX)
        assert not evaluates(p, MAC)

    def test_parentheses_and_not(self):
        p = parse_predicate("!(os == 'Windows' || os == 'macOS')")
        assert isinstance(p, Not)
        assert evaluates(p, LINUX)
        assert not evaluates(p, MAC)

    def test_in_list(self):
        p = parse_predicate('os in ["Linux", "macOS"]')
        assert p == In("os", ("Linux", "macOS"))

    def test_boolean_and_numeric_literals(self):
        assert parse_predicate("true") == ALWAYS
        assert not evaluates("false", LINUX)
        assert evaluates("cores == 8", {"cores": 8})

    def test_quoted_quote(self):
        assert parse_predicate("name == 'it''s'") == Eq("name", "it's")

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "os ==",
            "os = 'Linux'",
            "(os == 'Linux'",
            "os == 'Linux' &&",
            "os 'Linux'",
            "== 'Linux'",
            "os == 'Linux' extra",
            "os in ['Linux'",
            "os == 'Linux' # comment",
        ],
    )
    def test_malformed_expression_raises(self, expression):
        with pytest.raises(ConfigurationError) as exc:
            parse_predicate(expression)
        assert "Malformed predicate" in str(exc.value)


class TestCompilePredicate:
    def test_passthrough(self):
        p = Eq("os", "Linux")
        assert compile_predicate(p) is p

    def test_none_is_always(self):
        assert compile_predicate(None) is ALWAYS

    def test_wrong_type_rejected(self):
        with pytest.raises(ConfigurationError):
            compile_predicate(42)
