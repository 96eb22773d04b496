"""Tests for format_engine.dialects -- the keyword table registry."""

from __future__ import annotations

import threading

import pytest

from format_engine._types import TokenKind
from format_engine.dialects import (
    Dialect,
    available_dialects,
    get_dialect,
    get_keywords,
    is_registered,
    register_dialect,
    reset_dialects,
)
from format_engine.lexer import tokenize


class TestBuiltins:
    def test_all_builtins_registered(self) -> None:
        names = available_dialects()
        assert names == sorted(d.value for d in Dialect)

    def test_lookup_is_case_insensitive(self) -> None:
        assert get_dialect("ORACLE").name == "oracle"

    def test_common_keywords(self) -> None:
        for dialect in Dialect:
            keywords = get_keywords(dialect.value)
            assert {"SELECT", "FROM", "WHERE", "CASE", "END"} <= keywords

    def test_dialect_specific_keywords(self) -> None:
        assert "MINUS" in get_keywords("oracle")
        assert "MINUS" not in get_keywords("postgresql")
        assert "ILIKE" in get_keywords("postgresql")
        assert "TOP" in get_keywords("sqlserver")

    def test_sqlglot_names(self) -> None:
        assert get_dialect("postgresql").sqlglot_name == "postgres"
        assert get_dialect("sqlserver").sqlglot_name == "tsql"
        assert get_dialect("generic").sqlglot_name is None

    def test_only_oracle_has_q_quotes(self) -> None:
        assert [d.value for d in Dialect if get_dialect(d.value).q_quotes] == ["oracle"]

    def test_unknown_dialect(self) -> None:
        assert not is_registered("cobol")
        with pytest.raises(KeyError, match="cobol"):
            get_dialect("cobol")


class TestRegistration:
    def test_register_extends_generic(self) -> None:
        spec = register_dialect("Warehouse", ["qualify"])
        assert spec.name == "warehouse"
        assert spec.is_keyword("QUALIFY")
        assert spec.is_keyword("select")
        assert is_registered("warehouse")

    def test_register_extends_named_dialect(self) -> None:
        spec = register_dialect("oracle_plus", ["MODEL"], extends="oracle")
        assert spec.is_keyword("MINUS")
        assert spec.sqlglot_name == "oracle"
        assert spec.q_quotes

    def test_standalone_table(self) -> None:
        spec = register_dialect("tiny", ["SELECT"], extends=None)
        assert spec.keywords == frozenset({"SELECT"})
        assert spec.sqlglot_name is None
        assert not spec.q_quotes

    def test_lexer_uses_registered_keywords(self) -> None:
        register_dialect("warehouse", ["QUALIFY"])
        tokens = [t for t in tokenize("qualify x", "warehouse") if t.kind is not TokenKind.WHITESPACE]
        assert tokens[0].kind is TokenKind.KEYWORD

    def test_empty_name(self) -> None:
        with pytest.raises(ValueError):
            register_dialect("  ", ["X"])

    def test_unknown_base(self) -> None:
        with pytest.raises(KeyError):
            register_dialect("custom", ["X"], extends="nope")

    def test_reset_drops_custom_dialects(self) -> None:
        register_dialect("warehouse", ["QUALIFY"])
        reset_dialects()
        assert not is_registered("warehouse")
        assert is_registered("oracle")

    def test_concurrent_registration(self) -> None:
        def worker(i: int) -> None:
            register_dialect(f"d{i}", [f"KW{i}"])

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert all(is_registered(f"d{i}") for i in range(16))
