"""Tests for format_cli/display.py -- Rich rendering helpers."""

from __future__ import annotations

from rich.console import Console

from format_cli.display import (
    display_check_results,
    display_diagnostics,
    display_presets,
    display_profile,
    display_structure,
    display_tokens,
)
from format_engine._types import Diagnostic, DiagnosticKind
from format_engine.lexer import tokenize
from format_engine.parser import parse
from format_engine.style import PRESET_DESCRIPTIONS, PRESETS


def _console() -> Console:
    return Console(record=True, width=160, color_system=None)


class TestDiagnostics:
    def test_nothing_printed_without_diagnostics(self) -> None:
        console = _console()
        display_diagnostics(console, ())
        assert console.export_text() == ""

    def test_table(self) -> None:
        console = _console()
        diag = Diagnostic(kind=DiagnosticKind.MISSING_END, message="CASE block has no END", line=3, column=5)
        display_diagnostics(console, [diag], "query.sql")
        text = console.export_text()
        assert "query.sql" in text
        assert "MISSING_END" in text
        assert "CASE block has no END" in text
        assert "1 diagnostic(s)" in text


class TestTokens:
    def test_whitespace_hidden_by_default(self) -> None:
        console = _console()
        display_tokens(console, tokenize("select a\nfrom t"))
        text = console.export_text()
        assert "4 token(s) shown" in text
        assert "keyword" in text

    def test_whitespace_included(self) -> None:
        console = _console()
        display_tokens(console, tokenize("select a"), include_whitespace=True)
        assert "3 token(s) shown" in console.export_text()


class TestStructure:
    def test_tree_per_statement(self) -> None:
        console = _console()
        display_structure(console, parse(tokenize("select a from t; select 1")).statements)
        text = console.export_text()
        assert "Statement 1" in text
        assert "Statement 2" in text
        assert "select_list" in text
        assert "2 statement(s)" in text


class TestPresets:
    def test_lists_overrides(self) -> None:
        console = _console()
        display_presets(console, PRESETS, PRESET_DESCRIPTIONS)
        text = console.export_text()
        assert "compact" in text
        assert "breakBeforeComma=False" in text
        assert "(defaults)" in text


class TestProfile:
    def test_empty(self) -> None:
        console = _console()
        display_profile(console, [])
        assert "No timings recorded." in console.export_text()

    def test_rows(self) -> None:
        console = _console()
        display_profile(
            console,
            [{"operation": "sql.parse", "count": 2, "mean_ms": 1.0, "p95_ms": 1.5, "total_ms": 2.0}],
        )
        text = console.export_text()
        assert "sql.parse" in text
        assert "1.500" in text


class TestCheckResults:
    def test_pending_files(self) -> None:
        console = _console()
        display_check_results(console, {"a.sql": True, "b.sql": False})
        text = console.export_text()
        assert "would reformat" in text
        assert "1 file(s) would be reformatted." in text

    def test_all_formatted(self) -> None:
        console = _console()
        display_check_results(console, {"a.sql": True})
        assert "All 1 file(s) are formatted." in console.export_text()
