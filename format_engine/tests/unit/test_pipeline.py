"""Tests for format_engine.pipeline -- the Formatter facade."""

from __future__ import annotations

import logging

import pytest

from format_engine._types import DiagnosticKind, FormatEngineError, ResourceExceeded
from format_engine.config import Settings
from format_engine.pipeline import Formatter, format_sql
from format_engine.style import StyleConfig
from format_engine.telemetry.profiling import ProfileCollector


class TestFormat:
    def test_format_sql(self) -> None:
        result = format_sql("select a,b from t")
        assert result.text == "SELECT a\n     , b FROM t"
        assert result.diagnostics == ()
        assert result.statement_count == 1

    def test_custom_config(self) -> None:
        result = format_sql("select a from t", StyleConfig(case_mode="lower"))
        assert result.text == "select a from t"

    def test_default_dialect_from_settings(self) -> None:
        formatter = Formatter(settings=Settings(default_dialect="PostgreSQL"))
        assert formatter.config.source_dialect == "postgresql"
        assert formatter.format("select a minus b").text == "SELECT a minus b"

    def test_diagnostics_sorted_by_offset(self) -> None:
        result = format_sql("select (a, 'open")
        kinds = [d.kind for d in result.diagnostics]
        assert kinds == [DiagnosticKind.UNMATCHED_OPEN_BRACKET, DiagnosticKind.UNTERMINATED_STRING]
        assert result.text

    def test_recovery_returns_output(self) -> None:
        result = format_sql("SELECT a FROM (b")
        assert result.text == "SELECT a FROM (b"
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNMATCHED_OPEN_BRACKET]

    def test_to_dict(self) -> None:
        data = format_sql("select (a").to_dict()
        assert data["text"] == "SELECT (a"
        assert data["statement_count"] == 1
        assert data["diagnostics"][0]["kind"] == "UNMATCHED_OPEN_BRACKET"
        assert data["diagnostics"][0]["line"] == 1


class TestResourceCeiling:
    def test_oversized_input_raises(self) -> None:
        formatter = Formatter(settings=Settings(max_input_bytes=10))
        with pytest.raises(ResourceExceeded) as excinfo:
            formatter.format("select a from t")
        assert excinfo.value.size == 15
        assert excinfo.value.limit == 10
        assert isinstance(excinfo.value, FormatEngineError)

    def test_size_is_measured_in_utf8_bytes(self) -> None:
        formatter = Formatter(settings=Settings(max_input_bytes=4))
        assert formatter.check_size("abcd") == 4
        with pytest.raises(ResourceExceeded):
            formatter.check_size("ééé")

    def test_lone_surrogates_are_measured_not_rejected(self) -> None:
        formatter = Formatter()
        assert formatter.check_size("a\udcff") == 4
        assert formatter.format("select 'x\udcff' from t").text == "SELECT 'x\udcff' FROM t"

    def test_rejection_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        formatter = Formatter(settings=Settings(max_input_bytes=1))
        with caplog.at_level(logging.WARNING, logger="format_engine.pipeline"):
            with pytest.raises(ResourceExceeded):
                formatter.format("select 1")
        assert "Rejecting input" in caplog.text


class TestIsFormatted:
    def test_formatted_text(self) -> None:
        formatter = Formatter()
        assert formatter.is_formatted("SELECT a\n     , b FROM t")
        assert formatter.is_formatted("SELECT a\n     , b FROM t\n")

    def test_unformatted_text(self) -> None:
        assert not Formatter().is_formatted("select a, b from t")


class TestProfiling:
    def test_stages_are_timed(self) -> None:
        format_sql("select 1 from dual")
        names = {s["operation"] for s in ProfileCollector.get_instance().get_all_stats()}
        assert {"sql.tokenize", "sql.parse", "sql.render", "sql.format"} <= names
