"""Tests for format_engine.lexer -- tokenization of raw SQL."""

from __future__ import annotations

import pytest

from format_engine._types import DiagnosticKind, TokenKind
from format_engine.lexer import Lexer, tokenize


def _significant(sql: str, dialect: str = "oracle") -> list[tuple[TokenKind, str]]:
    return [(t.kind, t.text) for t in tokenize(sql, dialect) if t.kind is not TokenKind.WHITESPACE]


# ---------------------------------------------------------------------------
# Losslessness
# ---------------------------------------------------------------------------


class TestLossless:
    @pytest.mark.parametrize(
        "sql",
        [
            "select a, b from t where x = 1",
            "SELECT 'it''s' AS s FROM dual -- trailing\n",
            "select /* block\ncomment */ a\r\n\tfrom t;",
            'select "Mixed Case" from "t"',
            "select 'never closed",
            "/* never closed",
            "select a from (b",
            "select #, ¤ from ?",
            "",
            "   \n\n  ",
        ],
    )
    def test_concatenation_reproduces_input(self, sql: str) -> None:
        assert "".join(t.text for t in tokenize(sql)) == sql

    def test_lex_result_text(self) -> None:
        sql = "select a -- c\nfrom t"
        assert Lexer().run(sql).text == sql


# ---------------------------------------------------------------------------
# Token kinds
# ---------------------------------------------------------------------------


class TestTokenKinds:
    def test_keywords_and_identifiers(self) -> None:
        assert _significant("select col from tbl") == [
            (TokenKind.KEYWORD, "select"),
            (TokenKind.IDENTIFIER, "col"),
            (TokenKind.KEYWORD, "from"),
            (TokenKind.IDENTIFIER, "tbl"),
        ]

    def test_keyword_lookup_is_case_insensitive(self) -> None:
        kinds = [k for k, _ in _significant("SeLeCt a FrOm b")]
        assert kinds == [TokenKind.KEYWORD, TokenKind.IDENTIFIER, TokenKind.KEYWORD, TokenKind.IDENTIFIER]

    def test_whitespace_run_is_one_token(self) -> None:
        tokens = tokenize("a \n\t b")
        assert [t.kind for t in tokens] == [TokenKind.IDENTIFIER, TokenKind.WHITESPACE, TokenKind.IDENTIFIER]
        assert tokens[1].text == " \n\t "

    def test_longest_operator_wins(self) -> None:
        assert _significant("a<=b") == [
            (TokenKind.IDENTIFIER, "a"),
            (TokenKind.OPERATOR, "<="),
            (TokenKind.IDENTIFIER, "b"),
        ]
        assert _significant("a<>b")[1] == (TokenKind.OPERATOR, "<>")
        assert _significant("a||b")[1] == (TokenKind.OPERATOR, "||")

    def test_cast_operator(self) -> None:
        assert _significant("a::int", "postgresql")[1] == (TokenKind.OPERATOR, "::")

    def test_punctuation(self) -> None:
        texts = [text for kind, text in _significant("f(a, b.c);") if kind is TokenKind.PUNCTUATION]
        assert texts == ["(", ",", ".", ")", ";"]

    @pytest.mark.parametrize("number", ["123", "1.5", ".5", "1e10", "2.5E-3", "7."])
    def test_numbers(self, number: str) -> None:
        assert _significant(number) == [(TokenKind.NUMBER_LITERAL, number)]

    def test_qualified_name_dot_is_punctuation(self) -> None:
        assert _significant("t.col") == [
            (TokenKind.IDENTIFIER, "t"),
            (TokenKind.PUNCTUATION, "."),
            (TokenKind.IDENTIFIER, "col"),
        ]

    def test_string_with_escaped_quote(self) -> None:
        assert _significant("'it''s'") == [(TokenKind.STRING_LITERAL, "'it''s'")]

    def test_quoted_identifiers(self) -> None:
        assert _significant('"Select"') == [(TokenKind.IDENTIFIER, '"Select"')]
        assert _significant("`my col`") == [(TokenKind.IDENTIFIER, "`my col`")]

    @pytest.mark.parametrize("param", [":name", "@var", "$1", ":1"])
    def test_bind_parameters(self, param: str) -> None:
        assert _significant(f"x = {param}")[-1] == (TokenKind.IDENTIFIER, param)

    def test_assignment_operator_is_not_a_parameter(self) -> None:
        assert _significant("x := 1")[1] == (TokenKind.OPERATOR, ":=")

    def test_comments(self) -> None:
        tokens = _significant("a -- note\n/* block */ b")
        assert tokens == [
            (TokenKind.IDENTIFIER, "a"),
            (TokenKind.LINE_COMMENT, "-- note"),
            (TokenKind.BLOCK_COMMENT, "/* block */"),
            (TokenKind.IDENTIFIER, "b"),
        ]

    def test_block_comment_does_not_nest(self) -> None:
        tokens = _significant("/* a /* b */ c */")
        assert tokens[0] == (TokenKind.BLOCK_COMMENT, "/* a /* b */")

    def test_unknown_character_is_single_operator(self) -> None:
        assert _significant("#") == [(TokenKind.OPERATOR, "#")]


# ---------------------------------------------------------------------------
# Dialect keyword tables
# ---------------------------------------------------------------------------


class TestDialectKeywords:
    def test_minus_is_oracle_keyword(self) -> None:
        assert _significant("minus", "oracle") == [(TokenKind.KEYWORD, "minus")]
        assert _significant("minus", "generic") == [(TokenKind.IDENTIFIER, "minus")]

    def test_lexer_records_dialect(self) -> None:
        assert Lexer("postgresql").dialect == "postgresql"

    def test_unknown_dialect_raises(self) -> None:
        with pytest.raises(KeyError):
            Lexer("cobol")


class TestOracleQuoting:
    @pytest.mark.parametrize("literal", ["q'[it's]'", "Q'{a}'", "q'(x)'", "q'<)>'", "q'!it's!'", "nq'[n]'"])
    def test_q_literal_is_one_string(self, literal: str) -> None:
        assert _significant(f"select {literal} from dual") == [
            (TokenKind.KEYWORD, "select"),
            (TokenKind.STRING_LITERAL, literal),
            (TokenKind.KEYWORD, "from"),
            (TokenKind.KEYWORD, "dual"),
        ]

    def test_other_dialects_keep_q_as_a_name(self) -> None:
        assert _significant("q'[x]'", "generic")[0] == (TokenKind.IDENTIFIER, "q")

    def test_unterminated_q_literal(self) -> None:
        result = Lexer().run("select q'[abc")
        assert result.tokens[-1].text == "q'[abc"
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNTERMINATED_STRING]

    def test_words_starting_with_q(self) -> None:
        assert _significant("qty")[0] == (TokenKind.IDENTIFIER, "qty")


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


class TestPositions:
    def test_line_column_offset(self) -> None:
        tokens = tokenize("select\n  a")
        a = tokens[-1]
        assert a.text == "a"
        assert (a.position.line, a.position.column, a.position.offset) == (2, 3, 9)

    def test_first_token_position(self) -> None:
        first = tokenize("x")[0]
        assert (first.position.line, first.position.column, first.position.offset) == (1, 1, 0)

    def test_position_after_multiline_comment(self) -> None:
        tokens = tokenize("/* a\nbc */ d")
        d = tokens[-1]
        assert (d.position.line, d.position.column) == (2, 7)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class TestDiagnostics:
    def test_unterminated_string(self) -> None:
        result = Lexer().run("select 'abc")
        assert result.tokens[-1].kind is TokenKind.STRING_LITERAL
        assert result.tokens[-1].text == "'abc"
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNTERMINATED_STRING]
        assert result.diagnostics[0].column == 8

    def test_unterminated_block_comment(self) -> None:
        result = Lexer().run("a /* open")
        assert result.tokens[-1].kind is TokenKind.BLOCK_COMMENT
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNTERMINATED_COMMENT]

    def test_unterminated_quoted_identifier(self) -> None:
        result = Lexer().run('select "abc')
        assert result.tokens[-1].kind is TokenKind.IDENTIFIER
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNTERMINATED_QUOTED_IDENTIFIER]

    def test_clean_input_has_no_diagnostics(self) -> None:
        assert Lexer().run("select 1 from dual").diagnostics == ()
