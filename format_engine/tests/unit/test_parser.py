"""Tests for format_engine.parser -- structural region building."""

from __future__ import annotations

import pytest

from format_engine._types import DiagnosticKind, RegionKind, StructuralNode, TokenKind
from format_engine.lexer import Lexer, tokenize
from format_engine.parser import StructuralParser, parse


def _parse(sql: str, dialect: str = "oracle"):
    return StructuralParser().parse(Lexer(dialect).run(sql))


def _clauses(node: StructuralNode) -> list[tuple[RegionKind, str]]:
    return [(n.kind, n.keyword) for n in node.nodes() if n.is_clause]


# ---------------------------------------------------------------------------
# Clauses
# ---------------------------------------------------------------------------


class TestClauses:
    def test_select_from_where(self) -> None:
        result = _parse("select a, b from t where c = 1")
        assert len(result.statements) == 1
        assert _clauses(result.statements[0]) == [
            (RegionKind.SELECT_LIST, "SELECT"),
            (RegionKind.FROM_CLAUSE, "FROM"),
            (RegionKind.WHERE_CLAUSE, "WHERE"),
        ]

    def test_clause_body_is_comma_list(self) -> None:
        select = _parse("select a, b from t").statements[0].nodes()[0]
        body = select.find(RegionKind.COMMA_LIST)
        assert body is not None
        commas = [t for t in body.children if not isinstance(t, StructuralNode) and t.text == ","]
        assert len(commas) == 1

    def test_multi_word_anchors(self) -> None:
        result = _parse("select a from t group by a order by a")
        assert [kw for _, kw in _clauses(result.statements[0])] == ["SELECT", "FROM", "GROUP BY", "ORDER BY"]

    def test_group_without_by_is_not_an_anchor(self) -> None:
        result = _parse("select group from t")
        assert [kw for _, kw in _clauses(result.statements[0])] == ["SELECT", "FROM"]

    @pytest.mark.parametrize(
        ("join", "keyword"),
        [
            ("join", "JOIN"),
            ("left join", "LEFT JOIN"),
            ("left outer join", "LEFT OUTER JOIN"),
            ("inner join", "INNER JOIN"),
            ("cross join", "CROSS JOIN"),
            ("natural full outer join", "NATURAL FULL OUTER JOIN"),
        ],
    )
    def test_join_family(self, join: str, keyword: str) -> None:
        result = _parse(f"select * from a {join} b on a.id = b.id")
        keywords = [kw for _, kw in _clauses(result.statements[0])]
        assert keywords == ["SELECT", "FROM", keyword, "ON"]

    def test_left_function_is_not_a_join(self) -> None:
        result = _parse("select left(name, 2) from t")
        assert [kw for _, kw in _clauses(result.statements[0])] == ["SELECT", "FROM"]

    def test_union_all(self) -> None:
        result = _parse("select a from t union all select b from u")
        keywords = [kw for _, kw in _clauses(result.statements[0])]
        assert keywords == ["SELECT", "FROM", "UNION ALL", "SELECT", "FROM"]
        union = result.statements[0].nodes()[2]
        assert union.is_set_operator
        assert union.anchor_length == 2

    def test_oracle_hierarchical_clauses(self) -> None:
        result = _parse("select level from emp start with mgr is null connect by prior id = mgr")
        keywords = [kw for _, kw in _clauses(result.statements[0])]
        assert keywords == ["SELECT", "FROM", "START WITH", "CONNECT BY"]

    def test_insert_into_values(self) -> None:
        result = _parse("insert into t (a, b) values (1, 2)")
        keywords = [kw for _, kw in _clauses(result.statements[0])]
        assert keywords == ["INSERT INTO", "VALUES"]

    def test_condition_clauses(self) -> None:
        statement = _parse("select a from t where x = 1 having y > 2").statements[0]
        flags = {n.keyword: n.is_condition for n in statement.nodes()}
        assert flags == {"SELECT": False, "FROM": False, "WHERE": True, "HAVING": True}


# ---------------------------------------------------------------------------
# Brackets and CASE
# ---------------------------------------------------------------------------


class TestBrackets:
    def test_subquery_has_its_own_clauses(self) -> None:
        statement = _parse("select * from (select a from t) x").statements[0]
        bracket = statement.find(RegionKind.BRACKETED_EXPR)
        assert bracket is not None
        assert bracket.is_subquery
        assert [kw for _, kw in _clauses(bracket)] == ["SELECT", "FROM"]

    def test_keywords_inside_plain_bracket_are_not_anchors(self) -> None:
        statement = _parse("select f(a from b) from t").statements[0]
        assert [kw for _, kw in _clauses(statement)] == ["SELECT", "FROM"]
        bracket = statement.find(RegionKind.BRACKETED_EXPR)
        assert bracket is not None
        assert not bracket.is_subquery

    def test_function_arguments_form_a_list(self) -> None:
        bracket = _parse("select f(a, b) from t").statements[0].find(RegionKind.BRACKETED_EXPR)
        assert bracket is not None
        assert bracket.nodes()[0].kind is RegionKind.COMMA_LIST

    def test_case_block(self) -> None:
        statement = _parse("select case when a = 1 then 'x' else 'y' end from t").statements[0]
        case = statement.find(RegionKind.CASE_BLOCK)
        assert case is not None
        words = [t.upper for t in case.significant_tokens() if t.kind is TokenKind.KEYWORD]
        assert words[0] == "CASE"
        assert words[-1] == "END"
        assert [kw for _, kw in _clauses(statement)] == ["SELECT", "FROM"]

    def test_nested_case(self) -> None:
        statement = _parse("select case when a then case when b then 1 end end from t").statements[0]
        assert len(statement.find_all(RegionKind.CASE_BLOCK)) == 2
        assert _parse("select case when a then case when b then 1 end end from t").diagnostics == ()


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


class TestStatements:
    def test_semicolon_splits_statements(self) -> None:
        result = _parse("select 1 from dual; select 2 from dual;")
        assert len(result.statements) == 2
        last = list(result.statements[0].tokens())[-1]
        assert last.text == ";"

    def test_trailing_whitespace_after_last_semicolon_is_kept(self) -> None:
        sql = "select 1;\n"
        result = _parse(sql)
        assert "".join(t.text for t in result.tokens()) == sql

    def test_empty_input(self) -> None:
        assert _parse("").statements == ()

    @pytest.mark.parametrize(
        "sql",
        [
            "select a, b from t where x in (select y from u) and z = 'q';\n select 2",
            "select case when a then b else c end -- note\nfrom t",
            "select a from (b",
            "select a) from t",
            "select case when a then b",
            "",
        ],
    )
    def test_leaves_equal_token_sequence(self, sql: str) -> None:
        tokens = tokenize(sql)
        result = parse(tokens)
        assert tuple(result.tokens()) == tokens


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------


class TestRecovery:
    def test_unclosed_bracket(self) -> None:
        result = _parse("select a from (b")
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNMATCHED_OPEN_BRACKET]
        assert result.diagnostics[0].column == 15

    def test_unclosed_bracket_closed_at_semicolon(self) -> None:
        result = _parse("select (a; select b")
        assert len(result.statements) == 2
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNMATCHED_OPEN_BRACKET]

    def test_stray_close_bracket(self) -> None:
        result = _parse("select a) from t")
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNMATCHED_CLOSE_BRACKET]
        assert [kw for _, kw in _clauses(result.statements[0])] == ["SELECT", "FROM"]

    def test_missing_end(self) -> None:
        result = _parse("select case when a then b from t")
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.MISSING_END]

    def test_parser_is_reusable(self) -> None:
        parser = StructuralParser()
        first = parser.parse(tokenize("select (a"))
        second = parser.parse(tokenize("select a"))
        assert len(first.diagnostics) == 1
        assert second.diagnostics == ()
        assert len(second.statements) == 1
