"""Structural parser.

Groups a token stream into a shallow tree of syntactic regions in a single
forward pass with one significant token of lookahead.  The parser does not
validate SQL: it only finds the regions the renderer needs to make layout
decisions (clauses, comma lists, brackets, CASE blocks).

Malformed input never raises.  Unclosed brackets and CASE blocks are closed
at ``;`` or end of input, a stray ``)`` is kept as a plain token, and each
of these produces a :class:`~format_engine._types.Diagnostic`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from format_engine._types import (
    CLAUSE_KINDS,
    Child,
    Diagnostic,
    DiagnosticKind,
    LexResult,
    ParseResult,
    RegionKind,
    StructuralNode,
    Token,
    TokenKind,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Clause anchors
# ---------------------------------------------------------------------------

# Keywords that always open a clause at query level.
ANCHORS: frozenset[str] = frozenset(
    {
        "SELECT", "FROM", "WHERE", "HAVING", "LIMIT", "OFFSET", "UNION",
        "INTERSECT", "EXCEPT", "MINUS", "WITH", "INSERT", "VALUES", "UPDATE",
        "SET", "DELETE", "JOIN", "ON", "RETURNING",
    }
)

# Keywords that open a clause only when the next significant token is one of
# the listed keywords.
CONDITIONAL_ANCHORS: dict[str, frozenset[str]] = {
    "GROUP": frozenset({"BY"}),
    "ORDER": frozenset({"BY"}),
    "CONNECT": frozenset({"BY"}),
    "START": frozenset({"WITH"}),
    "LEFT": frozenset({"OUTER", "JOIN"}),
    "RIGHT": frozenset({"OUTER", "JOIN"}),
    "FULL": frozenset({"OUTER", "JOIN"}),
    "INNER": frozenset({"JOIN"}),
    "CROSS": frozenset({"JOIN"}),
    "NATURAL": frozenset({"LEFT", "RIGHT", "FULL", "INNER", "JOIN"}),
}

# Words that may continue an anchor phrase, keyed by the previous word.
FOLLOW_WORDS: dict[str, frozenset[str]] = {
    **CONDITIONAL_ANCHORS,
    "UNION": frozenset({"ALL", "DISTINCT"}),
    "EXCEPT": frozenset({"ALL"}),
    "INTERSECT": frozenset({"ALL"}),
    "INSERT": frozenset({"INTO"}),
    "OUTER": frozenset({"JOIN"}),
}

_CLAUSE_REGIONS: dict[str, RegionKind] = {
    "SELECT": RegionKind.SELECT_LIST,
    "FROM": RegionKind.FROM_CLAUSE,
    "WHERE": RegionKind.WHERE_CLAUSE,
}

_CONTAINERS = frozenset({RegionKind.STATEMENT, RegionKind.BRACKETED_EXPR, RegionKind.CASE_BLOCK})


def _is_punct(token: Token, text: str) -> bool:
    return token.kind is TokenKind.PUNCTUATION and token.text == text


class _Builder:
    """Mutable node under construction."""

    __slots__ = ("kind", "children", "keyword", "opener", "query")

    def __init__(self, kind: RegionKind, opener: Token | None = None, *, keyword: str = "", query: bool = False):
        self.kind = kind
        self.children: list[Child] = []
        self.keyword = keyword
        self.opener = opener
        self.query = query
        if opener is not None:
            self.children.append(opener)

    def freeze(self) -> StructuralNode:
        return StructuralNode(kind=self.kind, children=tuple(self.children), keyword=self.keyword)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class StructuralParser:
    """Single-pass region builder.

    A parser instance holds the state of one parse; :meth:`parse` resets it,
    so an instance may be reused sequentially but not shared across threads.
    """

    def __init__(self) -> None:
        self._stack: list[_Builder] = []
        self._statements: list[StructuralNode] = []
        self._diagnostics: list[Diagnostic] = []
        self._pending_follow: frozenset[str] = frozenset()

    # -- public API ----------------------------------------------------------

    def parse(self, tokens: Sequence[Token] | LexResult) -> ParseResult:
        """Group *tokens* into one STATEMENT tree per ``;``-separated statement."""
        if isinstance(tokens, LexResult):
            tokens = tokens.tokens
        self._stack = [_Builder(RegionKind.STATEMENT)]
        self._statements = []
        self._diagnostics = []
        self._pending_follow = frozenset()

        lookahead = self._next_significant(tokens)
        for index, token in enumerate(tokens):
            if token.is_trivia:
                self._stack[-1].children.append(token)
                continue
            upcoming = lookahead[index]
            self._feed(token, tokens[upcoming] if upcoming is not None else None)

        self._close_statement(at_end=True)
        return ParseResult(statements=tuple(self._statements), diagnostics=tuple(self._diagnostics))

    # -- dispatch ------------------------------------------------------------

    def _feed(self, token: Token, upcoming: Token | None) -> None:
        word = token.upper if token.kind is TokenKind.KEYWORD else ""

        if word and word in self._pending_follow:
            clause = self._stack[-1]
            clause.children.append(token)
            clause.keyword = f"{clause.keyword} {word}"
            self._pending_follow = FOLLOW_WORDS.get(word, frozenset())
            return
        self._pending_follow = frozenset()

        if _is_punct(token, ";"):
            self._pop_to(0)
            self._stack[0].children.append(token)
            self._close_statement()
            return

        if _is_punct(token, ")"):
            self._close_bracket(token)
            return

        if word and self._at_query_level() and self._is_anchor(word, upcoming):
            self._open_clause(token, word)
            return

        if word == "END" and self._container().kind is RegionKind.CASE_BLOCK:
            self._pop_to(self._container_index())
            self._stack[-1].children.append(token)
            self._pop()
            return

        self._ensure_list()

        if _is_punct(token, "("):
            query = upcoming is not None and upcoming.is_keyword("SELECT", "WITH")
            self._stack.append(_Builder(RegionKind.BRACKETED_EXPR, token, query=query))
        elif word == "CASE":
            self._stack.append(_Builder(RegionKind.CASE_BLOCK, token))
        else:
            self._stack[-1].children.append(token)

    # -- anchors -------------------------------------------------------------

    @staticmethod
    def _is_anchor(word: str, upcoming: Token | None) -> bool:
        if word in ANCHORS:
            return True
        needed = CONDITIONAL_ANCHORS.get(word)
        if needed is None or upcoming is None or upcoming.kind is not TokenKind.KEYWORD:
            return False
        return upcoming.upper in needed

    def _open_clause(self, token: Token, word: str) -> None:
        self._pop_to(self._container_index())
        kind = _CLAUSE_REGIONS.get(word, RegionKind.GENERIC)
        self._stack.append(_Builder(kind, token, keyword=word))
        self._pending_follow = FOLLOW_WORDS.get(word, frozenset())

    def _at_query_level(self) -> bool:
        container = self._container()
        if container.kind is RegionKind.STATEMENT:
            return True
        return container.kind is RegionKind.BRACKETED_EXPR and container.query

    # -- lists ---------------------------------------------------------------

    def _ensure_list(self) -> None:
        top = self._stack[-1]
        if top.kind in CLAUSE_KINDS or (top.kind is RegionKind.BRACKETED_EXPR and not top.query):
            self._stack.append(_Builder(RegionKind.COMMA_LIST))

    # -- closing -------------------------------------------------------------

    def _close_bracket(self, token: Token) -> None:
        target = None
        for i in range(len(self._stack) - 1, 0, -1):
            if self._stack[i].kind is RegionKind.BRACKETED_EXPR:
                target = i
                break

        if target is None:
            self._diagnostics.append(
                Diagnostic.at(DiagnosticKind.UNMATCHED_CLOSE_BRACKET, "Closing bracket has no matching '('", token)
            )
            logger.debug("Unmatched ')' at %d:%d", token.position.line, token.position.column)
            self._ensure_list()
            self._stack[-1].children.append(token)
            return

        self._pop_to(target)
        self._stack[-1].children.append(token)
        self._pop()

    def _close_statement(self, *, at_end: bool = False) -> None:
        self._pop_to(0)
        statement = self._stack[0]
        if statement.children or not at_end:
            self._statements.append(statement.freeze())
        self._stack = [_Builder(RegionKind.STATEMENT)]

    def _pop_to(self, index: int) -> None:
        """Pop builders until the one at *index* is on top.

        Containers popped on the way were never closed and are reported.
        """
        while len(self._stack) - 1 > index:
            top = self._stack[-1]
            if top.kind is RegionKind.BRACKETED_EXPR and top.opener is not None:
                self._report(DiagnosticKind.UNMATCHED_OPEN_BRACKET, "Bracket is never closed", top.opener)
            elif top.kind is RegionKind.CASE_BLOCK and top.opener is not None:
                self._report(DiagnosticKind.MISSING_END, "CASE block has no END", top.opener)
            self._pop()

    def _pop(self) -> None:
        node = self._stack.pop().freeze()
        self._stack[-1].children.append(node)

    def _report(self, kind: DiagnosticKind, message: str, token: Token) -> None:
        logger.debug("Parser diagnostic %s at %d:%d", kind.value, token.position.line, token.position.column)
        self._diagnostics.append(Diagnostic.at(kind, message, token))

    # -- helpers -------------------------------------------------------------

    def _container_index(self) -> int:
        for i in range(len(self._stack) - 1, -1, -1):
            if self._stack[i].kind in _CONTAINERS:
                return i
        return 0

    def _container(self) -> _Builder:
        return self._stack[self._container_index()]

    @staticmethod
    def _next_significant(tokens: Sequence[Token]) -> list[int | None]:
        """For each position, the index of the next significant token after it."""
        result: list[int | None] = [None] * len(tokens)
        upcoming: int | None = None
        for i in range(len(tokens) - 1, -1, -1):
            result[i] = upcoming
            if not tokens[i].is_trivia:
                upcoming = i
        return result


def parse(tokens: Iterable[Token] | LexResult) -> ParseResult:
    """Parse *tokens* into statement trees."""
    if not isinstance(tokens, LexResult):
        tokens = tuple(tokens)
    return StructuralParser().parse(tokens)
