"""Format engine shared types.

Every stage of the pipeline consumes and produces the immutable values
defined here: the lexer emits :class:`Token` objects, the parser groups them
into :class:`StructuralNode` trees, and the renderer returns a
:class:`FormattedOutput`.  Structural irregularities travel alongside as
:class:`Diagnostic` values and are never raised.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenKind(str, enum.Enum):
    """Lexical categories produced by the lexer."""

    KEYWORD = "keyword"
    IDENTIFIER = "identifier"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    STRING_LITERAL = "string_literal"
    NUMBER_LITERAL = "number_literal"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    WHITESPACE = "whitespace"


COMMENT_KINDS: frozenset[TokenKind] = frozenset({TokenKind.LINE_COMMENT, TokenKind.BLOCK_COMMENT})
TRIVIA_KINDS: frozenset[TokenKind] = COMMENT_KINDS | {TokenKind.WHITESPACE}


@dataclass(frozen=True, slots=True)
class Position:
    """Source location of a token: 1-based line/column, 0-based offset."""

    line: int = 1
    column: int = 1
    offset: int = 0


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical token carrying the exact source text it was cut from."""

    kind: TokenKind
    text: str
    position: Position = field(default_factory=Position)

    @property
    def upper(self) -> str:
        return self.text.upper()

    @property
    def is_trivia(self) -> bool:
        return self.kind in TRIVIA_KINDS

    @property
    def is_comment(self) -> bool:
        return self.kind in COMMENT_KINDS

    @property
    def is_word(self) -> bool:
        """True for tokens that would fuse with a neighbouring word."""
        return self.kind in (TokenKind.KEYWORD, TokenKind.IDENTIFIER, TokenKind.NUMBER_LITERAL)

    def is_keyword(self, *words: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.text.upper() in words

    def __str__(self) -> str:
        return self.text


# ---------------------------------------------------------------------------
# Structural tree
# ---------------------------------------------------------------------------


class RegionKind(str, enum.Enum):
    """Syntactic regions recognised by the structural parser."""

    STATEMENT = "statement"
    SELECT_LIST = "select_list"
    FROM_CLAUSE = "from_clause"
    WHERE_CLAUSE = "where_clause"
    CASE_BLOCK = "case_block"
    BRACKETED_EXPR = "bracketed_expr"
    COMMA_LIST = "comma_list"
    GENERIC = "generic"


CLAUSE_KINDS: frozenset[RegionKind] = frozenset(
    {RegionKind.SELECT_LIST, RegionKind.FROM_CLAUSE, RegionKind.WHERE_CLAUSE, RegionKind.GENERIC}
)

SET_OPERATORS: frozenset[str] = frozenset({"UNION", "INTERSECT", "EXCEPT", "MINUS"})

# Clauses whose body is a boolean condition.
CONDITION_CLAUSES: frozenset[str] = frozenset({"WHERE", "HAVING", "ON", "CONNECT BY", "START WITH"})


Child = Union["StructuralNode", Token]


@dataclass(frozen=True, slots=True)
class StructuralNode:
    """A shallow syntactic region.

    ``keyword`` is the normalised anchor phrase of a clause node
    (``"SELECT"``, ``"GROUP BY"``, ``"LEFT OUTER JOIN"``) and empty for
    every other region.
    """

    kind: RegionKind
    children: tuple[Child, ...] = ()
    keyword: str = ""

    @property
    def is_clause(self) -> bool:
        return self.kind in CLAUSE_KINDS and bool(self.keyword)

    @property
    def is_subquery(self) -> bool:
        """True for a bracket whose content is a query (clauses)."""
        if self.kind is not RegionKind.BRACKETED_EXPR:
            return False
        return any(isinstance(c, StructuralNode) and c.is_clause for c in self.children)

    @property
    def is_set_operator(self) -> bool:
        return self.is_clause and self.keyword.split()[0] in SET_OPERATORS

    @property
    def is_condition(self) -> bool:
        return self.is_clause and self.keyword in CONDITION_CLAUSES

    @property
    def anchor_length(self) -> int:
        """Number of keyword tokens that open this clause."""
        return len(self.keyword.split()) if self.keyword else 0

    # -- traversal helpers ---------------------------------------------------

    def tokens(self) -> Iterator[Token]:
        """Yield the leaf tokens of the subtree in source order."""
        for child in self.children:
            if isinstance(child, StructuralNode):
                yield from child.tokens()
            else:
                yield child

    def significant_tokens(self) -> Iterator[Token]:
        return (t for t in self.tokens() if not t.is_trivia)

    def nodes(self) -> list[StructuralNode]:
        """Direct child nodes, skipping tokens."""
        return [c for c in self.children if isinstance(c, StructuralNode)]

    def walk(self) -> list[StructuralNode]:
        """Return a flat list of all nodes in the subtree (pre-order DFS)."""
        result: list[StructuralNode] = []
        self._walk(result)
        return result

    def _walk(self, acc: list[StructuralNode]) -> None:
        acc.append(self)
        for child in self.children:
            if isinstance(child, StructuralNode):
                child._walk(acc)

    def find_all(self, kind: RegionKind) -> list[StructuralNode]:
        """Recursively find all descendant nodes of the given kind."""
        return [n for n in self.walk()[1:] if n.kind is kind]

    def find(self, kind: RegionKind) -> StructuralNode | None:
        """Find the first descendant of *kind* (depth-first), or ``None``."""
        found = self.find_all(kind)
        return found[0] if found else None

    @property
    def text(self) -> str:
        """The exact source text covered by this node."""
        return "".join(t.text for t in self.tokens())


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class DiagnosticKind(str, enum.Enum):
    """Structural irregularities that formatting tolerates."""

    UNTERMINATED_STRING = "UNTERMINATED_STRING"
    UNTERMINATED_QUOTED_IDENTIFIER = "UNTERMINATED_QUOTED_IDENTIFIER"
    UNTERMINATED_COMMENT = "UNTERMINATED_COMMENT"
    UNMATCHED_OPEN_BRACKET = "UNMATCHED_OPEN_BRACKET"
    UNMATCHED_CLOSE_BRACKET = "UNMATCHED_CLOSE_BRACKET"
    MISSING_END = "MISSING_END"


class Diagnostic(BaseModel):
    """A non-fatal note about malformed input, reported with the output."""

    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind = Field(description="Category of the irregularity.")
    message: str = Field(description="Human-readable explanation.")
    line: int = Field(default=1, description="1-based source line.")
    column: int = Field(default=1, description="1-based source column.")
    offset: int = Field(default=0, description="0-based character offset.")

    @classmethod
    def at(cls, kind: DiagnosticKind, message: str, token: Token) -> Diagnostic:
        pos = token.position
        return cls(kind=kind, message=message, line=pos.line, column=pos.column, offset=pos.offset)


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LexResult:
    """Tokens produced by the lexer plus any diagnostics."""

    tokens: tuple[Token, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def text(self) -> str:
        return "".join(t.text for t in self.tokens)


@dataclass(frozen=True, slots=True)
class ParseResult:
    """One STATEMENT root per statement in the input."""

    statements: tuple[StructuralNode, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()

    def tokens(self) -> Iterator[Token]:
        for statement in self.statements:
            yield from statement.tokens()


@dataclass(frozen=True, slots=True)
class FormattedOutput:
    """The formatted text plus the diagnostics gathered on the way."""

    text: str
    diagnostics: tuple[Diagnostic, ...] = ()
    statement_count: int = 0

    @property
    def has_diagnostics(self) -> bool:
        return bool(self.diagnostics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "diagnostics": [d.model_dump(mode="json") for d in self.diagnostics],
            "statement_count": self.statement_count,
        }


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FormatEngineError(Exception):
    """Base exception for all format engine errors."""


class ResourceExceeded(FormatEngineError):
    """Raised when the input is larger than the configured size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Input of {size} bytes exceeds the {limit} byte limit")


class ConfigValidationError(FormatEngineError, ValueError):
    """Raised when a style configuration fails validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)
