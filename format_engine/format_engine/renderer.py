"""Layout renderer.

Walks the structural tree of each statement and re-emits its tokens with
computed separators.  Source whitespace between tokens is discarded; the
only facts carried over from the source layout are

* whether two tokens were adjacent (no whitespace between them), and
* whether a comment started a line,

which makes the output a function of the token sequence and the style
alone, and therefore stable under re-formatting.

Placement of each token follows a fixed order:

1. break-before rules of the token itself (anchors, commas, CASE keywords,
   AND/OR, ``||``, brackets, comments);
2. a forced newline after a line comment, or after a block comment that
   was followed by a newline in the source;
3. break-after rules left pending by the previous token (comma,
   condition bracket);
4. otherwise the spacing policy.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from format_engine._types import (
    Child,
    Diagnostic,
    FormattedOutput,
    ParseResult,
    RegionKind,
    StructuralNode,
    Token,
    TokenKind,
)
from format_engine.dialects import FUNCTIONS
from format_engine.lexer import OPERATORS
from format_engine.style import Spacing, StyleConfig

logger = logging.getLogger(__name__)

COMPARISON_OPERATORS: frozenset[str] = frozenset({"=", "<>", "!=", "<", ">", "<=", ">=", "<=>"})

# Keywords that end an operand; a sign after them is binary.
OPERAND_KEYWORDS: frozenset[str] = frozenset(
    {
        "END", "NULL", "TRUE", "FALSE", "SYSDATE", "SYSTIMESTAMP", "CURRENT_DATE",
        "CURRENT_TIME", "CURRENT_TIMESTAMP", "ROWNUM", "LEVEL", "USER",
    }
)

# Keywords that may be directly followed by an argument list.
CALLABLE_KEYWORDS: frozenset[str] = FUNCTIONS | frozenset(
    {
        "LEFT", "RIGHT", "CHAR", "VARCHAR", "VARCHAR2", "NVARCHAR", "NUMBER",
        "DECIMAL", "NUMERIC", "FLOAT", "TIMESTAMP", "OVER",
    }
)

# Keywords after which a bracket opens a boolean operand.
CONDITION_OPENERS: frozenset[str] = frozenset({"WHERE", "ON", "HAVING", "WHEN", "AND", "OR", "NOT"})

_QUOTED_OR_PARAMETER = frozenset('"`:@$')


class _Role(enum.Enum):
    PLAIN = "plain"
    ANCHOR = "anchor"
    ANCHOR_FOLLOW = "anchor_follow"
    COMMA = "comma"
    OPEN = "open"
    CLOSE = "close"
    CASE_KW = "case_kw"
    CASE_THEN = "case_then"
    CASE_END = "case_end"


def _is_punct(token: Token | None, text: str) -> bool:
    return token is not None and token.kind is TokenKind.PUNCTUATION and token.text == text


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _ScopeFrame:
    """The statement or a subquery: clause anchors align on its base column."""

    base_col: int | None = 0
    open_col: int | None = None
    clauses: int = 0
    between: bool = False

    def base(self) -> int:
        if self.base_col is not None:
            return self.base_col
        return self.open_col + 1 if self.open_col is not None else 0


@dataclass(slots=True)
class _ClauseFrame:
    node: StructuralNode
    top_level: bool = False
    keyword_col: int | None = None
    words: int = 0
    body_started: bool = False
    between: bool = False

    @property
    def anchor_done(self) -> bool:
        return self.words >= self.node.anchor_length


@dataclass(slots=True)
class _ListFrame:
    clause: _ClauseFrame | None = None
    item_col: int | None = None
    item_start_col: int | None = None
    new_item: bool = True
    between: bool = False


@dataclass(slots=True)
class _BracketFrame:
    subquery: bool = False
    condition: bool = False
    call: bool = False
    open_col: int = 0
    between: bool = False


@dataclass(slots=True)
class _CaseFrame:
    case_col: int = 0
    in_condition: bool = False
    when_body_col: int | None = None
    between: bool = False


_Frame = _ScopeFrame | _ClauseFrame | _ListFrame | _BracketFrame | _CaseFrame


class _Emitter:
    """Output buffer that tracks the current column."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self.column = 0

    def newline(self, count: int, column: int) -> None:
        self._parts.append("\n" * count + " " * column)
        self.column = column

    def space(self, count: int) -> None:
        if count > 0:
            self._parts.append(" " * count)
            self.column += count

    def write(self, text: str) -> None:
        self._parts.append(text)
        nl = text.rfind("\n")
        if nl >= 0:
            self.column = len(text) - nl - 1
        else:
            self.column += len(text)

    def getvalue(self) -> str:
        return "".join(self._parts)


# ---------------------------------------------------------------------------
# Per-statement layout
# ---------------------------------------------------------------------------


class _Layout:
    """Layout state for a single statement."""

    def __init__(self, config: StyleConfig) -> None:
        self.cfg = config
        self.out = _Emitter()
        self.frames: list[_Frame] = [_ScopeFrame(base_col=0)]
        self.gap = ""
        self.prev: Token | None = None
        self.prev_semantic: Token | None = None
        self.prev_unary = False
        self.prev_open_condition = False
        self.last_col = 0
        self.pending_break_after: int | None = None
        self.pending_pad_to: int | None = None
        self.pending_double_break = False

    def run(self, statement: StructuralNode) -> str:
        self._children(statement.children)
        return self.out.getvalue()

    # -- tree walk -----------------------------------------------------------

    def _children(self, children: Iterable[Child]) -> None:
        for child in children:
            self._child(child)

    def _child(self, child: Child, role: _Role = _Role.PLAIN) -> None:
        if isinstance(child, StructuralNode):
            self._node(child)
        elif child.kind is TokenKind.WHITESPACE:
            self.gap += child.text
        else:
            self._emit(child, role)

    def _node(self, node: StructuralNode) -> None:
        if node.is_clause:
            self._clause(node)
        elif node.kind is RegionKind.COMMA_LIST:
            self._list(node)
        elif node.kind is RegionKind.BRACKETED_EXPR:
            self._bracket(node)
        elif node.kind is RegionKind.CASE_BLOCK:
            self._case(node)
        else:
            self._children(node.children)

    def _clause(self, node: StructuralNode) -> None:
        frame = _ClauseFrame(node=node, top_level=self._scope() is self.frames[0])
        self.frames.append(frame)
        for child in node.children:
            if isinstance(child, Token) and not child.is_trivia:
                self._emit(child, _Role.ANCHOR if frame.words == 0 else _Role.ANCHOR_FOLLOW)
            else:
                self._child(child)
        self.frames.pop()

    def _list(self, node: StructuralNode) -> None:
        parent = self.frames[-1]
        self.frames.append(_ListFrame(clause=parent if isinstance(parent, _ClauseFrame) else None))
        for child in node.children:
            self._child(child, _Role.COMMA if _is_punct(child, ",") else _Role.PLAIN)  # type: ignore[arg-type]
        self.frames.pop()

    def _bracket(self, node: StructuralNode) -> None:
        children = node.children
        opener = children[0]
        closer = children[-1] if len(children) > 1 and _is_punct(children[-1], ")") else None  # type: ignore[arg-type]
        inner = children[1:-1] if closer is not None else children[1:]

        subquery = node.is_subquery
        call = not subquery and self._at_call_position()
        condition = not subquery and not call and self._in_condition() and self._after_condition_opener()
        frame = _BracketFrame(subquery=subquery, condition=condition, call=call)

        self._emit(opener, _Role.OPEN, bracket=frame)  # type: ignore[arg-type]
        frame.open_col = self.last_col
        self.frames.append(frame)
        if subquery:
            self.frames.append(_ScopeFrame(base_col=None, open_col=frame.open_col))
        self._children(inner)
        if subquery:
            self.frames.pop()
        if closer is not None:
            self._emit(closer, _Role.CLOSE)  # type: ignore[arg-type]
        self.frames.pop()

    def _case(self, node: StructuralNode) -> None:
        children = node.children
        self._emit(children[0])  # type: ignore[arg-type]
        self.frames.append(_CaseFrame(case_col=self.last_col))
        last = children[-1]
        for child in children[1:]:
            role = _Role.PLAIN
            if isinstance(child, Token) and child.kind is TokenKind.KEYWORD:
                word = child.upper
                if word in ("WHEN", "ELSE"):
                    role = _Role.CASE_KW
                elif word == "THEN":
                    role = _Role.CASE_THEN
                elif word == "END" and child is last:
                    role = _Role.CASE_END
            self._child(child, role)
        self.frames.pop()

    # -- emission ------------------------------------------------------------

    def _emit(self, tok: Token, role: _Role = _Role.PLAIN, bracket: _BracketFrame | None = None) -> None:
        gap, self.gap = self.gap, ""
        prev = self.prev
        placement: tuple[int, int] | None = None

        if prev is not None:
            placement = self._break_before(tok, role, gap, bracket)
            if placement is None and (
                prev.kind is TokenKind.LINE_COMMENT or (prev.kind is TokenKind.BLOCK_COMMENT and "\n" in gap)
            ):
                placement = (1, self._resume_col(tok, role))
            if placement is None and self.pending_break_after is not None:
                placement = (1, self.pending_break_after)

        if placement is not None:
            self.out.newline(*placement)
        elif prev is not None:
            self.out.space(self._spaces(tok, role, gap, bracket))

        start = self.out.column
        self.out.write(self._cased(tok))
        self.last_col = start
        self._after_emit(tok, role, start, bracket, line_start=placement is not None or prev is None)

    def _after_emit(
        self,
        tok: Token,
        role: _Role,
        start: int,
        bracket: _BracketFrame | None,
        *,
        line_start: bool,
    ) -> None:
        cfg = self.cfg
        top = self.frames[-1]
        self.pending_double_break = False

        clause = self._current_clause()
        if clause is not None and role not in (_Role.ANCHOR, _Role.ANCHOR_FOLLOW) and clause.anchor_done:
            clause.body_started = True

        if tok.is_comment:
            self.prev = tok
            return

        self.pending_break_after = None
        self.pending_pad_to = None

        if role in (_Role.ANCHOR, _Role.ANCHOR_FOLLOW) and isinstance(top, _ClauseFrame):
            if role is _Role.ANCHOR:
                scope = self._scope()
                top.keyword_col = start
                scope.clauses += 1
                if scope.base_col is None:
                    scope.base_col = start
            top.words += 1
            if top.anchor_done and top.node.is_set_operator and cfg.double_break_before_union:
                self.pending_double_break = True

        elif role is _Role.COMMA and isinstance(top, _ListFrame):
            top.new_item = True
            if top.clause is not None:
                if line_start and cfg.align_comma and top.item_col is not None:
                    self.pending_pad_to = top.item_col
                # A comma pushed onto its own line by a comment keeps the next item beside it.
                if cfg.break_after_comma and not cfg.break_before_comma and not line_start:
                    if cfg.align_comma and top.item_col is not None:
                        self.pending_break_after = top.item_col
                    else:
                        self.pending_break_after = (top.clause.keyword_col or 0) + cfg.indent_width

        elif isinstance(top, _ListFrame):
            if top.item_col is None:
                top.item_col = start
            if top.new_item:
                top.item_start_col = start
                top.new_item = False

        if isinstance(top, _CaseFrame):
            if role is _Role.CASE_KW:
                top.in_condition = tok.upper == "WHEN"
                top.when_body_col = None
            elif role is _Role.CASE_THEN:
                top.in_condition = False
            elif top.in_condition and top.when_body_col is None:
                top.when_body_col = start

        if tok.is_keyword("BETWEEN"):
            top.between = True
        elif tok.is_keyword("AND") and top.between:
            top.between = False

        if role is _Role.OPEN and bracket is not None and bracket.condition and cfg.break_after_condition_bracket:
            self.pending_break_after = start + cfg.indent_width

        self.prev_unary = tok.kind is TokenKind.OPERATOR and tok.text in ("+", "-") and self._unary_position()
        self.prev_open_condition = role is _Role.OPEN and bracket is not None and bracket.condition
        self.prev_semantic = tok
        self.prev = tok

    # -- line breaks ---------------------------------------------------------

    def _break_before(
        self, tok: Token, role: _Role, gap: str, bracket: _BracketFrame | None
    ) -> tuple[int, int] | None:
        cfg = self.cfg

        if self.pending_double_break:
            return 2, self._scope().base()

        if tok.kind is TokenKind.LINE_COMMENT:
            return (1, self._resume_col(tok, role)) if "\n" in gap else None
        if tok.kind is TokenKind.BLOCK_COMMENT:
            if cfg.break_before_block_comment or "\n" in gap:
                return 1, self._resume_col(tok, role)
            return None

        top = self.frames[-1]

        if role is _Role.ANCHOR and isinstance(top, _ClauseFrame):
            scope = self._scope()
            if top.node.is_set_operator and cfg.double_break_before_union:
                return 2, scope.base()
            if scope.clauses and cfg.break_before_keyword:
                return 1, scope.base()
            return None

        if role is _Role.COMMA:
            if isinstance(top, _ListFrame) and top.clause is not None and cfg.break_before_comma:
                return 1, self._comma_col(top)
            return None

        if role is _Role.CASE_KW and cfg.break_before_case and isinstance(top, _CaseFrame):
            return 1, self._case_indent(top)
        if role is _Role.CASE_END and cfg.break_before_case and isinstance(top, _CaseFrame):
            return 1, top.case_col

        if tok.is_keyword("AND", "OR"):
            return self._and_or_break(tok, top)

        if tok.kind is TokenKind.OPERATOR and tok.text == "||" and cfg.break_before_concat:
            return 1, self._continuation_col()

        if role is _Role.OPEN and bracket is not None:
            if bracket.subquery and cfg.break_before_select_bracket:
                return 1, self._continuation_col()
            if bracket.condition and cfg.break_before_condition_bracket:
                return 1, self._continuation_col()
            return None

        if role is _Role.CLOSE and isinstance(top, _BracketFrame):
            if top.condition and cfg.break_before_close_condition_bracket:
                return 1, top.open_col

        return None

    def _and_or_break(self, tok: Token, top: _Frame) -> tuple[int, int] | None:
        if top.between:
            return None
        cfg = self.cfg
        if isinstance(top, _CaseFrame):
            if top.in_condition and cfg.break_before_case_and_or and top.when_body_col is not None:
                return 1, max(top.when_body_col - len(tok.text) - 1, 0)
            return None
        if (
            isinstance(top, _ListFrame)
            and top.clause is not None
            and top.clause.node.is_condition
            and cfg.break_before_and_or
            and top.item_col is not None
        ):
            return 1, max(top.item_col - len(tok.text) - 1, 0)
        return None

    # -- columns -------------------------------------------------------------

    def _resume_col(self, tok: Token, role: _Role) -> int:
        """Column for a token that must start a new line."""
        if role is _Role.PLAIN and not _is_punct(tok, ";"):
            if self.pending_break_after is not None:
                return self.pending_break_after
            if self.pending_pad_to is not None:
                return self.pending_pad_to
        return self._indent_for(tok, role)

    def _indent_for(self, tok: Token, role: _Role) -> int:
        top = self.frames[-1]
        if role is _Role.ANCHOR or _is_punct(tok, ";"):
            return self._scope().base()
        if role is _Role.COMMA and isinstance(top, _ListFrame) and top.clause is not None:
            return self._comma_col(top)
        if role is _Role.CASE_KW and isinstance(top, _CaseFrame):
            return self._case_indent(top)
        if role is _Role.CASE_END and isinstance(top, _CaseFrame):
            return top.case_col
        if role is _Role.CLOSE and isinstance(top, _BracketFrame):
            return top.open_col
        return self._continuation_col()

    def _continuation_col(self) -> int:
        indent = self.cfg.indent_width
        for frame in reversed(self.frames):
            if isinstance(frame, _ListFrame):
                if frame.item_start_col is not None:
                    return frame.item_start_col
            elif isinstance(frame, _CaseFrame):
                return frame.case_col + indent
            elif isinstance(frame, _BracketFrame):
                return frame.open_col + indent
            elif isinstance(frame, _ClauseFrame):
                if frame.keyword_col is not None:
                    return frame.keyword_col + indent
            elif isinstance(frame, _ScopeFrame):
                return frame.base() + indent
        return indent

    def _comma_col(self, frame: _ListFrame) -> int:
        if self.cfg.align_comma and frame.clause is not None:
            return frame.clause.keyword_col or 0
        width = 1 if self.cfg.comma_spacing is Spacing.NONE else 2
        return max((frame.item_col or 0) - width, 0)

    def _case_indent(self, frame: _CaseFrame) -> int:
        return frame.case_col + (self.cfg.indent_width if self.cfg.case_then_indent else 0)

    # -- spacing -------------------------------------------------------------

    def _spaces(self, tok: Token, role: _Role, gap: str, bracket: _BracketFrame | None) -> int:
        if self.pending_pad_to is not None:
            pad = self.pending_pad_to - self.out.column
            if pad > 0:
                return pad

        clause = self._current_clause()
        if (
            self.cfg.align_position.enabled
            and clause is not None
            and clause.top_level
            and clause.anchor_done
            and not clause.body_started
            and role not in (_Role.ANCHOR, _Role.ANCHOR_FOLLOW)
        ):
            column = self.cfg.align_position.column
            return column - self.out.column if self.out.column < column else 1

        assert self.prev is not None
        count = self._base_spacing(self.prev, tok, role, gap, bracket)
        if count == 0 and self._would_merge(self.prev, tok):
            return 1
        return count

    def _base_spacing(
        self, prev: Token, tok: Token, role: _Role, gap: str, bracket: _BracketFrame | None
    ) -> int:
        cfg = self.cfg
        adjacent = 1 if gap else 0

        if prev.is_comment or tok.is_comment:
            return adjacent
        if _is_punct(tok, ";"):
            return 0
        if _is_punct(tok, ","):
            return 1 if cfg.comma_spacing is Spacing.SYMMETRIC else 0
        if _is_punct(prev, ","):
            return 0 if cfg.comma_spacing is Spacing.NONE else 1
        if _is_punct(prev, ".") or _is_punct(tok, ".") or prev.text == "::" or tok.text == "::":
            return 0
        if _is_punct(prev, "[") or _is_punct(tok, "]"):
            return 0
        if _is_punct(tok, "[") or (tok.kind is TokenKind.IDENTIFIER and tok.text.startswith("@") and prev.is_word):
            return adjacent
        if self.prev_unary:
            return 0
        if _is_punct(prev, "("):
            if _is_punct(tok, ")"):
                return 0
            return 0 if cfg.bracket_spacing is Spacing.NONE else 1
        if _is_punct(tok, ")"):
            return 0 if cfg.bracket_spacing is Spacing.NONE else 1
        if role is _Role.OPEN and bracket is not None:
            if bracket.call:
                return 1 if cfg.bracket_spacing is Spacing.SYMMETRIC else 0
            return 1

        if prev.kind is TokenKind.OPERATOR or tok.kind is TokenKind.OPERATOR:
            op, other = (prev, tok) if prev.kind is TokenKind.OPERATOR else (tok, prev)
            if op.text in COMPARISON_OPERATORS:
                return 0 if cfg.equal_spacing is Spacing.NONE else 1
            if cfg.equal_spacing is Spacing.SYMMETRIC or other.kind is TokenKind.KEYWORD:
                return 1
            return adjacent

        if tok.kind is TokenKind.STRING_LITERAL and prev.kind in (TokenKind.KEYWORD, TokenKind.IDENTIFIER):
            return adjacent
        return 1

    @staticmethod
    def _would_merge(prev: Token, tok: Token) -> bool:
        """True when writing *tok* right after *prev* would re-lex differently."""
        if prev.is_word and tok.is_word:
            # `t@dblink` re-lexes as the same two tokens.
            return not tok.text.startswith("@")
        if prev.text.endswith("-") and tok.text.startswith("-"):
            return True
        if prev.text.endswith("/") and tok.text.startswith("*"):
            return True
        if prev.kind is TokenKind.OPERATOR and tok.kind is TokenKind.OPERATOR:
            joined = prev.text + tok.text
            if any(len(op) > len(prev.text) and joined.startswith(op) for op in OPERATORS):
                return True
        quote = prev.text[-1:]
        return quote in ("'", '"', "`") and tok.text[:1] == quote

    # -- context queries -----------------------------------------------------

    def _scope(self) -> _ScopeFrame:
        for frame in reversed(self.frames):
            if isinstance(frame, _ScopeFrame):
                return frame
        return self.frames[0]  # type: ignore[return-value]

    def _current_clause(self) -> _ClauseFrame | None:
        for frame in reversed(self.frames):
            if isinstance(frame, _ListFrame):
                continue
            return frame if isinstance(frame, _ClauseFrame) else None
        return None

    def _in_condition(self) -> bool:
        for frame in reversed(self.frames):
            if isinstance(frame, _ListFrame):
                continue
            if isinstance(frame, _ClauseFrame):
                return frame.node.is_condition
            if isinstance(frame, _CaseFrame):
                return frame.in_condition
            if isinstance(frame, _BracketFrame):
                return frame.condition
            return False
        return False

    def _after_condition_opener(self) -> bool:
        ps = self.prev_semantic
        if ps is None:
            return False
        if ps.kind is TokenKind.KEYWORD and ps.upper in CONDITION_OPENERS:
            return True
        return _is_punct(ps, "(") and self.prev_open_condition

    def _at_call_position(self) -> bool:
        prev = self.prev
        if prev is None or self.gap:
            return False
        if prev.kind is TokenKind.IDENTIFIER:
            return True
        return prev.kind is TokenKind.KEYWORD and prev.upper in CALLABLE_KEYWORDS

    def _unary_position(self) -> bool:
        ps = self.prev_semantic
        if ps is None or ps.kind is TokenKind.OPERATOR:
            return True
        if ps.kind is TokenKind.PUNCTUATION:
            return ps.text in ("(", ",", "[")
        return ps.kind is TokenKind.KEYWORD and ps.upper not in OPERAND_KEYWORDS

    def _cased(self, tok: Token) -> str:
        if tok.kind is TokenKind.KEYWORD:
            return self.cfg.case_mode.apply(tok.text)
        if tok.kind is TokenKind.IDENTIFIER and tok.text[:1] not in _QUOTED_OR_PARAMETER:
            return self.cfg.identifier_case.apply(tok.text)
        return tok.text


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _leading_newlines(statement: StructuralNode) -> int:
    count = 0
    for token in statement.tokens():
        if token.kind is not TokenKind.WHITESPACE:
            break
        count += token.text.count("\n")
    return count


class LayoutRenderer:
    """Renders statement trees according to a :class:`StyleConfig`.

    The renderer holds no per-call state and may be shared between threads.
    """

    def __init__(self, config: StyleConfig | None = None) -> None:
        self.config = config or StyleConfig()

    def render_statement(self, statement: StructuralNode) -> str:
        """Render one STATEMENT tree to text without a trailing newline."""
        return _Layout(self.config).run(statement)

    def render(
        self,
        tree: ParseResult | StructuralNode | Iterable[StructuralNode],
        diagnostics: Iterable[Diagnostic] = (),
    ) -> FormattedOutput:
        """Render every statement of *tree* and join them.

        Statements are separated by one newline, or by a blank line when the
        source had a blank line before the statement.  Statements holding
        nothing but whitespace are dropped.
        """
        collected = list(diagnostics)
        if isinstance(tree, ParseResult):
            statements: Iterable[StructuralNode] = tree.statements
            collected = list(tree.diagnostics) + collected
        elif isinstance(tree, StructuralNode):
            statements = (tree,)
        else:
            statements = tree

        pieces: list[str] = []
        count = 0
        for statement in statements:
            if all(t.kind is TokenKind.WHITESPACE for t in statement.tokens()):
                continue
            if pieces:
                pieces.append("\n\n" if _leading_newlines(statement) >= 2 else "\n")
            pieces.append(self.render_statement(statement))
            count += 1

        logger.debug("Rendered %d statement(s)", count)
        return FormattedOutput(text="".join(pieces), diagnostics=tuple(collected), statement_count=count)


def render(
    tree: ParseResult | StructuralNode | Iterable[StructuralNode],
    config: StyleConfig | None = None,
) -> FormattedOutput:
    """Render *tree* with *config* (defaults when omitted)."""
    return LayoutRenderer(config).render(tree)
