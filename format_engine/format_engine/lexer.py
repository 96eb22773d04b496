"""SQL lexer.

Cuts raw SQL text into an ordered sequence of typed tokens.  The lexer never
fails: every character of the input lands in exactly one token, so joining
the token texts reproduces the source byte for byte.  Unterminated strings,
quoted identifiers and block comments run to the end of the input and are
reported as diagnostics.
"""

from __future__ import annotations

import logging
import re

from format_engine._types import Diagnostic, DiagnosticKind, LexResult, Position, Token, TokenKind
from format_engine.dialects import Dialect, get_dialect

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lexical tables
# ---------------------------------------------------------------------------

_WHITESPACE_RE = re.compile(r"\s+")
_LINE_COMMENT_RE = re.compile(r"--[^\r\n]*")
_NUMBER_RE = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_WORD_RE = re.compile(r"[^\W\d][\w$#]*")
_PARAMETER_RE = re.compile(r"(?::|@@?|\$)\w+")

# Longest first so that ``<=`` wins over ``<``.
OPERATORS: tuple[str, ...] = (
    "->>", "<=>",
    "<>", "!=", "<=", ">=", "||", "::", ":=", "=>", "->",
    "=", "<", ">", "+", "-", "*", "/", "%", "^", "&", "|", "~", "!", "?", ":", "@",
)

PUNCTUATION: frozenset[str] = frozenset("(),;.[]")

_QUOTED_IDENTIFIER_OPENERS = {'"': '"', "`": "`"}

# Oracle alternative quoting: q'[...]', q'{...}', q'(...)', q'<...>' or q'!...!'.
_Q_CLOSERS = {"[": "]", "{": "}", "(": ")", "<": ">"}


def _scan_quoted(source: str, start: int, quote: str) -> tuple[int, bool]:
    """Return ``(end, terminated)`` for a quoted run opening at *start*.

    A doubled quote character inside the run is an escaped quote.
    """
    i = start + 1
    while True:
        j = source.find(quote, i)
        if j < 0:
            return len(source), False
        if source.startswith(quote, j + 1):
            i = j + 2
            continue
        return j + 1, True


def _scan_q_quote(source: str, pos: int) -> tuple[int, bool] | None:
    """Return ``(end, terminated)`` for a ``q'<d>...<d>'`` literal at *pos*, or ``None``."""
    start = pos + 1 if source[pos] in "nN" else pos
    if not source.startswith(("q'", "Q'"), start) or start + 2 >= len(source):
        return None
    delimiter = source[start + 2]
    if delimiter.isspace():
        return None
    close = source.find(_Q_CLOSERS.get(delimiter, delimiter) + "'", start + 3)
    if close < 0:
        return len(source), False
    return close + 2, True


def _can_start_parameter(source: str, pos: int) -> bool:
    """A ``:`` is a bind marker only where an operand may start."""
    if pos == 0:
        return True
    prev = source[pos - 1]
    return not (prev.isalnum() or prev in "_)]:")


def _can_start_fraction(source: str, pos: int) -> bool:
    """``.5`` is a number unless the dot qualifies a preceding name."""
    if pos == 0:
        return True
    prev = source[pos - 1]
    return not (prev.isalnum() or prev in '_)"`]')


# ---------------------------------------------------------------------------
# Lexer
# ---------------------------------------------------------------------------


class Lexer:
    """Tokenizer bound to one dialect's keyword table.

    Parameters
    ----------
    dialect:
        Name of a registered dialect.  Words whose upper-cased form is in
        the dialect's keyword table become KEYWORD tokens.
    """

    def __init__(self, dialect: str | Dialect = Dialect.ORACLE) -> None:
        name = dialect.value if isinstance(dialect, Dialect) else dialect
        spec = get_dialect(name)
        self._keywords = spec.keywords
        self._q_quotes = spec.q_quotes
        self.dialect = name

    def run(self, source: str) -> LexResult:
        """Tokenize *source*, collecting diagnostics for unterminated runs."""
        tokens: list[Token] = []
        diagnostics: list[Diagnostic] = []
        pos = 0
        line = 1
        column = 1

        while pos < len(source):
            kind, end, problem = self._scan_one(source, pos)
            text = source[pos:end]
            token = Token(kind, text, Position(line=line, column=column, offset=pos))
            tokens.append(token)

            if problem is not None:
                diag = Diagnostic.at(problem[0], problem[1], token)
                logger.debug("Lexer diagnostic %s at %d:%d", diag.kind.value, diag.line, diag.column)
                diagnostics.append(diag)

            newlines = text.count("\n")
            if newlines:
                line += newlines
                column = len(text) - text.rfind("\n")
            else:
                column += len(text)
            pos = end

        return LexResult(tokens=tuple(tokens), diagnostics=tuple(diagnostics))

    def _scan_one(self, source: str, pos: int) -> tuple[TokenKind, int, tuple[DiagnosticKind, str] | None]:
        ch = source[pos]

        if ch.isspace():
            m = _WHITESPACE_RE.match(source, pos)
            assert m is not None
            return TokenKind.WHITESPACE, m.end(), None

        if source.startswith("--", pos):
            m = _LINE_COMMENT_RE.match(source, pos)
            assert m is not None
            return TokenKind.LINE_COMMENT, m.end(), None

        if source.startswith("/*", pos):
            close = source.find("*/", pos + 2)
            if close < 0:
                return (
                    TokenKind.BLOCK_COMMENT,
                    len(source),
                    (DiagnosticKind.UNTERMINATED_COMMENT, "Block comment is not closed before end of input"),
                )
            return TokenKind.BLOCK_COMMENT, close + 2, None

        if ch == "'":
            end, terminated = _scan_quoted(source, pos, "'")
            if not terminated:
                return (
                    TokenKind.STRING_LITERAL,
                    end,
                    (DiagnosticKind.UNTERMINATED_STRING, "String literal is not closed before end of input"),
                )
            return TokenKind.STRING_LITERAL, end, None

        if ch in _QUOTED_IDENTIFIER_OPENERS:
            end, terminated = _scan_quoted(source, pos, _QUOTED_IDENTIFIER_OPENERS[ch])
            if not terminated:
                return (
                    TokenKind.IDENTIFIER,
                    end,
                    (
                        DiagnosticKind.UNTERMINATED_QUOTED_IDENTIFIER,
                        "Quoted identifier is not closed before end of input",
                    ),
                )
            return TokenKind.IDENTIFIER, end, None

        if ch.isdigit() or (ch == "." and _can_start_fraction(source, pos)):
            m = _NUMBER_RE.match(source, pos)
            if m is not None:
                return TokenKind.NUMBER_LITERAL, m.end(), None

        if self._q_quotes and ch in "qQnN":
            scanned = _scan_q_quote(source, pos)
            if scanned is not None:
                end, terminated = scanned
                if not terminated:
                    return (
                        TokenKind.STRING_LITERAL,
                        end,
                        (DiagnosticKind.UNTERMINATED_STRING, "Quoted literal is not closed before end of input"),
                    )
                return TokenKind.STRING_LITERAL, end, None

        m = _WORD_RE.match(source, pos)
        if m is not None:
            kind = TokenKind.KEYWORD if m.group().upper() in self._keywords else TokenKind.IDENTIFIER
            return kind, m.end(), None

        if ch in ":@$" and not source.startswith("::", pos):
            m = _PARAMETER_RE.match(source, pos)
            if m is not None and (ch != ":" or _can_start_parameter(source, pos)):
                return TokenKind.IDENTIFIER, m.end(), None

        for op in OPERATORS:
            if source.startswith(op, pos):
                return TokenKind.OPERATOR, pos + len(op), None

        if ch in PUNCTUATION:
            return TokenKind.PUNCTUATION, pos + 1, None

        # Anything else stays a one-character operator.
        return TokenKind.OPERATOR, pos + 1, None


def tokenize(source: str, dialect: str | Dialect = Dialect.ORACLE) -> tuple[Token, ...]:
    """Tokenize *source* with the keyword table of *dialect*."""
    return Lexer(dialect).run(source).tokens
