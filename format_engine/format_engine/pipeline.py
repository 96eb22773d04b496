"""Formatting pipeline: Lexer -> StructuralParser -> LayoutRenderer.

The pipeline is a pure function of (text, style).  The only fatal error is
:class:`~format_engine._types.ResourceExceeded` for input over the size
ceiling; every structural problem in the input is returned as a diagnostic
next to the best-effort output.
"""

from __future__ import annotations

import logging

from format_engine._types import FormattedOutput, LexResult, ParseResult, ResourceExceeded
from format_engine.config import Settings, load_settings
from format_engine.lexer import Lexer
from format_engine.parser import StructuralParser
from format_engine.renderer import LayoutRenderer
from format_engine.style import StyleConfig
from format_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)


@profile_operation("sql.tokenize")
def _tokenize(source: str, dialect: str) -> LexResult:
    return Lexer(dialect).run(source)


@profile_operation("sql.parse")
def _parse(lexed: LexResult) -> ParseResult:
    return StructuralParser().parse(lexed)


@profile_operation("sql.render")
def _render(parsed: ParseResult, renderer: LayoutRenderer) -> FormattedOutput:
    return renderer.render(parsed)


class Formatter:
    """Reusable formatter bound to one style and one set of settings.

    Parameters
    ----------
    config:
        Style to apply.  Defaults to :class:`StyleConfig` with the dialect
        taken from ``settings.default_dialect``.
    settings:
        Engine settings; loaded from the environment when omitted.
    """

    def __init__(self, config: StyleConfig | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()
        self.config = config or StyleConfig(source_dialect=self.settings.default_dialect)
        self._renderer = LayoutRenderer(self.config)

    def check_size(self, source: str) -> int:
        """Return the UTF-8 size of *source*, raising if it is over the ceiling."""
        size = len(source.encode("utf-8", errors="surrogatepass"))
        limit = self.settings.max_input_bytes
        if size > limit:
            logger.warning("Rejecting input of %d bytes (limit %d)", size, limit)
            raise ResourceExceeded(size, limit)
        return size

    @profile_operation("sql.format")
    def format(self, source: str) -> FormattedOutput:
        """Format *source*.

        Raises
        ------
        ResourceExceeded
            If *source* is larger than ``settings.max_input_bytes``.
        """
        size = self.check_size(source)

        lexed = _tokenize(source, self.config.source_dialect)
        parsed = _parse(lexed)
        rendered = _render(parsed, self._renderer)

        diagnostics = tuple(sorted(lexed.diagnostics + parsed.diagnostics, key=lambda d: d.offset))
        for diag in diagnostics:
            logger.debug("%s at %d:%d: %s", diag.kind.value, diag.line, diag.column, diag.message)

        logger.debug(
            "Formatted %d statement(s)",
            rendered.statement_count,
            extra={
                "pipeline": {
                    "input_bytes": size,
                    "tokens": len(lexed.tokens),
                    "statements": rendered.statement_count,
                    "diagnostics": len(diagnostics),
                }
            },
        )
        return FormattedOutput(
            text=rendered.text,
            diagnostics=diagnostics,
            statement_count=rendered.statement_count,
        )

    def is_formatted(self, source: str) -> bool:
        """True when formatting *source* would not change it.

        A single trailing newline, as written by the CLI, is ignored.
        """
        text = source[:-1] if source.endswith("\n") else source
        return self.format(text).text == text


def format_sql(
    source: str,
    config: StyleConfig | None = None,
    *,
    settings: Settings | None = None,
) -> FormattedOutput:
    """Format *source* with *config* (functional form of :class:`Formatter`)."""
    return Formatter(config, settings).format(source)
