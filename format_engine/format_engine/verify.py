"""Equivalence check between source SQL and its formatted text.

Both texts are normalised through sqlglot's transpiler with comments and
layout stripped; if the normalised forms match, formatting changed nothing
but whitespace and casing.  Input sqlglot cannot parse is reported as
``UNVERIFIED`` rather than as a difference, since the formatter accepts SQL
that no parser does.
"""

from __future__ import annotations

import enum
import logging

import sqlglot
from pydantic import BaseModel, ConfigDict, Field
from sqlglot.errors import ErrorLevel, SqlglotError

from format_engine.dialects import get_dialect

logger = logging.getLogger(__name__)


class VerificationStatus(str, enum.Enum):
    EQUIVALENT = "equivalent"
    DIFFERENT = "different"
    UNVERIFIED = "unverified"


class VerificationResult(BaseModel):
    """Outcome of an equivalence check."""

    model_config = ConfigDict(frozen=True)

    status: VerificationStatus = Field(description="Outcome of the comparison.")
    detail: str = Field(default="", description="Reason for a non-equivalent outcome.")

    @property
    def ok(self) -> bool:
        return self.status is not VerificationStatus.DIFFERENT


def _normalise(sql: str, dialect: str | None) -> list[str]:
    return sqlglot.transpile(
        sql,
        read=dialect,
        write=dialect,
        pretty=False,
        comments=False,
        normalize=True,
        error_level=ErrorLevel.RAISE,
    )


def check_equivalence(original: str, formatted: str, dialect: str = "oracle") -> VerificationResult:
    """Compare *original* and *formatted* after sqlglot normalisation."""
    sqlglot_dialect = get_dialect(dialect).sqlglot_name

    try:
        before = _normalise(original, sqlglot_dialect)
    except SqlglotError as exc:
        logger.debug("sqlglot cannot parse the source; skipping verification: %s", exc)
        return VerificationResult(status=VerificationStatus.UNVERIFIED, detail=f"source not parseable: {exc}")

    try:
        after = _normalise(formatted, sqlglot_dialect)
    except SqlglotError as exc:
        logger.warning("Formatted output no longer parses: %s", exc)
        return VerificationResult(status=VerificationStatus.DIFFERENT, detail=f"output not parseable: {exc}")

    if before != after:
        for i, (a, b) in enumerate(zip(before, after, strict=False)):
            if a != b:
                return VerificationResult(
                    status=VerificationStatus.DIFFERENT,
                    detail=f"statement {i + 1} differs: {a!r} != {b!r}",
                )
        return VerificationResult(
            status=VerificationStatus.DIFFERENT,
            detail=f"statement count differs: {len(before)} != {len(after)}",
        )

    return VerificationResult(status=VerificationStatus.EQUIVALENT)
