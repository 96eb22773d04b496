"""Dialect keyword tables.

Each dialect is a named, immutable keyword set.  The built-in dialects are
registered lazily on first access; callers may add their own with
:func:`register_dialect`.  The registry is a thread-safe module singleton,
the only process-wide mutable state in the engine besides the profile
collector.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Built-in dialects
# ---------------------------------------------------------------------------


class Dialect(str, enum.Enum):
    """Dialects shipped with the engine."""

    GENERIC = "generic"
    ORACLE = "oracle"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLSERVER = "sqlserver"


# Built-in function names.  They lex as keywords (and are cased as such) but
# a bracket directly after one of them is a call, not a grouping bracket.
FUNCTIONS: frozenset[str] = frozenset(
    {
        "ABS", "AVG", "CAST", "CEIL", "CEILING", "COALESCE", "CONCAT", "CONVERT",
        "COUNT", "DECODE", "DENSE_RANK", "EXTRACT", "FIRST_VALUE", "FLOOR",
        "GREATEST", "LAG", "LAST_VALUE", "LEAD", "LEAST", "LENGTH", "LISTAGG",
        "LOWER", "LPAD", "LTRIM", "MAX", "MIN", "MOD", "NULLIF", "NVL", "NVL2",
        "RANK", "REPLACE", "ROUND", "ROW_NUMBER", "RPAD", "RTRIM", "SUBSTR",
        "SUBSTRING", "SUM", "TO_CHAR", "TO_DATE", "TO_NUMBER", "TRIM", "TRUNC",
        "UPPER",
    }
)

_BASE_KEYWORDS: frozenset[str] = frozenset(
    {
        # Clauses and statements
        "SELECT", "FROM", "WHERE", "GROUP", "BY", "HAVING", "ORDER", "LIMIT",
        "OFFSET", "FETCH", "UNION", "INTERSECT", "EXCEPT", "ALL", "DISTINCT",
        "WITH", "RECURSIVE", "INSERT", "INTO", "VALUES", "UPDATE", "SET",
        "DELETE", "MERGE", "USING", "MATCHED", "RETURNING", "CREATE", "ALTER",
        "DROP", "TRUNCATE", "TABLE", "VIEW", "INDEX", "SEQUENCE", "REPLACE",
        "GRANT", "REVOKE", "COMMIT", "ROLLBACK", "BEGIN", "DECLARE",
        # Joins
        "JOIN", "INNER", "OUTER", "LEFT", "RIGHT", "FULL", "CROSS", "NATURAL",
        "ON", "LATERAL",
        # Expressions
        "AS", "AND", "OR", "NOT", "IN", "IS", "NULL", "LIKE", "BETWEEN",
        "EXISTS", "ANY", "SOME", "CASE", "WHEN", "THEN", "ELSE", "END", "TRUE",
        "FALSE", "ASC", "DESC", "NULLS", "FIRST", "LAST", "OVER", "PARTITION",
        "ROWS", "RANGE", "UNBOUNDED", "PRECEDING", "FOLLOWING", "CURRENT",
        "ROW", "ONLY", "NEXT", "ESCAPE", "INTERVAL",
        "CURRENT_DATE", "CURRENT_TIME", "CURRENT_TIMESTAMP",
        # DDL
        "PRIMARY", "KEY", "FOREIGN", "REFERENCES", "UNIQUE", "CHECK",
        "CONSTRAINT", "DEFAULT", "CASCADE", "TEMPORARY", "IF",
        # Types
        "INT", "INTEGER", "SMALLINT", "BIGINT", "DECIMAL", "NUMERIC", "FLOAT",
        "REAL", "DOUBLE", "PRECISION", "CHAR", "VARCHAR", "TEXT", "BOOLEAN",
        "DATE", "TIME", "TIMESTAMP", "ZONE",
    }
) | FUNCTIONS

_DIALECT_EXTRAS: dict[Dialect, frozenset[str]] = {
    Dialect.GENERIC: frozenset(),
    Dialect.ORACLE: frozenset(
        {
            "MINUS", "CONNECT", "START", "PRIOR", "NOCYCLE", "LEVEL", "ROWNUM",
            "SYSDATE", "SYSTIMESTAMP", "DUAL", "VARCHAR2", "NUMBER", "CLOB",
            "BLOB", "PIVOT", "UNPIVOT", "SIBLINGS",
        }
    ),
    Dialect.POSTGRESQL: frozenset({"ILIKE", "SIMILAR", "SERIAL", "JSONB", "CONFLICT", "DO", "NOTHING"}),
    Dialect.MYSQL: frozenset({"REGEXP", "RLIKE", "STRAIGHT_JOIN", "DUPLICATE", "IGNORE", "AUTO_INCREMENT"}),
    Dialect.SQLSERVER: frozenset({"TOP", "PERCENT", "NOLOCK", "APPLY", "OUTPUT", "NVARCHAR", "IDENTITY"}),
}

# Names understood by sqlglot for equivalence checking.
_SQLGLOT_NAMES: dict[Dialect, str | None] = {
    Dialect.GENERIC: None,
    Dialect.ORACLE: "oracle",
    Dialect.POSTGRESQL: "postgres",
    Dialect.MYSQL: "mysql",
    Dialect.SQLSERVER: "tsql",
}


@dataclass(frozen=True, slots=True)
class DialectSpec:
    """A registered dialect: its keyword table and sqlglot name.

    ``q_quotes`` enables Oracle alternative quoting (``q'[it's]'``).
    """

    name: str
    keywords: frozenset[str]
    sqlglot_name: str | None = None
    q_quotes: bool = False

    def is_keyword(self, word: str) -> bool:
        return word.upper() in self.keywords


# ---------------------------------------------------------------------------
# Registry (thread-safe singleton)
# ---------------------------------------------------------------------------

_lock = threading.Lock()
_registry: dict[str, DialectSpec] | None = None


def _builtin_registry() -> dict[str, DialectSpec]:
    return {
        d.value: DialectSpec(
            name=d.value,
            keywords=_BASE_KEYWORDS | _DIALECT_EXTRAS[d],
            sqlglot_name=_SQLGLOT_NAMES[d],
            q_quotes=d is Dialect.ORACLE,
        )
        for d in Dialect
    }


def _get_registry() -> dict[str, DialectSpec]:
    global _registry
    if _registry is not None:
        return _registry

    with _lock:
        # Double-checked locking
        if _registry is None:
            _registry = _builtin_registry()
        return _registry


def register_dialect(
    name: str,
    keywords: Iterable[str],
    *,
    extends: str | None = Dialect.GENERIC.value,
    sqlglot_name: str | None = None,
    q_quotes: bool | None = None,
) -> DialectSpec:
    """Register (or replace) a dialect keyword table.

    ``keywords`` are added to those of the ``extends`` dialect; pass
    ``extends=None`` to register a standalone table.  ``sqlglot_name`` and
    ``q_quotes`` default to the base dialect's values.
    """
    key = name.strip().lower()
    if not key:
        raise ValueError("Dialect name must be non-empty")

    registry = _get_registry()
    base: frozenset[str] = frozenset()
    if extends is not None:
        parent = registry.get(extends.lower())
        if parent is None:
            raise KeyError(f"Unknown base dialect: {extends!r}")
        base = parent.keywords
        if sqlglot_name is None:
            sqlglot_name = parent.sqlglot_name
        if q_quotes is None:
            q_quotes = parent.q_quotes

    spec = DialectSpec(
        name=key,
        keywords=base | frozenset(k.upper() for k in keywords),
        sqlglot_name=sqlglot_name,
        q_quotes=bool(q_quotes),
    )
    with _lock:
        registry[key] = spec
    logger.debug("Registered dialect %s with %d keywords", key, len(spec.keywords))
    return spec


def get_dialect(name: str) -> DialectSpec:
    """Return the registered dialect called *name*.

    Raises
    ------
    KeyError
        If no dialect of that name is registered.
    """
    spec = _get_registry().get(name.lower())
    if spec is None:
        raise KeyError(f"Unknown dialect: {name!r}")
    return spec


def get_keywords(name: str) -> frozenset[str]:
    return get_dialect(name).keywords


def is_registered(name: str) -> bool:
    return name.lower() in _get_registry()


def available_dialects() -> list[str]:
    """Return the registered dialect names, sorted."""
    return sorted(_get_registry())


def reset_dialects() -> None:
    """Drop custom dialects.  **For testing only.**"""
    global _registry
    with _lock:
        _registry = None
