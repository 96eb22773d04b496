"""Logging setup.

Two modes, selected by ``Settings.structured_logging`` or the CLI's
``--structured-logs`` flag:

* text: a :class:`rich.logging.RichHandler` on stderr;
* structured: one JSON object per line on stderr via :class:`JSONFormatter`.

Output schema per line in structured mode::

    {
        "timestamp": "2026-05-15T12:34:56.789012+00:00",
        "level": "DEBUG",
        "logger": "format_engine.pipeline",
        "message": "Formatted 2 statement(s)",
        "pipeline": { ... },         // present when passed via extra={"pipeline": ...}
        "exc_info": "Traceback ..."  // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "sqlform"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Structured pipeline context passed via ``extra={"pipeline": ...}``.
        context = getattr(record, "pipeline", None)
        if context is not None:
            payload["pipeline"] = context

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(level: str | int = "WARNING", *, structured: bool = False) -> logging.Handler:
    """Install a single stderr handler on the root logger.

    Calling it again replaces the handler installed by the previous call,
    so the CLI can reconfigure logging per invocation.
    """
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler: logging.Handler
    if structured:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    handler.set_name(_HANDLER_NAME)

    root.addHandler(handler)
    return handler
