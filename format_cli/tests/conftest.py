"""Shared fixtures for CLI tests.

The CLI reconfigures the root logger on every invocation and reads
``SQLFORM_*`` settings from the environment; both are isolated per test.
"""

from __future__ import annotations

import logging
import os

import pytest

from format_engine.dialects import reset_dialects
from format_engine.telemetry.profiling import ProfileCollector


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch):
    for key in list(os.environ):
        if key.upper().startswith("SQLFORM_"):
            monkeypatch.delenv(key, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    reset_dialects()
    ProfileCollector.reset()
    yield
    root.handlers = handlers
    root.setLevel(level)
    reset_dialects()
    ProfileCollector.reset()
