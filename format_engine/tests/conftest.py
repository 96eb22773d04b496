"""Shared fixtures for format engine tests.

Settings are read from ``SQLFORM_*`` environment variables, so every test
runs with those variables cleared; process-wide singletons (dialect
registry, profile collector) are reset around each test.
"""

from __future__ import annotations

import os

import pytest

from format_engine.dialects import reset_dialects
from format_engine.telemetry.profiling import ProfileCollector


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch):
    for key in list(os.environ):
        if key.upper().startswith("SQLFORM_"):
            monkeypatch.delenv(key, raising=False)
    reset_dialects()
    ProfileCollector.reset()
    yield
    reset_dialects()
    ProfileCollector.reset()
