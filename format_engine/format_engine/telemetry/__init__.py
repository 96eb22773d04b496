"""Timing and logging support for the format engine."""

from format_engine.telemetry.log_config import JSONFormatter, configure_logging
from format_engine.telemetry.profiling import ProfileCollector, profile_operation, timed

__all__ = [
    "JSONFormatter",
    "ProfileCollector",
    "configure_logging",
    "profile_operation",
    "timed",
]
