"""Stage timing for the formatting pipeline.

``@profile_operation(name)`` times every call of a pipeline stage with
``perf_counter_ns`` and hands the duration to the process-wide
:class:`ProfileCollector`.  ``sqlform format --profile`` clears the
collector before formatting and prints :meth:`ProfileCollector.get_all_stats`
afterwards.

Usage::

    from format_engine.telemetry.profiling import profile_operation

    @profile_operation("sql.tokenize")
    def tokenize(source):
        ...
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class ProfileCollector:
    """Recent durations (in milliseconds) per stage name.

    Parameters
    ----------
    max_results:
        Durations kept per stage; older ones are discarded first.
    """

    _instance: ProfileCollector | None = None
    _instance_lock = threading.Lock()

    def __init__(self, max_results: int = 100) -> None:
        self._durations: defaultdict[str, deque[float]] = defaultdict(lambda: deque(maxlen=max_results))
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> ProfileCollector:
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the shared collector.  **For testing only.**"""
        with cls._instance_lock:
            cls._instance = None

    def record(self, operation: str, duration_ms: float) -> None:
        with self._lock:
            self._durations[operation].append(duration_ms)

    def get_stats(self, operation: str) -> dict[str, Any] | None:
        """Summarise *operation*, or ``None`` when it was never recorded.

        Keys: ``operation``, ``count``, ``mean_ms``, ``p95_ms``, ``max_ms``
        and ``total_ms``.
        """
        with self._lock:
            ordered = sorted(self._durations.get(operation, ()))
        if not ordered:
            return None

        total = sum(ordered)
        return {
            "operation": operation,
            "count": len(ordered),
            "mean_ms": round(total / len(ordered), 3),
            "p95_ms": round(_percentile(ordered, 95), 3),
            "max_ms": round(ordered[-1], 3),
            "total_ms": round(total, 3),
        }

    def get_all_stats(self) -> list[dict[str, Any]]:
        with self._lock:
            names = sorted(name for name, values in self._durations.items() if values)
        return [stats for stats in map(self.get_stats, names) if stats is not None]

    def clear(self) -> None:
        with self._lock:
            self._durations.clear()


def _percentile(ordered: list[float], p: float) -> float:
    """Linearly interpolated *p*-th percentile of already sorted values."""
    if not ordered:
        return 0.0
    rank = (len(ordered) - 1) * p / 100.0
    below = int(rank)
    above = min(below + 1, len(ordered) - 1)
    return ordered[below] + (ordered[above] - ordered[below]) * (rank - below)


@contextmanager
def timed(name: str) -> Iterator[None]:
    """Record how long the ``with`` block takes under *name*."""
    started = time.perf_counter_ns()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter_ns() - started) / 1_000_000
        ProfileCollector.get_instance().record(name, round(elapsed_ms, 3))
        logger.debug("PROFILE %s: %.3f ms", name, elapsed_ms)


def profile_operation(name: str) -> Callable[[F], F]:
    """Time every call of the decorated stage under *name*."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with timed(name):
                return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
