"""
In-process telemetry.

Counters and latency samples stay in memory (tests assert on them); events
go to the ``mapdiary.telemetry`` log. Event fields are ids and counts only,
never diary text.
"""

from __future__ import annotations

import contextlib
import time
from collections import defaultdict
from collections.abc import Iterator
from threading import Lock
from typing import Any

from mapdiary.observability.logging import get_logger

logger = get_logger("mapdiary.telemetry")

_lock = Lock()
_counters: defaultdict[str, int] = defaultdict(int)
_latencies_ms: defaultdict[str, list[float]] = defaultdict(list)


def log_event(event_name: str, **fields: Any) -> None:
    details = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
    logger.info("event=%s %s", event_name, details)


def counter(name: str, increment: int = 1) -> int:
    """Add ``increment`` to counter ``name`` and return the new value."""
    with _lock:
        _counters[name] += increment
        value = _counters[name]
    logger.debug("counter=%s value=%d", name, value)
    return value


def get_counter(name: str) -> int:
    with _lock:
        return _counters.get(name, 0)


def get_latencies(metric_name: str) -> list[float]:
    """Recorded samples for ``metric_name``, in milliseconds."""
    with _lock:
        return list(_latencies_ms.get(metric_name, []))


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """Record the wall time of the block under ``metric_name`` (milliseconds)."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        with _lock:
            _latencies_ms[metric_name].append(elapsed_ms)
        logger.debug("timing=%s ms=%.2f", metric_name, elapsed_ms)


def reset_telemetry() -> None:
    with _lock:
        _counters.clear()
        _latencies_ms.clear()
