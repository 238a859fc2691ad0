"""Timing primitives for benchmark iterations.

A clock is any nullary callable returning a monotonically
non-decreasing integer count of nanoseconds. The default is
``time.perf_counter_ns``; tests inject deterministic clocks.

Operations are tagged once with an :class:`ExecutionMode` so the
measurement loop can branch on a plain enum instead of inspecting
every return value.
"""

from __future__ import annotations

import enum
import inspect
import time
from typing import Any, Callable

Clock = Callable[[], int]

NS_PER_US = 1_000
NS_PER_MS = 1_000_000
NS_PER_SEC = 1_000_000_000


def default_clock() -> int:
    """High-resolution monotonic clock in nanoseconds."""
    return time.perf_counter_ns()


class ExecutionMode(enum.Enum):
    """How a benchmarked operation must be driven."""

    SYNC = "sync"
    SUSPENDING = "suspending"

    @classmethod
    def from_hint(cls, is_async: bool | None) -> ExecutionMode | None:
        """Translate an explicit ``is_async`` hint (None = detect)."""
        if is_async is None:
            return None
        return cls.SUSPENDING if is_async else cls.SYNC


def detect_mode(value: Any) -> ExecutionMode:
    """Classify an operation by the value its first call returned."""
    if inspect.isawaitable(value):
        return ExecutionMode.SUSPENDING
    return ExecutionMode.SYNC


async def call_maybe_async(fn: Callable[[], Any]) -> Any:
    """Call *fn* and await the result if it is awaitable.

    Used for setup, teardown and warmup, where the cost of the check
    does not matter.
    """
    result = fn()
    if inspect.isawaitable(result):
        return await result
    return result


def ms_to_ns(ms: float) -> int:
    """Convert milliseconds to integer nanoseconds."""
    return int(ms * NS_PER_MS)


def ns_to_ms(ns: float) -> float:
    """Convert nanoseconds to milliseconds."""
    return ns / NS_PER_MS
