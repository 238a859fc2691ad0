"""Shared text formatting helpers for benchmeter.

Provides time-unit selection and formatting for nanosecond values,
thousands-separated numbers, and aligned text tables.
"""

from __future__ import annotations

import math
from typing import Sequence

TIME_UNITS: dict[str, float] = {
    "ns": 1.0,
    "us": 1_000.0,
    "ms": 1_000_000.0,
    "s": 1_000_000_000.0,
}

UNIT_LABELS: dict[str, str] = {
    "ns": "ns",
    "us": "µs",
    "ms": "ms",
    "s": "s",
}


def _unit_for(ns: float) -> str:
    if ns < 1_000:
        return "ns"
    if ns < 1_000_000:
        return "us"
    if ns < 1_000_000_000:
        return "ms"
    return "s"


def detect_time_unit(values_ns: Sequence[float]) -> str:
    """Pick one display unit for a set of durations.

    Uses the median of the finite positive values so a single outlier
    does not push the whole table into another unit. Falls back to
    ``'ms'`` when there is nothing to look at.
    """
    valid = sorted(v for v in values_ns if math.isfinite(v) and v > 0)
    if not valid:
        return "ms"
    return _unit_for(valid[len(valid) // 2])


def format_time_ns(
    ns: float,
    unit: str | None = None,
    *,
    decimals: int = 2,
    suffix: bool = True,
) -> str:
    """Format a nanosecond duration: ``1500`` -> ``'1.50µs'``.

    Args:
        ns: Duration in nanoseconds.
        unit: One of ``TIME_UNITS``; chosen from the magnitude if None.
        decimals: Digits after the decimal point.
        suffix: Append the unit label.

    Returns:
        The formatted value, or ``'N/A'`` for non-finite input.
    """
    if not math.isfinite(ns):
        return "N/A"
    if unit is None:
        unit = _unit_for(abs(ns))
    if unit not in TIME_UNITS:
        raise ValueError(f"Unknown time unit: {unit!r}")
    text = f"{ns / TIME_UNITS[unit]:.{decimals}f}"
    return text + UNIT_LABELS[unit] if suffix else text


def format_number(value: float, decimals: int = 2) -> str:
    """Format with thousands separators: ``1234567.891`` -> ``'1,234,567.89'``."""
    if math.isnan(value):
        return "N/A"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return f"{value:,.{decimals}f}"


def format_ratio(ratio: float) -> str:
    """Format a speed ratio: ``4.732`` -> ``'4.73x'``."""
    if not math.isfinite(ratio):
        return "N/A"
    return f"{ratio:.2f}x"


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    indent: int = 2,
) -> str:
    """Format rows as an aligned text table with a header rule.

    Column widths come from the content. Columns marked ``'r'`` in
    *alignments* are right-aligned, ``'c'`` centered, anything else
    left-aligned. Short rows are padded with empty cells.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments or [])
    aligns += ["l"] * (ncols - len(aligns))

    proc_rows = [(list(row) + [""] * ncols)[:ncols] for row in rows]

    widths = [len(h) for h in headers]
    for row in proc_rows:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(cell))

    def _cell(text: str, width: int, align: str) -> str:
        if align == "r":
            return text.rjust(width)
        if align == "c":
            return text.center(width)
        return text.ljust(width)

    prefix = " " * indent
    lines = [prefix + "  ".join(_cell(headers[i], widths[i], aligns[i]) for i in range(ncols))]
    lines.append(prefix + "  ".join("─" * w for w in widths))
    for row in proc_rows:
        lines.append(
            prefix + "  ".join(_cell(row[i], widths[i], aligns[i]) for i in range(ncols))
        )
    return "\n".join(line.rstrip() for line in lines)


def format_section_header(title: str, width: int = 72) -> str:
    """Format a section header: ``'─── Title ──────...'``."""
    prefix = "─── "
    fill = width - len(prefix) - len(title) - 1
    return prefix + title + " " + "─" * max(0, fill)
