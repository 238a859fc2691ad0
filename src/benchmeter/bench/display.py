"""Terminal display formatting for benchmark results.

Produces aligned tables and short summaries. All durations in one
table share a single unit so rows can be compared by eye.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence

from benchmeter.bench.baseline import BaselineComparison
from benchmeter.bench.results import TaskResult
from benchmeter.formatting import (
    UNIT_LABELS,
    detect_time_unit,
    format_number,
    format_ratio,
    format_section_header,
    format_table,
    format_time_ns,
)


def _vs_best(fastest_ops: float, ops: float) -> str:
    if ops <= 0 or not math.isfinite(ops):
        return "N/A"
    ratio = fastest_ops / ops
    return "baseline" if ratio == 1.0 else format_ratio(ratio)


# ---------------------------------------------------------------------------
# Results table
# ---------------------------------------------------------------------------


def format_results_table(results: Sequence[TaskResult]) -> str:
    """Format results as a text table with percentiles and relative speed.

    Failed tasks are marked in the first column and their errors are
    listed below the table.
    """
    if not results:
        return "(no results)"

    unit = detect_time_unit([r.stats.mean_ns for r in results])
    label = UNIT_LABELS[unit]
    fastest_ops = max(r.stats.ops_per_second for r in results)

    def t(ns: float) -> str:
        return format_time_ns(ns, unit, suffix=False)

    headers = [
        "",
        "Task",
        "ops/sec",
        f"mean ({label})",
        f"p50 ({label})",
        f"p75 ({label})",
        f"p90 ({label})",
        f"p95 ({label})",
        f"p99 ({label})",
        f"min ({label})",
        f"max ({label})",
        "samples",
        "vs best",
    ]
    rows: list[list[str]] = []
    for r in results:
        s = r.stats
        rows.append(
            [
                "✗" if r.failed else "",
                r.name,
                format_number(s.ops_per_second),
                t(s.mean_ns),
                t(s.median_ns),
                t(s.p75_ns),
                t(s.p90_ns),
                t(s.p95_ns),
                t(s.p99_ns),
                t(s.min_ns),
                t(s.max_ns),
                str(s.sample_size),
                _vs_best(fastest_ops, s.ops_per_second),
            ]
        )

    lines = [format_table(headers, rows, alignments=["l", "l"] + ["r"] * 11)]

    failed = [r for r in results if r.failed]
    if failed:
        lines.append("")
        lines.append("Errors:")
        for r in failed:
            lines.append(f"  {r.name}: {type(r.error).__name__}: {r.error}")

    return "\n".join(lines)


@dataclass(frozen=True)
class ResultGroup:
    """A named section of a grouped results table.

    A result belongs to every group whose ``matches`` accepts it.
    """

    name: str
    matches: Callable[[TaskResult], bool]
    description: str | None = None


def format_results_table_grouped(
    results: Sequence[TaskResult],
    groups: Sequence[ResultGroup],
) -> str:
    """Format one results table per group, each under its own header.

    Groups that match nothing are left out. Results matched by no
    group are collected in a trailing "Other" section. Relative speed
    is computed within each section.
    """
    if not results:
        return "(no results)"

    sections: list[str] = []
    grouped: set[str] = set()
    for group in groups:
        members = [r for r in results if group.matches(r)]
        if not members:
            continue
        grouped.update(r.name for r in members)
        header = format_section_header(group.name)
        if group.description:
            header += f"\n  {group.description}"
        sections.append(f"{header}\n{format_results_table(members)}")

    ungrouped = [r for r in results if r.name not in grouped]
    if ungrouped:
        sections.append(f"{format_section_header('Other')}\n{format_results_table(ungrouped)}")

    return "\n\n".join(sections)


def format_summary(results: Sequence[TaskResult]) -> str:
    """Fastest/slowest lines and the speed difference between them."""
    if not results:
        return "No results"

    fastest = max(results, key=lambda r: r.stats.ops_per_second)
    slowest = min(results, key=lambda r: r.stats.ops_per_second)
    unit = detect_time_unit([r.stats.mean_ns for r in results])

    def describe(r: TaskResult) -> str:
        return (
            f"{r.name} ({format_number(r.stats.ops_per_second)} ops/sec, "
            f"{format_time_ns(r.stats.mean_ns, unit)} per op)"
        )

    lines = [f"Fastest: {describe(fastest)}"]
    if len(results) > 1:
        slow_ops = slowest.stats.ops_per_second
        ratio = fastest.stats.ops_per_second / slow_ops if slow_ops > 0 else math.inf
        lines.append(f"Slowest: {describe(slowest)}")
        lines.append(f"Speed difference: {format_ratio(ratio)}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Baseline comparison
# ---------------------------------------------------------------------------


def _format_age(days: float) -> str:
    if days < 1:
        return "less than a day"
    if days < 2:
        return "1 day"
    return f"{int(days)} days"


def format_baseline_comparison(result: BaselineComparison) -> str:
    """Human-readable summary of a baseline comparison."""
    if not result.baseline_found:
        return "No baseline found. Run with --save-baseline to create one."

    lines = [f"Comparing against baseline from {result.baseline_timestamp}"]
    if result.baseline_commit:
        lines.append(f"Baseline commit: {result.baseline_commit[:8]}")
    if result.baseline_age_days is not None:
        stale = " (STALE)" if result.baseline_stale else ""
        lines.append(f"Baseline age: {_format_age(result.baseline_age_days)}{stale}")
    lines.append("")

    if result.regressions:
        lines.append(f"Regressions ({len(result.regressions)}):")
        for tc in result.regressions:
            c = tc.comparison
            lines.append(
                f"  {tc.name}: {c.speedup_ratio:.2f}x slower "
                f"(p={c.p_value:.3f}, {c.effect_magnitude})"
            )
        lines.append("")

    if result.improvements:
        lines.append(f"Improvements ({len(result.improvements)}):")
        for tc in result.improvements:
            c = tc.comparison
            lines.append(
                f"  {tc.name}: {c.speedup_ratio:.2f}x faster "
                f"(p={c.p_value:.3f}, {c.effect_magnitude})"
            )
        lines.append("")

    if result.unchanged:
        lines.append(f"Unchanged ({len(result.unchanged)}):")
        for tc in result.unchanged:
            lines.append(f"  {tc.name}")
        lines.append("")

    if result.new_tasks:
        lines.append(f"New tasks ({len(result.new_tasks)}): {', '.join(result.new_tasks)}")
    if result.removed_tasks:
        lines.append(
            f"Removed tasks ({len(result.removed_tasks)}): {', '.join(result.removed_tasks)}"
        )

    parts: list[str] = []
    if result.regressions:
        parts.append(f"{len(result.regressions)} regressions")
    if result.improvements:
        parts.append(f"{len(result.improvements)} improvements")
    if result.unchanged:
        parts.append(f"{len(result.unchanged)} unchanged")
    total = len(result.comparisons)
    lines.append("")
    lines.append(f"Summary: {', '.join(parts) or 'nothing compared'} ({total} total)")

    return "\n".join(lines)
