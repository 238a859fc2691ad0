"""Export benchmark results to JSON and Markdown.

JSON output flattens each task's statistics into one object per task
so it can be consumed without knowing the nested result structure.
Non-finite values are written as ``null`` to keep the output strict
JSON.

Markdown output is a summary table for reports, README files and
pull request comments.
"""

from __future__ import annotations

import json
import math
from typing import Any, Sequence

from benchmeter.bench.baseline import BaselineComparison, TaskComparison
from benchmeter.bench.results import TaskResult, json_number
from benchmeter.formatting import (
    UNIT_LABELS,
    detect_time_unit,
    format_number,
    format_ratio,
    format_time_ns,
)


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def _flatten(result: TaskResult, include_timings: bool) -> dict[str, Any]:
    s = result.stats
    d: dict[str, Any] = {
        "name": result.name,
        "iterations": result.iterations,
        "total_time_ms": round(result.total_time_ms, 6),
        "ops_per_second": json_number(s.ops_per_second),
        "mean_ns": json_number(s.mean_ns),
        "median_ns": json_number(s.median_ns),
        "std_dev_ns": json_number(s.std_dev_ns),
        "min_ns": json_number(s.min_ns),
        "max_ns": json_number(s.max_ns),
    }
    for label, value in s.percentiles_ns.items():
        d[f"{label}_ns"] = json_number(value)
    d.update(
        {
            "cv": json_number(s.cv),
            "confidence_interval_ns": [json_number(v) for v in s.confidence_interval_ns],
            "outliers": len(s.outliers_ns),
            "outlier_ratio": s.outlier_ratio,
            "sample_size": s.sample_size,
            "raw_sample_size": s.raw_sample_size,
            "failed_iterations": s.failed_iterations,
            "error": f"{type(result.error).__name__}: {result.error}" if result.failed else None,
        }
    )
    if include_timings and result.timings_ns is not None:
        d["timings_ns"] = list(result.timings_ns)
    return d


def results_to_dicts(
    results: Sequence[TaskResult],
    *,
    include_timings: bool = False,
) -> list[dict[str, Any]]:
    """One flattened, JSON-compatible dict per task."""
    return [_flatten(r, include_timings) for r in results]


def export_json(
    results: Sequence[TaskResult],
    *,
    include_timings: bool = False,
    indent: int | None = 2,
) -> str:
    """Export results as a JSON array, one flattened object per task."""
    return json.dumps(results_to_dicts(results, include_timings=include_timings), indent=indent)


def _change_entry(tc: TaskComparison) -> dict[str, Any]:
    c = tc.comparison
    return {
        "name": tc.name,
        "speedup_ratio": json_number(c.speedup_ratio),
        "effect_size": json_number(c.effect_size),
        "effect_magnitude": c.effect_magnitude,
        "p_value": json_number(c.p_value),
        "baseline_mean_ns": json_number(tc.baseline.mean_ns),
        "current_mean_ns": json_number(tc.current.mean_ns),
    }


def baseline_comparison_to_dict(result: BaselineComparison) -> dict[str, Any]:
    """JSON-compatible form of a baseline comparison."""
    return {
        "baseline_found": result.baseline_found,
        "baseline_timestamp": result.baseline_timestamp,
        "baseline_commit": result.baseline_commit,
        "baseline_age_days": result.baseline_age_days,
        "baseline_stale": result.baseline_stale,
        "summary": {
            "total": len(result.comparisons),
            "regressions": len(result.regressions),
            "improvements": len(result.improvements),
            "unchanged": len(result.unchanged),
            "new_tasks": len(result.new_tasks),
            "removed_tasks": len(result.removed_tasks),
        },
        "regressions": [_change_entry(tc) for tc in result.regressions],
        "improvements": [_change_entry(tc) for tc in result.improvements],
        "unchanged": [tc.name for tc in result.unchanged],
        "new_tasks": list(result.new_tasks),
        "removed_tasks": list(result.removed_tasks),
    }


def export_baseline_comparison_json(
    result: BaselineComparison,
    *,
    indent: int | None = 2,
) -> str:
    """Export a baseline comparison for CI tooling."""
    return json.dumps(baseline_comparison_to_dict(result), indent=indent)


# ---------------------------------------------------------------------------
# Markdown export
# ---------------------------------------------------------------------------


def export_markdown(results: Sequence[TaskResult]) -> str:
    """Export results as a Markdown table.

    Columns: task, ops/sec, median, p99, variation (CV) and speed
    relative to the fastest task. Times share one unit.
    """
    if not results:
        return "(no results)"

    unit = detect_time_unit([r.stats.mean_ns for r in results])
    label = UNIT_LABELS[unit]
    fastest_ops = max(r.stats.ops_per_second for r in results)

    headers = ["Task", "ops/sec", f"p50 ({label})", f"p99 ({label})", "Margin", "vs Best"]
    rows: list[list[str]] = []
    for r in results:
        s = r.stats
        if s.ops_per_second > 0:
            ratio = fastest_ops / s.ops_per_second
            vs_best = "baseline" if ratio == 1.0 else format_ratio(ratio)
        else:
            vs_best = "N/A"
        rows.append(
            [
                r.name,
                format_number(s.ops_per_second),
                format_time_ns(s.median_ns, unit, suffix=False),
                format_time_ns(s.p99_ns, unit, suffix=False),
                "N/A" if math.isnan(s.cv) else f"±{format_number(s.cv * 100)}%",
                vs_best,
            ]
        )

    widths = [max(len(headers[i]), *(len(row[i]) for row in rows)) for i in range(len(headers))]

    def _line(cells: list[str], header: bool = False) -> str:
        padded = [
            cell.ljust(widths[i]) if header or i == 0 else cell.rjust(widths[i])
            for i, cell in enumerate(cells)
        ]
        return "| " + " | ".join(padded) + " |"

    lines = [_line(headers, header=True)]
    lines.append("| " + " | ".join("-" * w for w in widths) + " |")
    lines.extend(_line(row) for row in rows)
    return "\n".join(lines)
