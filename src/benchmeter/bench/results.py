"""Benchmark result data structures.

Hierarchy::

    TaskResult (one per task per run)
      → stats: BenchStats
      → timings_ns: raw per-iteration durations (optional)

``BenchStats`` is the sample analyzer: it partitions raw timings into
valid and invalid values, rejects outliers with the MAD method and
computes every descriptive statistic on the cleaned subset. Only
``raw_sample_size`` and ``failed_iterations`` describe the raw input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

from benchmeter.bench.stats import (
    NAN,
    coefficient_of_variation,
    confidence_interval,
    detect_outliers_mad,
    mean,
    median,
    min_max,
    percentile,
    std_dev,
)
from benchmeter.bench.timing import NS_PER_SEC, ns_to_ms


DEFAULT_PERCENTILES: tuple[float, ...] = (0.75, 0.90, 0.95, 0.99)


def percentile_label(p: float) -> str:
    """Key for a percentile fraction: 0.75 -> ``'p75'``, 0.999 -> ``'p99.9'``."""
    return f"p{p * 100:g}"


def json_number(value: float) -> float | None:
    """Non-finite floats become ``None`` so the output is strict JSON."""
    if math.isnan(value) or math.isinf(value):
        return None
    return value


# ---------------------------------------------------------------------------
# BenchStats
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchStats:
    """Statistical summary of one task's timing measurements (ns)."""

    mean_ns: float
    median_ns: float
    std_dev_ns: float
    min_ns: float
    max_ns: float
    percentiles_ns: dict[str, float]
    cv: float  # coefficient of variation (std_dev/mean)
    confidence_interval_ns: tuple[float, float]  # 95% CI of the mean
    outliers_ns: tuple[float, ...]
    outlier_ratio: float
    sample_size: int  # after outlier removal
    raw_sample_size: int  # everything that was recorded
    ops_per_second: float
    failed_iterations: int  # NaN, infinite or non-positive timings

    @classmethod
    def from_timings(
        cls,
        timings_ns: Sequence[float],
        *,
        percentiles: Sequence[float] = DEFAULT_PERCENTILES,
    ) -> BenchStats:
        """Analyze a raw timing sequence.

        Invalid timings are counted and dropped, outliers are rejected
        with :func:`detect_outliers_mad`, and the remaining statistics
        are computed on the cleaned sample. A sequence with no valid
        timing yields an all-NaN summary rather than an error.
        """
        valid: list[float] = []
        failed = 0
        for t in timings_ns:
            if math.isfinite(t) and t > 0:
                valid.append(t)
            else:
                failed += 1

        if not valid:
            return cls(
                mean_ns=NAN,
                median_ns=NAN,
                std_dev_ns=NAN,
                min_ns=NAN,
                max_ns=NAN,
                percentiles_ns={percentile_label(p): NAN for p in percentiles},
                cv=NAN,
                confidence_interval_ns=(NAN, NAN),
                outliers_ns=(),
                outlier_ratio=0.0,
                sample_size=0,
                raw_sample_size=len(timings_ns),
                ops_per_second=0.0,
                failed_iterations=failed,
            )

        split = detect_outliers_mad(valid)
        cleaned = sorted(split.cleaned)

        mean_ns = mean(cleaned)
        std_ns = std_dev(cleaned, mean_ns)
        lo, hi = min_max(cleaned)

        return cls(
            mean_ns=mean_ns,
            median_ns=median(cleaned),
            std_dev_ns=std_ns,
            min_ns=lo,
            max_ns=hi,
            percentiles_ns={percentile_label(p): percentile(cleaned, p) for p in percentiles},
            cv=coefficient_of_variation(mean_ns, std_ns),
            confidence_interval_ns=confidence_interval(cleaned),
            outliers_ns=tuple(split.outliers),
            outlier_ratio=len(split.outliers) / len(valid),
            sample_size=len(cleaned),
            raw_sample_size=len(timings_ns),
            ops_per_second=NS_PER_SEC / mean_ns if mean_ns > 0 else 0.0,
            failed_iterations=failed,
        )

    def percentile_ns(self, p: float) -> float:
        """Look up a configured percentile (NaN if it was not computed)."""
        return self.percentiles_ns.get(percentile_label(p), NAN)

    @property
    def p75_ns(self) -> float:
        return self.percentile_ns(0.75)

    @property
    def p90_ns(self) -> float:
        return self.percentile_ns(0.90)

    @property
    def p95_ns(self) -> float:
        return self.percentile_ns(0.95)

    @property
    def p99_ns(self) -> float:
        return self.percentile_ns(0.99)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (non-finite values → None)."""
        d: dict[str, Any] = {
            "mean_ns": json_number(self.mean_ns),
            "median_ns": json_number(self.median_ns),
            "std_dev_ns": json_number(self.std_dev_ns),
            "min_ns": json_number(self.min_ns),
            "max_ns": json_number(self.max_ns),
        }
        for label, value in self.percentiles_ns.items():
            d[f"{label}_ns"] = json_number(value)
        d.update(
            {
                "cv": json_number(self.cv),
                "confidence_interval_ns": [
                    json_number(self.confidence_interval_ns[0]),
                    json_number(self.confidence_interval_ns[1]),
                ],
                "outliers_ns": list(self.outliers_ns),
                "outlier_ratio": self.outlier_ratio,
                "sample_size": self.sample_size,
                "raw_sample_size": self.raw_sample_size,
                "ops_per_second": self.ops_per_second,
                "failed_iterations": self.failed_iterations,
            }
        )
        return d

    def __str__(self) -> str:
        from benchmeter.formatting import format_time_ns

        cv_pct = "N/A" if math.isnan(self.cv) else f"{self.cv * 100:.1f}%"
        return (
            f"BenchStats(mean={format_time_ns(self.mean_ns)}, "
            f"ops/sec={self.ops_per_second:.2f}, cv={cv_pct}, "
            f"samples={self.sample_size})"
        )


# ---------------------------------------------------------------------------
# TaskResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskResult:
    """Outcome of benchmarking one task."""

    name: str
    stats: BenchStats
    iterations: int  # measured iterations (warmup excluded)
    total_time_ns: int  # setup + warmup + measurement + teardown
    timings_ns: tuple[int, ...] | None = None
    error: Exception | None = field(default=None, compare=False)

    @property
    def total_time_ms(self) -> float:
        return ns_to_ms(self.total_time_ns)

    @property
    def failed(self) -> bool:
        """True if setup, the operation or teardown raised."""
        return self.error is not None

    def to_dict(self, *, include_timings: bool = False) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        d: dict[str, Any] = {
            "name": self.name,
            "stats": self.stats.to_dict(),
            "iterations": self.iterations,
            "total_time_ms": round(self.total_time_ms, 6),
            "error": f"{type(self.error).__name__}: {self.error}" if self.error else None,
        }
        if include_timings and self.timings_ns is not None:
            d["timings_ns"] = list(self.timings_ns)
        return d
