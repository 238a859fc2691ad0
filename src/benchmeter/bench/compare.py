"""Statistical comparison of two benchmark summaries.

Only the mean, standard deviation, sample size and confidence
interval are needed, so a full :class:`BenchStats` and a summary
reloaded from a baseline file compare the same way.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

from benchmeter.bench.stats import (
    cohens_d,
    confidence_interval_from_summary,
    t_distribution_p_value,
    welch_ttest,
)


class Comparable(Protocol):
    """The projection of a summary that :func:`compare_stats` needs."""

    mean_ns: float
    std_dev_ns: float
    sample_size: int
    confidence_interval_ns: tuple[float, float]


@dataclass(frozen=True)
class ComparableStats:
    """Minimal comparable summary."""

    mean_ns: float
    std_dev_ns: float
    sample_size: int
    confidence_interval_ns: tuple[float, float]

    @classmethod
    def from_summary(cls, mean_ns: float, std_dev_ns: float, sample_size: int) -> ComparableStats:
        """Build from stored summary fields, deriving a fresh 95% CI."""
        return cls(
            mean_ns=mean_ns,
            std_dev_ns=std_dev_ns,
            sample_size=sample_size,
            confidence_interval_ns=confidence_interval_from_summary(
                mean_ns, std_dev_ns, sample_size
            ),
        )


@dataclass(frozen=True)
class Comparison:
    """Result of comparing summary ``a`` against summary ``b``."""

    faster: str  # "a", "b" or "equal"
    speedup_ratio: float  # slower mean / faster mean, >= 1
    significant: bool
    p_value: float
    effect_size: float  # Cohen's d (absolute)
    effect_magnitude: str  # negligible, small, medium, large
    ci_overlap: bool
    recommendation: str


def _intervals_overlap(a: tuple[float, float], b: tuple[float, float]) -> bool:
    return a[0] <= b[1] and b[0] <= a[1]


def _recommendation(
    faster: str,
    ratio: float,
    significant: bool,
    p_value: float,
    magnitude: str,
) -> str:
    if not significant:
        return f"No statistically significant difference (p={p_value:.3f})"
    if faster == "equal":
        return f"Statistically significant but negligible difference (p={p_value:.3f})"
    winner = "A" if faster == "a" else "B"
    return f"{winner} is {ratio:.2f}x faster ({magnitude} effect, p={p_value:.3f})"


def compare_stats(a: Comparable, b: Comparable, *, alpha: float = 0.05) -> Comparison:
    """Compare two summaries with Welch's t-test and Cohen's d.

    Args:
        a: First summary (e.g. the baseline).
        b: Second summary (e.g. the current run).
        alpha: Significance level for the t-test.

    Returns:
        A Comparison. Either side having no samples yields a neutral
        "insufficient data" result. A winner is only reported when the
        effect is at least small; negligible effects are "equal" even
        if one mean is nominally lower.
    """
    if a.sample_size == 0 or b.sample_size == 0:
        return Comparison(
            faster="equal",
            speedup_ratio=1.0,
            significant=False,
            p_value=1.0,
            effect_size=0.0,
            effect_magnitude="negligible",
            ci_overlap=True,
            recommendation="Insufficient data for comparison",
        )

    mean_a, mean_b = a.mean_ns, b.mean_ns
    if mean_a < mean_b:
        faster = "a"
    elif mean_b < mean_a:
        faster = "b"
    else:
        faster = "equal"

    lo, hi = min(mean_a, mean_b), max(mean_a, mean_b)
    speedup_ratio = hi / lo if lo > 0 else 1.0

    if a.std_dev_ns == 0 and b.std_dev_ns == 0:
        # The t-test is undefined without variance: any difference is certain.
        p_value = 1.0 if mean_a == mean_b else 0.0
    else:
        ttest = welch_ttest(
            mean_a, a.std_dev_ns, a.sample_size, mean_b, b.std_dev_ns, b.sample_size
        )
        p_value = t_distribution_p_value(ttest.t_statistic, ttest.degrees_of_freedom)
        if math.isnan(p_value):
            p_value = 1.0

    effect = cohens_d(mean_a, a.std_dev_ns, a.sample_size, mean_b, b.std_dev_ns, b.sample_size)
    significant = p_value < alpha

    if effect.magnitude == "negligible":
        faster = "equal"

    return Comparison(
        faster=faster,
        speedup_ratio=speedup_ratio,
        significant=significant,
        p_value=p_value,
        effect_size=effect.d,
        effect_magnitude=effect.magnitude,
        ci_overlap=_intervals_overlap(a.confidence_interval_ns, b.confidence_interval_ns),
        recommendation=_recommendation(
            faster, speedup_ratio, significant, p_value, effect.magnitude
        ),
    )
