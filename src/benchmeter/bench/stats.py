"""Statistical functions for benchmark analysis.

Provides descriptive statistics, outlier detection (IQR and MAD),
confidence intervals, Welch's t-test, a t-distribution p-value and
Cohen's d effect size, all in pure Python with no external
dependencies.

Every function operates on plain sequences of numbers (usually
nanosecond durations). Degenerate input never raises: empty samples
produce NaN, zero variance is handled by explicit branches.

References:
    Welch's t-test: Welch, B. L. (1947). "The generalization of
        'Student's' problem when several different population
        variances are involved." Biometrika 34(1-2): 28-35.
    Cohen's d: Cohen, J. (1988). "Statistical Power Analysis for
        the Behavioral Sciences." 2nd ed.
    MAD outliers: Iglewicz, B. & Hoaglin, D. (1993). "How to Detect
        and Handle Outliers."
    erf approximation: Abramowitz & Stegun (1964), formula 7.1.26.
    Incomplete beta: Numerical Recipes, Chapter 6.4.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

NAN = float("nan")

QUARTILE_Q1 = 0.25
QUARTILE_Q3 = 0.75
IQR_MULTIPLIER = 1.5
MIN_SAMPLE_SIZE = 3

MAD_CONSTANT = 0.6745
MAD_Z_SCORE_THRESHOLD = 3.5
MAD_Z_SCORE_EXTREME = 5.0
OUTLIER_RATIO_HIGH = 0.3
OUTLIER_RATIO_EXTREME = 0.4
OUTLIER_KEEP_RATIO = 0.8

CONFIDENCE_INTERVAL_Z = 1.96

# Above this many degrees of freedom the t-distribution is replaced by
# the standard normal.
NORMAL_APPROX_DF = 100

_Z_SCORES: dict[float, float] = {
    0.80: 1.282,
    0.85: 1.440,
    0.90: 1.645,
    0.95: 1.960,
    0.98: 2.326,
    0.99: 2.576,
    0.995: 2.807,
    0.999: 3.291,
}


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, NaN for an empty sample."""
    if not values:
        return NAN
    return math.fsum(values) / len(values)


def median(values: Sequence[float]) -> float:
    """Median; the average of the two middle values for even lengths."""
    if not values:
        return NAN
    sorted_v = sorted(values)
    mid = len(sorted_v) // 2
    if len(sorted_v) % 2 == 0:
        return (sorted_v[mid - 1] + sorted_v[mid]) / 2
    return sorted_v[mid]


def variance(values: Sequence[float], mean_value: float | None = None) -> float:
    """Population variance (divides by N, not N-1).

    Benchmarks collect effectively unlimited samples, so the bias
    correction of the sample variance is not worth the asymmetry.
    """
    if not values:
        return NAN
    m = mean(values) if mean_value is None else mean_value
    return math.fsum((v - m) ** 2 for v in values) / len(values)


def std_dev(values: Sequence[float], mean_value: float | None = None) -> float:
    """Population standard deviation."""
    if not values:
        return NAN
    return math.sqrt(variance(values, mean_value))


def percentile(values: Sequence[float], p: float) -> float:
    """Compute the p-th percentile (0-1) using linear interpolation.

    This is the "R-7" method, the default of R and numpy: the index
    into the sorted sample is ``(n - 1) * p`` and values between two
    ranks are interpolated.
    """
    n = len(values)
    if n == 0:
        return NAN
    if n == 1:
        return values[0]

    sorted_v = sorted(values)
    k = (n - 1) * p
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_v[int(k)]
    d = k - f
    return sorted_v[int(f)] + d * (sorted_v[int(c)] - sorted_v[int(f)])


def min_max(values: Sequence[float]) -> tuple[float, float]:
    """Return ``(min, max)`` in a single pass."""
    if not values:
        return NAN, NAN
    lo = hi = values[0]
    for v in values[1:]:
        if v < lo:
            lo = v
        elif v > hi:
            hi = v
    return lo, hi


def coefficient_of_variation(mean_value: float, std_value: float) -> float:
    """CV = std_dev / mean; NaN when the mean is zero."""
    if mean_value == 0:
        return NAN
    return std_value / mean_value


# ---------------------------------------------------------------------------
# Outlier detection
# ---------------------------------------------------------------------------


@dataclass
class OutlierResult:
    """Split of a sample into retained values and rejected outliers."""

    cleaned: list[float] = field(default_factory=list)
    outliers: list[float] = field(default_factory=list)


def detect_outliers_iqr(
    values: Sequence[float],
    *,
    factor: float = IQR_MULTIPLIER,
    min_sample_size: int = MIN_SAMPLE_SIZE,
) -> OutlierResult:
    """Detect outliers using the IQR method.

    A value is an outlier if it falls below Q1 - factor*IQR or above
    Q3 + factor*IQR. The quartiles are read at fixed ranks of the
    sorted sample (no interpolation).

    Samples smaller than *min_sample_size*, or with a zero IQR, are
    returned unchanged.
    """
    if len(values) < min_sample_size:
        return OutlierResult(cleaned=list(values))

    sorted_v = sorted(values)
    n = len(sorted_v)
    q1 = sorted_v[math.floor(n * QUARTILE_Q1)]
    q3 = sorted_v[math.floor(n * QUARTILE_Q3)]
    iqr = q3 - q1
    if iqr == 0:
        return OutlierResult(cleaned=list(values))

    lower = q1 - factor * iqr
    upper = q3 + factor * iqr

    result = OutlierResult()
    for v in values:
        if v < lower or v > upper:
            result.outliers.append(v)
        else:
            result.cleaned.append(v)
    return result


def _split_by_z_score(
    values: Sequence[float],
    center: float,
    mad: float,
    threshold: float,
) -> OutlierResult:
    result = OutlierResult()
    for v in values:
        z = MAD_CONSTANT * (v - center) / mad
        if abs(z) > threshold:
            result.outliers.append(v)
        else:
            result.cleaned.append(v)
    return result


def detect_outliers_mad(
    values: Sequence[float],
    *,
    min_sample_size: int = MIN_SAMPLE_SIZE,
) -> OutlierResult:
    """Detect outliers using the Median Absolute Deviation.

    Uses the modified z-score ``0.6745 * (x - median) / MAD`` and flags
    values with ``|z| > 3.5``. More robust than IQR on the skewed
    distributions typical of timing data.

    Escalation:
        1. If more than 30% of the sample is flagged, the pass is redone
           with ``|z| > 5.0``.
        2. If that still flags more than 40%, z-scores are abandoned and
           the 80% of values closest to the median are kept.

    Falls back to :func:`detect_outliers_iqr` when the MAD is zero.
    """
    n = len(values)
    if n < min_sample_size:
        return OutlierResult(cleaned=list(values))

    center = median(values)
    mad = median([abs(v - center) for v in values])
    if mad == 0:
        return detect_outliers_iqr(values, min_sample_size=min_sample_size)

    result = _split_by_z_score(values, center, mad, MAD_Z_SCORE_THRESHOLD)
    if len(result.outliers) <= n * OUTLIER_RATIO_HIGH:
        return result

    result = _split_by_z_score(values, center, mad, MAD_Z_SCORE_EXTREME)
    if len(result.outliers) <= n * OUTLIER_RATIO_EXTREME:
        return result

    by_distance = sorted(values, key=lambda v: abs(v - center))
    keep = math.floor(n * OUTLIER_KEEP_RATIO)
    return OutlierResult(cleaned=by_distance[:keep], outliers=by_distance[keep:])


# ---------------------------------------------------------------------------
# Confidence intervals
# ---------------------------------------------------------------------------


def z_score_for_confidence(confidence: float) -> float:
    """Convert a two-sided confidence level (e.g. 0.95) to a z-score.

    Common levels come from a lookup table; anything else goes through
    Winitzki's approximation of the inverse error function.

    Raises:
        ValueError: If *confidence* is not strictly between 0 and 1.
    """
    if not 0 < confidence < 1:
        raise ValueError(f"Confidence level must be between 0 and 1 (got {confidence}).")
    for level, z in _Z_SCORES.items():
        if math.isclose(level, confidence):
            return z
    return math.sqrt(2) * _erfinv(confidence)


def _erfinv(x: float) -> float:
    """Winitzki's approximation of the inverse error function."""
    a = 0.147
    ln = math.log(1 - x * x)
    term = 2 / (math.pi * a) + ln / 2
    return math.copysign(math.sqrt(math.sqrt(term * term - ln / a) - term), x)


def _resolve_z(z: float | None, confidence: float | None) -> float:
    if z is not None:
        return z
    if confidence is not None:
        return z_score_for_confidence(confidence)
    return CONFIDENCE_INTERVAL_Z


def confidence_interval_from_summary(
    mean_value: float,
    std_value: float,
    n: int,
    *,
    z: float | None = None,
    confidence: float | None = None,
) -> tuple[float, float]:
    """Confidence interval for a mean given only summary statistics.

    ``mean ± z * std / sqrt(n)``. An explicit *z* wins over
    *confidence*; with neither, the 95% level (z = 1.96) is used.
    """
    if n <= 0:
        return NAN, NAN
    margin = _resolve_z(z, confidence) * std_value / math.sqrt(n)
    return mean_value - margin, mean_value + margin


def confidence_interval(
    values: Sequence[float],
    *,
    z: float | None = None,
    confidence: float | None = None,
) -> tuple[float, float]:
    """Confidence interval for the mean of *values*."""
    if not values:
        return NAN, NAN
    m = mean(values)
    return confidence_interval_from_summary(
        m, std_dev(values, m), len(values), z=z, confidence=confidence
    )


# ---------------------------------------------------------------------------
# Welch's t-test
# ---------------------------------------------------------------------------


@dataclass
class TTestResult:
    """Welch's t-statistic and Welch-Satterthwaite degrees of freedom."""

    t_statistic: float
    degrees_of_freedom: float


def welch_ttest(
    mean_a: float,
    std_a: float,
    n_a: int,
    mean_b: float,
    std_b: float,
    n_b: int,
) -> TTestResult:
    """Welch's t-test from summary statistics.

    Tests the null hypothesis that the two populations have equal
    means, without assuming equal variances::

        t  = (mean_a - mean_b) / sqrt(var_a/n_a + var_b/n_b)
        df = (se_a + se_b)^2 / (se_a^2/(n_a-1) + se_b^2/(n_b-1))

    A side with fewer than two samples contributes nothing to the df
    denominator. A zero standard error gives t = 0 (equal means) or
    +-inf; a zero df denominator gives infinite df.
    """
    if n_a <= 0 or n_b <= 0:
        return TTestResult(NAN, NAN)

    se_a = std_a**2 / n_a
    se_b = std_b**2 / n_b
    se_diff = math.sqrt(se_a + se_b)
    diff = mean_a - mean_b

    if se_diff == 0:
        if diff == 0:
            return TTestResult(0.0, math.inf)
        return TTestResult(math.copysign(math.inf, diff), math.inf)

    t = diff / se_diff

    denominator = 0.0
    if n_a > 1:
        denominator += se_a**2 / (n_a - 1)
    if n_b > 1:
        denominator += se_b**2 / (n_b - 1)
    df = (se_a + se_b) ** 2 / denominator if denominator > 0 else math.inf

    return TTestResult(t_statistic=t, degrees_of_freedom=df)


# ---------------------------------------------------------------------------
# Distribution functions
# ---------------------------------------------------------------------------


def erf(x: float) -> float:
    """Error function, Abramowitz & Stegun 7.1.26 (|error| < 1.5e-7)."""
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    a1, a2, a3, a4, a5 = 0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429
    p = 0.3275911
    t = 1.0 / (1.0 + p * x)
    y = 1.0 - ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t * math.exp(-x * x)
    return sign * y


def normal_cdf(x: float) -> float:
    """Standard normal cumulative distribution function."""
    return 0.5 * (1.0 + erf(x / math.sqrt(2.0)))


_LANCZOS_G = 7
_LANCZOS_COEFFICIENTS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)


def ln_gamma(z: float) -> float:
    """Natural log of the gamma function (Lanczos approximation, z > 0)."""
    if z < 0.5:
        # Reflection formula.
        return math.log(math.pi / abs(math.sin(math.pi * z))) - ln_gamma(1.0 - z)
    z -= 1.0
    x = _LANCZOS_COEFFICIENTS[0]
    for i in range(1, _LANCZOS_G + 2):
        x += _LANCZOS_COEFFICIENTS[i] / (z + i)
    t = z + _LANCZOS_G + 0.5
    return 0.5 * math.log(2 * math.pi) + (z + 0.5) * math.log(t) - t + math.log(x)


_BETA_MAX_ITER = 100
_BETA_EPSILON = 1e-10
_BETA_FPMIN = 1e-30


def _beta_continued_fraction(x: float, a: float, b: float) -> float:
    """Continued fraction for I_x(a, b), modified Lentz's method."""
    qab = a + b
    qap = a + 1.0
    qam = a - 1.0
    c = 1.0
    d = 1.0 - qab * x / qap
    if abs(d) < _BETA_FPMIN:
        d = _BETA_FPMIN
    d = 1.0 / d
    h = d

    for m in range(1, _BETA_MAX_ITER + 1):
        m2 = 2 * m
        # Even step.
        aa = m * (b - m) * x / ((qam + m2) * (a + m2))
        d = 1.0 + aa * d
        if abs(d) < _BETA_FPMIN:
            d = _BETA_FPMIN
        c = 1.0 + aa / c
        if abs(c) < _BETA_FPMIN:
            c = _BETA_FPMIN
        d = 1.0 / d
        h *= d * c

        # Odd step.
        aa = -(a + m) * (qab + m) * x / ((a + m2) * (qap + m2))
        d = 1.0 + aa * d
        if abs(d) < _BETA_FPMIN:
            d = _BETA_FPMIN
        c = 1.0 + aa / c
        if abs(c) < _BETA_FPMIN:
            c = _BETA_FPMIN
        d = 1.0 / d
        delta = d * c
        h *= delta

        if abs(delta - 1.0) < _BETA_EPSILON:
            break

    return h


def regularized_incomplete_beta(x: float, a: float, b: float) -> float:
    """Regularized incomplete beta function I_x(a, b).

    Evaluated by continued fraction, switching to the symmetry
    ``I_x(a, b) = 1 - I_{1-x}(b, a)`` where that converges faster.
    """
    if x < 0 or x > 1:
        return NAN
    if x == 0:
        return 0.0
    if x == 1:
        return 1.0

    log_front = (
        ln_gamma(a + b)
        - ln_gamma(a)
        - ln_gamma(b)
        + a * math.log(x)
        + b * math.log(1.0 - x)
    )
    front = math.exp(log_front)

    if x < (a + 1.0) / (a + b + 2.0):
        return front * _beta_continued_fraction(x, a, b) / a
    return 1.0 - front * _beta_continued_fraction(1.0 - x, b, a) / b


def t_distribution_p_value(t: float, df: float) -> float:
    """Two-tailed p-value P(|T| > |t|) for Student's t-distribution.

    For df > 100 the normal approximation is used. Otherwise the tail
    is computed through the regularized incomplete beta function::

        p = I_x(df/2, 1/2),  x = df / (df + t^2)
    """
    if math.isnan(t) or math.isnan(df) or df <= 0:
        return NAN
    t = abs(t)
    if math.isinf(t):
        return 0.0

    if df > NORMAL_APPROX_DF:
        p = 2.0 * (1.0 - normal_cdf(t))
    else:
        p = regularized_incomplete_beta(df / (df + t * t), df / 2.0, 0.5)
    return min(max(p, 0.0), 1.0)


# ---------------------------------------------------------------------------
# Cohen's d effect size
# ---------------------------------------------------------------------------


@dataclass
class EffectSize:
    """Cohen's d effect size with classification."""

    d: float
    magnitude: str  # negligible, small, medium, large

    @staticmethod
    def classify(d: float) -> str:
        """Classify effect size per Cohen's conventions.

        |d| < 0.2: negligible
        |d| < 0.5: small
        |d| < 0.8: medium
        |d| >= 0.8: large
        """
        d_abs = abs(d)
        if d_abs < 0.2:
            return "negligible"
        if d_abs < 0.5:
            return "small"
        if d_abs < 0.8:
            return "medium"
        return "large"


def cohens_d(
    mean_a: float,
    std_a: float,
    n_a: int,
    mean_b: float,
    std_b: float,
    n_b: int,
) -> EffectSize:
    """Cohen's d from summary statistics.

    Uses the pooled standard deviation::

        s_pooled = sqrt(((n_a-1)*var_a + (n_b-1)*var_b) / (n_a+n_b-2))
        d = |mean_a - mean_b| / s_pooled

    When the pooled deviation is zero the effect is either nothing
    (equal means) or unbounded (different means).
    """
    dof = n_a + n_b - 2
    pooled_var = 0.0
    if dof > 0:
        pooled_var = ((n_a - 1) * std_a**2 + (n_b - 1) * std_b**2) / dof

    diff = abs(mean_a - mean_b)
    if pooled_var == 0:
        if diff == 0:
            return EffectSize(d=0.0, magnitude="negligible")
        return EffectSize(d=math.inf, magnitude="large")

    d = diff / math.sqrt(pooled_var)
    return EffectSize(d=d, magnitude=EffectSize.classify(d))
