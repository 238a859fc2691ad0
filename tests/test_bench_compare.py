"""Tests for benchmeter.bench.compare — statistical comparison of summaries."""

from __future__ import annotations

import math
import unittest

from bench_test_helpers import STEADY_1US, make_stats, shifted

from benchmeter.bench.compare import ComparableStats, compare_stats


def summary(mean: float, std: float, n: int) -> ComparableStats:
    return ComparableStats.from_summary(mean, std, n)


class TestComparableStats(unittest.TestCase):
    def test_from_summary_derives_interval(self) -> None:
        s = summary(100.0, 10.0, 4)
        lo, hi = s.confidence_interval_ns
        self.assertAlmostEqual(lo, 90.2)
        self.assertAlmostEqual(hi, 109.8)

    def test_empty_interval_is_nan(self) -> None:
        lo, hi = summary(100.0, 10.0, 0).confidence_interval_ns
        self.assertTrue(math.isnan(lo) and math.isnan(hi))


class TestCompareStats(unittest.TestCase):
    def test_insufficient_data(self) -> None:
        result = compare_stats(summary(100.0, 5.0, 0), summary(200.0, 5.0, 50))
        self.assertEqual(result.faster, "equal")
        self.assertEqual(result.speedup_ratio, 1.0)
        self.assertFalse(result.significant)
        self.assertEqual(result.p_value, 1.0)
        self.assertEqual(result.effect_size, 0.0)
        self.assertEqual(result.effect_magnitude, "negligible")
        self.assertTrue(result.ci_overlap)
        self.assertEqual(result.recommendation, "Insufficient data for comparison")

    def test_clear_winner(self) -> None:
        result = compare_stats(summary(100.0, 5.0, 50), summary(200.0, 5.0, 50))
        self.assertEqual(result.faster, "a")
        self.assertAlmostEqual(result.speedup_ratio, 2.0)
        self.assertTrue(result.significant)
        self.assertLess(result.p_value, 0.001)
        self.assertEqual(result.effect_magnitude, "large")
        self.assertAlmostEqual(result.effect_size, 20.0)
        self.assertFalse(result.ci_overlap)
        self.assertIn("A is 2.00x faster", result.recommendation)

    def test_winner_b(self) -> None:
        result = compare_stats(summary(300.0, 5.0, 50), summary(100.0, 5.0, 50))
        self.assertEqual(result.faster, "b")
        self.assertAlmostEqual(result.speedup_ratio, 3.0)
        self.assertIn("B is 3.00x faster", result.recommendation)

    def test_zero_variance_different_means(self) -> None:
        result = compare_stats(summary(100.0, 0.0, 10), summary(110.0, 0.0, 10))
        self.assertEqual(result.p_value, 0.0)
        self.assertTrue(result.significant)
        self.assertEqual(result.effect_size, math.inf)
        self.assertEqual(result.effect_magnitude, "large")
        self.assertEqual(result.faster, "a")

    def test_zero_variance_equal_means(self) -> None:
        result = compare_stats(summary(100.0, 0.0, 10), summary(100.0, 0.0, 10))
        self.assertEqual(result.p_value, 1.0)
        self.assertFalse(result.significant)
        self.assertEqual(result.faster, "equal")
        self.assertEqual(result.speedup_ratio, 1.0)

    def test_negligible_effect_is_equal(self) -> None:
        result = compare_stats(summary(100.0, 50.0, 1000), summary(101.0, 50.0, 1000))
        self.assertEqual(result.faster, "equal")
        self.assertEqual(result.effect_magnitude, "negligible")
        self.assertFalse(result.significant)
        self.assertIn("No statistically significant difference", result.recommendation)

    def test_significant_but_negligible(self) -> None:
        # Huge samples make a tiny difference significant.
        result = compare_stats(
            summary(100.0, 50.0, 1_000_000), summary(101.0, 50.0, 1_000_000)
        )
        self.assertTrue(result.significant)
        self.assertEqual(result.faster, "equal")
        self.assertIn("negligible difference", result.recommendation)

    def test_alpha(self) -> None:
        a = summary(100.0, 10.0, 10)
        b = summary(109.0, 10.0, 10)
        self.assertFalse(compare_stats(a, b, alpha=0.01).significant)
        self.assertTrue(compare_stats(a, b, alpha=0.1).significant)

    def test_bench_stats_are_comparable(self) -> None:
        a = make_stats(STEADY_1US)
        b = make_stats(shifted(STEADY_1US, 100.0))
        result = compare_stats(a, b)
        self.assertEqual(result.faster, "a")
        self.assertAlmostEqual(result.speedup_ratio, 1.1)
        self.assertTrue(result.significant)


if __name__ == "__main__":
    unittest.main()
