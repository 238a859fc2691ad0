"""Tests for benchmeter.bench.baseline — baseline storage and regression detection."""

from __future__ import annotations

import json
import math
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from bench_test_helpers import STEADY_1US, make_result, shifted

from benchmeter.bench.baseline import (
    BASELINE_FILENAME,
    BASELINE_VERSION,
    Baseline,
    BaselineEntry,
    BaselineFormatError,
    BaselineStore,
    FileStorage,
    parse_timestamp,
)
from benchmeter.bench.system import GitInfo

SAVED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _entry_dict(name: str = "task", **overrides: object) -> dict[str, object]:
    d: dict[str, object] = {
        "name": name,
        "mean_ns": 1000.0,
        "median_ns": 1000.0,
        "std_dev_ns": 8.0,
        "min_ns": 990.0,
        "max_ns": 1010.0,
        "p75_ns": 1005.0,
        "p90_ns": 1010.0,
        "p95_ns": 1010.0,
        "p99_ns": 1010.0,
        "ops_per_second": 1_000_000.0,
        "sample_size": 102,
    }
    d.update(overrides)
    return d


def _baseline_dict(**overrides: object) -> dict[str, object]:
    d: dict[str, object] = {
        "version": BASELINE_VERSION,
        "timestamp": SAVED_AT.isoformat(),
        "git_commit": "abc123",
        "git_branch": "main",
        "runtime_version": "CPython 3.12.0",
        "entries": [_entry_dict()],
    }
    d.update(overrides)
    return d


class BaselineTestCase(unittest.TestCase):
    """Provides a store in a temporary directory with fixed VCS info."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmp.name) / "baselines"
        self.store = BaselineStore(
            self.directory,
            vcs_info=lambda: GitInfo(commit="abc123def456", branch="main"),
            runtime=lambda: "CPython 3.12.0",
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def write_raw(self, text: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        (self.directory / BASELINE_FILENAME).write_text(text)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestFileStorage(unittest.TestCase):
    def test_read_missing(self) -> None:
        self.assertIsNone(FileStorage().read_text(Path("/nonexistent/baseline.json")))

    def test_write_creates_parents_and_delete(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a" / "b" / "file.json"
            storage = FileStorage()
            storage.write_text(path, "{}")
            self.assertEqual(storage.read_text(path), "{}")
            storage.delete(path)
            self.assertFalse(path.exists())
            storage.delete(path)  # missing file is fine


class TestSchema(unittest.TestCase):
    def test_parse_valid(self) -> None:
        baseline = Baseline.from_dict(_baseline_dict())
        self.assertEqual(baseline.version, 1)
        self.assertEqual(baseline.entries[0].name, "task")
        self.assertEqual(baseline.entries[0].sample_size, 102)
        self.assertEqual(baseline.created_at, SAVED_AT)

    def test_null_number_reads_as_nan(self) -> None:
        entry = BaselineEntry.from_dict(_entry_dict(p99_ns=None))
        self.assertTrue(math.isnan(entry.p99_ns))
        self.assertIsNone(entry.to_dict()["p99_ns"])

    def test_round_trip(self) -> None:
        data = _baseline_dict()
        self.assertEqual(Baseline.from_dict(data).to_dict(), data)

    def test_missing_field_rejected(self) -> None:
        data = _entry_dict()
        del data["p90_ns"]
        with self.assertRaises(BaselineFormatError):
            BaselineEntry.from_dict(data)

    def test_unknown_field_rejected(self) -> None:
        with self.assertRaises(BaselineFormatError):
            BaselineEntry.from_dict(_entry_dict(extra=1))
        with self.assertRaises(BaselineFormatError):
            Baseline.from_dict(_baseline_dict(note="hi"))

    def test_wrong_types_rejected(self) -> None:
        bad_entries = [
            _entry_dict(mean_ns="fast"),
            _entry_dict(mean_ns=True),
            _entry_dict(name=7),
            _entry_dict(sample_size=1.5),
            _entry_dict(sample_size=-1),
            "not an object",
        ]
        for entry in bad_entries:
            with self.subTest(entry=entry), self.assertRaises(BaselineFormatError):
                BaselineEntry.from_dict(entry)

    def test_wrong_top_level_types_rejected(self) -> None:
        bad = [
            _baseline_dict(version="1"),
            _baseline_dict(timestamp="yesterday"),
            _baseline_dict(git_commit=5),
            _baseline_dict(entries={}),
            _baseline_dict(runtime_version=None),
            [],
        ]
        for data in bad:
            with self.subTest(data=data), self.assertRaises(BaselineFormatError):
                Baseline.from_dict(data)

    def test_timestamp_with_z_suffix(self) -> None:
        self.assertEqual(parse_timestamp("2026-03-01T12:00:00Z"), SAVED_AT)
        self.assertEqual(parse_timestamp("2026-03-01T12:00:00"), SAVED_AT)


# ---------------------------------------------------------------------------
# Save / load
# ---------------------------------------------------------------------------


class TestSaveLoad(BaselineTestCase):
    def test_save_and_load(self) -> None:
        results = [make_result("a", STEADY_1US), make_result("b", shifted(STEADY_1US, 500.0))]
        saved = self.store.save(results, now=SAVED_AT)
        loaded = self.store.load()
        self.assertIsNotNone(loaded)
        assert loaded is not None
        self.assertEqual(loaded, saved)
        self.assertEqual([e.name for e in loaded.entries], ["a", "b"])
        self.assertEqual(loaded.git_commit, "abc123def456")
        self.assertEqual(loaded.git_branch, "main")
        self.assertEqual(loaded.runtime_version, "CPython 3.12.0")
        self.assertAlmostEqual(loaded.entries[1].mean_ns, 1500.0)

    def test_file_layout(self) -> None:
        self.store.save([make_result("a", STEADY_1US)], now=SAVED_AT)
        data = json.loads((self.directory / BASELINE_FILENAME).read_text())
        self.assertEqual(data["version"], 1)
        self.assertEqual(data["timestamp"], SAVED_AT.isoformat())
        self.assertEqual(
            set(data["entries"][0]),
            {
                "name",
                "mean_ns",
                "median_ns",
                "std_dev_ns",
                "min_ns",
                "max_ns",
                "p75_ns",
                "p90_ns",
                "p95_ns",
                "p99_ns",
                "ops_per_second",
                "sample_size",
            },
        )

    def test_explicit_git_info_wins(self) -> None:
        saved = self.store.save(
            [make_result("a", STEADY_1US)], git_commit="deadbeef", git_branch=None
        )
        self.assertEqual(saved.git_commit, "deadbeef")
        self.assertIsNone(saved.git_branch)

    def test_no_vcs(self) -> None:
        store = BaselineStore(self.directory, vcs_info=lambda: None, runtime=lambda: "x")
        saved = store.save([make_result("a", STEADY_1US)])
        self.assertIsNone(saved.git_commit)
        self.assertIsNone(saved.git_branch)

    def test_failed_task_saved_with_nulls(self) -> None:
        self.store.save([make_result("broken", [math.nan])], now=SAVED_AT)
        raw = json.loads((self.directory / BASELINE_FILENAME).read_text())
        self.assertIsNone(raw["entries"][0]["mean_ns"])
        loaded = self.store.load()
        assert loaded is not None
        self.assertTrue(math.isnan(loaded.entries[0].mean_ns))
        self.assertEqual(loaded.entries[0].sample_size, 0)

    def test_save_replaces_previous(self) -> None:
        self.store.save([make_result("old", STEADY_1US)])
        self.store.save([make_result("new", STEADY_1US)])
        loaded = self.store.load()
        assert loaded is not None
        self.assertEqual([e.name for e in loaded.entries], ["new"])

    def test_load_missing(self) -> None:
        self.assertIsNone(self.store.load())

    def test_corrupt_file_removed(self) -> None:
        self.write_raw("{not json")
        with self.assertLogs("benchmeter", level="WARNING"):
            self.assertIsNone(self.store.load())
        self.assertFalse(self.store.path.exists())

    def test_schema_violation_removed(self) -> None:
        self.write_raw(json.dumps(_baseline_dict(entries=[_entry_dict(mean_ns="slow")])))
        with self.assertLogs("benchmeter", level="WARNING"):
            self.assertIsNone(self.store.load())
        self.assertFalse(self.store.path.exists())

    def test_oversized_integer_removed(self) -> None:
        self.write_raw('{"version": ' + "1" * 5000 + "}")
        with self.assertLogs("benchmeter", level="WARNING"):
            self.assertIsNone(self.store.load())
        self.assertFalse(self.store.path.exists())

    def test_deeply_nested_file_removed(self) -> None:
        self.write_raw("[" * 100_000 + "]" * 100_000)
        with self.assertLogs("benchmeter", level="WARNING"):
            self.assertIsNone(self.store.load())
        self.assertFalse(self.store.path.exists())

    def test_number_out_of_float_range_removed(self) -> None:
        self.write_raw(json.dumps(_baseline_dict(entries=[_entry_dict(mean_ns=10**400)])))
        with self.assertLogs("benchmeter", level="WARNING"):
            self.assertIsNone(self.store.load())
        self.assertFalse(self.store.path.exists())

    def test_compare_treats_corrupt_file_as_absent(self) -> None:
        self.write_raw("[" * 100_000 + "]" * 100_000)
        with self.assertLogs("benchmeter", level="WARNING"):
            result = self.store.compare([make_result("a", STEADY_1US)])
        self.assertFalse(result.baseline_found)
        self.assertEqual(result.new_tasks, ["a"])

    def test_version_mismatch_removed(self) -> None:
        self.write_raw(json.dumps(_baseline_dict(version=2)))
        with self.assertLogs("benchmeter", level="WARNING") as logs:
            self.assertIsNone(self.store.load())
        self.assertIn("version mismatch", logs.output[0])
        self.assertFalse(self.store.path.exists())

    def test_clear(self) -> None:
        self.store.save([make_result("a", STEADY_1US)])
        self.store.clear()
        self.assertIsNone(self.store.load())


# ---------------------------------------------------------------------------
# Regression detection
# ---------------------------------------------------------------------------


class TestCompare(BaselineTestCase):
    def test_no_baseline(self) -> None:
        result = self.store.compare([make_result("a", STEADY_1US), make_result("b", STEADY_1US)])
        self.assertFalse(result.baseline_found)
        self.assertEqual(result.new_tasks, ["a", "b"])
        self.assertEqual(result.comparisons, [])
        self.assertFalse(result.has_regressions)

    def test_threshold_tolerates_small_slowdown(self) -> None:
        self.store.save(
            [make_result("small", STEADY_1US), make_result("big", STEADY_1US)], now=SAVED_AT
        )
        current = [
            make_result("small", shifted(STEADY_1US, 30.0)),
            make_result("big", shifted(STEADY_1US, 100.0)),
        ]
        result = self.store.compare(current, regression_threshold=1.05)
        self.assertEqual([c.name for c in result.regressions], ["big"])
        self.assertEqual([c.name for c in result.unchanged], ["small"])
        self.assertTrue(result.has_regressions)
        self.assertEqual(len(result.comparisons), 2)

    def test_default_threshold_flags_any_significant_slowdown(self) -> None:
        self.store.save([make_result("small", STEADY_1US)], now=SAVED_AT)
        result = self.store.compare([make_result("small", shifted(STEADY_1US, 30.0))])
        self.assertEqual([c.name for c in result.regressions], ["small"])

    def test_improvement(self) -> None:
        self.store.save([make_result("t", STEADY_1US)], now=SAVED_AT)
        result = self.store.compare([make_result("t", shifted(STEADY_1US, -100.0))])
        self.assertEqual([c.name for c in result.improvements], ["t"])
        self.assertEqual(result.regressions, [])

    def test_identical_is_unchanged(self) -> None:
        self.store.save([make_result("t", STEADY_1US)], now=SAVED_AT)
        result = self.store.compare([make_result("t", STEADY_1US)])
        self.assertEqual([c.name for c in result.unchanged], ["t"])

    def test_new_and_removed_tasks(self) -> None:
        self.store.save(
            [make_result("kept", STEADY_1US), make_result("gone", STEADY_1US)], now=SAVED_AT
        )
        result = self.store.compare(
            [make_result("kept", STEADY_1US), make_result("fresh", STEADY_1US)]
        )
        self.assertEqual(result.new_tasks, ["fresh"])
        self.assertEqual(result.removed_tasks, ["gone"])
        self.assertEqual([c.name for c in result.comparisons], ["kept"])

    def test_regressions_ordered_by_effect_size(self) -> None:
        self.store.save(
            [make_result("mild", STEADY_1US), make_result("severe", STEADY_1US)], now=SAVED_AT
        )
        current = [
            make_result("mild", shifted(STEADY_1US, 100.0)),
            make_result("severe", shifted(STEADY_1US, 200.0)),
        ]
        result = self.store.compare(current)
        self.assertEqual([c.name for c in result.regressions], ["severe", "mild"])

    def test_comparison_carries_entries(self) -> None:
        self.store.save([make_result("t", STEADY_1US)], now=SAVED_AT)
        [cmp] = self.store.compare([make_result("t", shifted(STEADY_1US, 100.0))]).comparisons
        self.assertAlmostEqual(cmp.baseline.mean_ns, 1000.0)
        self.assertAlmostEqual(cmp.current.mean_ns, 1100.0)
        self.assertEqual(cmp.comparison.faster, "a")

    def test_staleness(self) -> None:
        self.store.save([make_result("t", STEADY_1US)], now=SAVED_AT)
        later = SAVED_AT + timedelta(days=10)
        result = self.store.compare(
            [make_result("t", STEADY_1US)], staleness_days=7, now=later
        )
        self.assertTrue(result.baseline_stale)
        self.assertAlmostEqual(result.baseline_age_days or 0.0, 10.0)
        self.assertEqual(result.baseline_timestamp, SAVED_AT.isoformat())
        self.assertEqual(result.baseline_commit, "abc123def456")

        fresh = self.store.compare([make_result("t", STEADY_1US)], staleness_days=30, now=later)
        self.assertFalse(fresh.baseline_stale)
        unchecked = self.store.compare([make_result("t", STEADY_1US)], now=later)
        self.assertFalse(unchecked.baseline_stale)


if __name__ == "__main__":
    unittest.main()
