"""Baseline storage and regression detection.

A baseline is a versioned JSON snapshot of per-task summaries saved
under a directory (``baseline.json``). A later run is compared against
it task by task with :func:`compare_stats`, and every task is
classified as a regression, improvement, unchanged, new or removed.

File format::

    {
      "version": 1,
      "timestamp": "2026-10-18T09:12:44.120391+00:00",
      "git_commit": "3f2c...",          # or null
      "git_branch": "main",             # or null
      "runtime_version": "CPython 3.12.4",
      "entries": [
        {"name": "...", "mean_ns": ..., "median_ns": ..., "std_dev_ns": ...,
         "min_ns": ..., "max_ns": ..., "p75_ns": ..., "p90_ns": ...,
         "p95_ns": ..., "p99_ns": ..., "ops_per_second": ...,
         "sample_size": ...}
      ]
    }

Non-finite statistics are stored as ``null``. A file that does not
parse, has missing or unknown fields, or carries another version is
deleted on load and treated as absent: baselines can always be
regenerated, and a broken one must not block future runs.

Saves to the same directory are not synchronized; callers that save
concurrently must serialize themselves.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Sequence

from benchmeter.bench.compare import ComparableStats, Comparison, compare_stats
from benchmeter.bench.results import TaskResult, json_number
from benchmeter.bench.system import GitInfo, git_info, runtime_version

log = logging.getLogger("benchmeter")

BASELINE_VERSION = 1
BASELINE_FILENAME = "baseline.json"
DEFAULT_BASELINE_DIR = Path(".benchmeter") / "baselines"

_SECONDS_PER_DAY = 86400.0


class BaselineFormatError(ValueError):
    """A baseline file does not match the expected schema."""


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class FileStorage:
    """Text file persistence used by :class:`BaselineStore`."""

    def read_text(self, path: Path) -> str | None:
        """Return the file's content, or None if it does not exist."""
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None

    def write_text(self, path: Path, text: str) -> None:
        """Write *text*, creating parent directories as needed."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def delete(self, path: Path) -> None:
        """Remove the file if present."""
        path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


def _read_number(data: dict[str, Any], key: str) -> float:
    value = data[key]
    if value is None:
        return float("nan")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BaselineFormatError(f"'{key}' must be a number, got {type(value).__name__}")
    try:
        return float(value)
    except OverflowError as exc:
        raise BaselineFormatError(f"'{key}' is out of range") from exc


def _read_optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data[key]
    if value is not None and not isinstance(value, str):
        raise BaselineFormatError(f"'{key}' must be a string or null")
    return value


def _check_keys(data: Any, expected: frozenset[str], what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise BaselineFormatError(f"{what} must be an object, got {type(data).__name__}")
    missing = expected - data.keys()
    unknown = data.keys() - expected
    if missing:
        raise BaselineFormatError(f"{what} is missing fields: {', '.join(sorted(missing))}")
    if unknown:
        raise BaselineFormatError(f"{what} has unknown fields: {', '.join(sorted(unknown))}")
    return data


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class BaselineEntry:
    """Stored summary of one task."""

    name: str
    mean_ns: float
    median_ns: float
    std_dev_ns: float
    min_ns: float
    max_ns: float
    p75_ns: float
    p90_ns: float
    p95_ns: float
    p99_ns: float
    ops_per_second: float
    sample_size: int

    _NUMBER_FIELDS = (
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
    )
    _FIELDS = frozenset({"name", "sample_size", *_NUMBER_FIELDS})

    @classmethod
    def from_result(cls, result: TaskResult) -> BaselineEntry:
        s = result.stats
        return cls(
            name=result.name,
            mean_ns=s.mean_ns,
            median_ns=s.median_ns,
            std_dev_ns=s.std_dev_ns,
            min_ns=s.min_ns,
            max_ns=s.max_ns,
            p75_ns=s.p75_ns,
            p90_ns=s.p90_ns,
            p95_ns=s.p95_ns,
            p99_ns=s.p99_ns,
            ops_per_second=s.ops_per_second,
            sample_size=s.sample_size,
        )

    def to_comparable(self) -> ComparableStats:
        """Comparable projection with a confidence interval re-derived
        from the stored mean, deviation and sample size."""
        return ComparableStats.from_summary(self.mean_ns, self.std_dev_ns, self.sample_size)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name}
        for key in self._NUMBER_FIELDS:
            d[key] = json_number(getattr(self, key))
        d["sample_size"] = self.sample_size
        return d

    @classmethod
    def from_dict(cls, data: Any) -> BaselineEntry:
        """Strictly deserialize an entry.

        Raises:
            BaselineFormatError: On missing, unknown or mistyped fields.
        """
        data = _check_keys(data, cls._FIELDS, "Baseline entry")
        name = data["name"]
        if not isinstance(name, str):
            raise BaselineFormatError("Entry 'name' must be a string")
        sample_size = data["sample_size"]
        if isinstance(sample_size, bool) or not isinstance(sample_size, int) or sample_size < 0:
            raise BaselineFormatError(f"Entry '{name}' has an invalid sample_size")
        numbers = {key: _read_number(data, key) for key in cls._NUMBER_FIELDS}
        return cls(name=name, sample_size=sample_size, **numbers)


@dataclass(frozen=True)
class Baseline:
    """A versioned snapshot of benchmark summaries."""

    version: int
    timestamp: str
    git_commit: str | None
    git_branch: str | None
    runtime_version: str
    entries: tuple[BaselineEntry, ...] = ()

    _FIELDS = frozenset(
        {"version", "timestamp", "git_commit", "git_branch", "runtime_version", "entries"}
    )

    @property
    def created_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    def age_days(self, now: datetime | None = None) -> float:
        """Age of the snapshot in (fractional) days."""
        now = now or datetime.now(timezone.utc)
        return (now - self.created_at).total_seconds() / _SECONDS_PER_DAY

    def entry(self, name: str) -> BaselineEntry | None:
        for e in self.entries:
            if e.name == name:
                return e
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "git_commit": self.git_commit,
            "git_branch": self.git_branch,
            "runtime_version": self.runtime_version,
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Any) -> Baseline:
        """Strictly deserialize a baseline (the version is not checked here).

        Raises:
            BaselineFormatError: On any schema violation.
        """
        data = _check_keys(data, cls._FIELDS, "Baseline")
        version = data["version"]
        if isinstance(version, bool) or not isinstance(version, int):
            raise BaselineFormatError("'version' must be an integer")
        timestamp = data["timestamp"]
        if not isinstance(timestamp, str):
            raise BaselineFormatError("'timestamp' must be a string")
        try:
            parse_timestamp(timestamp)
        except ValueError as exc:
            raise BaselineFormatError(f"'timestamp' is not ISO-8601: {timestamp!r}") from exc
        runtime = data["runtime_version"]
        if not isinstance(runtime, str):
            raise BaselineFormatError("'runtime_version' must be a string")
        entries = data["entries"]
        if not isinstance(entries, list):
            raise BaselineFormatError("'entries' must be an array")

        return cls(
            version=version,
            timestamp=timestamp,
            git_commit=_read_optional_str(data, "git_commit"),
            git_branch=_read_optional_str(data, "git_branch"),
            runtime_version=runtime,
            entries=tuple(BaselineEntry.from_dict(e) for e in entries),
        )


# ---------------------------------------------------------------------------
# Comparison result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskComparison:
    """Comparison of one task between the baseline and the current run."""

    name: str
    baseline: BaselineEntry
    current: BaselineEntry
    comparison: Comparison


@dataclass
class BaselineComparison:
    """Outcome of comparing a run against the stored baseline."""

    baseline_found: bool
    baseline_timestamp: str | None = None
    baseline_commit: str | None = None
    baseline_age_days: float | None = None
    baseline_stale: bool = False
    comparisons: list[TaskComparison] = field(default_factory=list)
    # Sorted by effect size, largest first.
    regressions: list[TaskComparison] = field(default_factory=list)
    improvements: list[TaskComparison] = field(default_factory=list)
    unchanged: list[TaskComparison] = field(default_factory=list)
    new_tasks: list[str] = field(default_factory=list)
    removed_tasks: list[str] = field(default_factory=list)

    @property
    def has_regressions(self) -> bool:
        return bool(self.regressions)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

_UNSET: Any = object()


class BaselineStore:
    """Saves, loads and compares against ``<directory>/baseline.json``.

    Usage::

        store = BaselineStore(Path(".benchmeter/baselines"))
        store.save(harness.results())
        ...
        result = store.compare(harness.results(), regression_threshold=1.05)
        if result.has_regressions:
            sys.exit(1)
    """

    def __init__(
        self,
        directory: Path = DEFAULT_BASELINE_DIR,
        *,
        storage: FileStorage | None = None,
        vcs_info: Callable[[], GitInfo | None] = git_info,
        runtime: Callable[[], str] = runtime_version,
    ) -> None:
        self.directory = Path(directory)
        self.storage = storage or FileStorage()
        self._vcs_info = vcs_info
        self._runtime = runtime

    @property
    def path(self) -> Path:
        return self.directory / BASELINE_FILENAME

    def save(
        self,
        results: Sequence[TaskResult],
        *,
        git_commit: str | None = _UNSET,
        git_branch: str | None = _UNSET,
        now: datetime | None = None,
    ) -> Baseline:
        """Save *results* as the baseline, replacing any previous one.

        The git commit and branch are looked up unless given
        explicitly (None is an explicit "unknown").
        """
        if git_commit is _UNSET or git_branch is _UNSET:
            info = self._vcs_info()
            if git_commit is _UNSET:
                git_commit = info.commit if info else None
            if git_branch is _UNSET:
                git_branch = info.branch if info else None

        baseline = Baseline(
            version=BASELINE_VERSION,
            timestamp=(now or datetime.now(timezone.utc)).isoformat(),
            git_commit=git_commit,
            git_branch=git_branch,
            runtime_version=self._runtime(),
            entries=tuple(BaselineEntry.from_result(r) for r in results),
        )
        self.storage.write_text(self.path, json.dumps(baseline.to_dict(), indent=2) + "\n")
        log.info("Saved baseline with %d entries to %s", len(baseline.entries), self.path)
        return baseline

    def load(self) -> Baseline | None:
        """Load the baseline, or None if missing.

        Unparseable, malformed or version-mismatched files are deleted
        and reported as missing.
        """
        text = self.storage.read_text(self.path)
        if text is None:
            return None

        # ValueError covers JSONDecodeError, BaselineFormatError and the
        # integer digit limit; RecursionError comes from deep nesting.
        try:
            baseline = Baseline.from_dict(json.loads(text))
        except (ValueError, RecursionError) as exc:
            log.warning("Invalid or corrupted baseline file, removing %s: %s", self.path, exc)
            self.storage.delete(self.path)
            return None

        if baseline.version != BASELINE_VERSION:
            log.warning(
                "Baseline version mismatch (got %d, expected %d), removing %s",
                baseline.version,
                BASELINE_VERSION,
                self.path,
            )
            self.storage.delete(self.path)
            return None

        log.info("Loaded baseline from %s (%s)", self.path, baseline.timestamp)
        return baseline

    def clear(self) -> None:
        """Delete the stored baseline, if any."""
        self.storage.delete(self.path)

    def compare(
        self,
        results: Sequence[TaskResult],
        *,
        regression_threshold: float = 1.0,
        staleness_days: float | None = None,
        now: datetime | None = None,
    ) -> BaselineComparison:
        """Compare *results* against the stored baseline.

        Args:
            results: Current task results.
            regression_threshold: Minimum slowdown ratio that counts as a
                regression. 1.0 flags every significant slowdown; 1.05
                tolerates up to 5%.
            staleness_days: Flag the baseline as stale when older than
                this many days. None disables the check.
            now: Reference time for the baseline age.
        """
        baseline = self.load()
        if baseline is None:
            return BaselineComparison(
                baseline_found=False,
                new_tasks=[r.name for r in results],
            )

        age_days = baseline.age_days(now)
        stale = staleness_days is not None and age_days > staleness_days

        report = BaselineComparison(
            baseline_found=True,
            baseline_timestamp=baseline.timestamp,
            baseline_commit=baseline.git_commit,
            baseline_age_days=age_days,
            baseline_stale=stale,
        )

        current_entries = [BaselineEntry.from_result(r) for r in results]
        baseline_by_name = {e.name: e for e in baseline.entries}
        current_names = {e.name for e in current_entries}

        for current in current_entries:
            stored = baseline_by_name.get(current.name)
            if stored is None:
                report.new_tasks.append(current.name)
                continue

            comparison = compare_stats(stored.to_comparable(), current.to_comparable())
            task_cmp = TaskComparison(
                name=current.name,
                baseline=stored,
                current=current,
                comparison=comparison,
            )
            report.comparisons.append(task_cmp)

            # "a" is the baseline, "b" the current run.
            meaningful = comparison.significant and comparison.effect_magnitude != "negligible"
            if meaningful and comparison.faster == "a":
                if comparison.speedup_ratio >= regression_threshold:
                    report.regressions.append(task_cmp)
                else:
                    report.unchanged.append(task_cmp)
            elif meaningful and comparison.faster == "b":
                report.improvements.append(task_cmp)
            else:
                report.unchanged.append(task_cmp)

        report.removed_tasks = [e.name for e in baseline.entries if e.name not in current_names]

        report.regressions.sort(key=lambda c: c.comparison.effect_size, reverse=True)
        report.improvements.sort(key=lambda c: c.comparison.effect_size, reverse=True)

        if stale:
            log.warning("Baseline is %.1f days old (stale)", age_days)
        return report
