"""Command-line interface for benchmeter.

Provides the ``benchmeter`` entry point with the ``run`` command and the
``baseline`` subgroup (``show``, ``clear``).

A benchmark script is a Python file defining ``register(harness)``::

    def register(harness):
        harness.add("join", lambda: ",".join(WORDS))
        harness.add("fetch", fetch, setup=connect, teardown=disconnect)

An optional module-level ``GROUPS`` list of
:class:`~benchmeter.bench.display.ResultGroup` splits the table output
into sections::

    GROUPS = [ResultGroup("parsing", lambda r: r.name.startswith("parse"))]
"""

from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path
from types import ModuleType

import click

from benchmeter import __version__
from benchmeter.logging import get_logger, setup_logging

log = get_logger("cli")


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """benchmeter — statistically rigorous micro-benchmarks with regression tracking."""


def _load_script(path: Path) -> ModuleType:
    """Import a benchmark script from a file path."""
    module_name = f"_benchmeter_script_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise click.UsageError(f"Cannot import benchmark script: {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.argument("script", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML profile with harness and baseline settings.",
)
@click.option("--duration-ms", type=float, default=None, help="Target measurement time per task.")
@click.option("--warmup", "warmup_iterations", type=int, default=None, help="Warmup iterations.")
@click.option("--min-iterations", type=int, default=None)
@click.option("--max-iterations", type=int, default=None)
@click.option("--cooldown-ms", type=float, default=None, help="Pause between tasks.")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "markdown", "json"]),
    default="table",
    show_default=True,
)
@click.option("--save-baseline", is_flag=True, help="Store the results as the new baseline.")
@click.option("--compare", "compare_baseline", is_flag=True, help="Compare against the baseline.")
@click.option(
    "--baseline-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Baseline directory [default: .benchmeter/baselines].",
)
@click.option(
    "--regression-threshold",
    type=float,
    default=None,
    help="Minimum slowdown ratio reported as a regression (e.g. 1.05).",
)
@click.option("--staleness-days", type=float, default=None, help="Warn if the baseline is older.")
@click.option(
    "--fail-on-regression",
    is_flag=True,
    help="Exit with status 1 when a regression is detected.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
def run(  # noqa: PLR0913
    script: Path,
    profile_path: Path | None,
    duration_ms: float | None,
    warmup_iterations: int | None,
    min_iterations: int | None,
    max_iterations: int | None,
    cooldown_ms: float | None,
    fmt: str,
    save_baseline: bool,
    compare_baseline: bool,
    baseline_dir: Path | None,
    regression_threshold: float | None,
    staleness_days: float | None,
    fail_on_regression: bool,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Run the benchmarks registered by SCRIPT.

    \b
    Examples:
        # Quick run with a shorter time budget
        benchmeter run bench_slugify.py --duration-ms 200

        # CI: compare against the stored baseline, tolerate 5%
        benchmeter run bench_slugify.py --compare \\
            --regression-threshold 1.05 --fail-on-regression
    """
    from benchmeter.bench.baseline import DEFAULT_BASELINE_DIR, BaselineStore
    from benchmeter.bench.config import (
        baseline_settings_from_profile,
        config_from_profile,
        load_profile,
    )
    from benchmeter.bench.display import (
        format_baseline_comparison,
        format_summary,
    )
    from benchmeter.bench.export import (
        baseline_comparison_to_dict,
        export_markdown,
        results_to_dicts,
    )
    from benchmeter.bench.runner import Harness

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    try:
        profile_data = load_profile(profile_path) if profile_path else {}
        config = config_from_profile(
            profile_data,
            cli_overrides={
                "duration_ms": duration_ms,
                "warmup_iterations": warmup_iterations,
                "min_iterations": min_iterations,
                "max_iterations": max_iterations,
                "cooldown_ms": cooldown_ms,
            },
        )
        settings = baseline_settings_from_profile(
            profile_data,
            cli_overrides={
                "baseline_dir": baseline_dir,
                "regression_threshold": regression_threshold,
                "staleness_days": staleness_days,
            },
        )
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    try:
        module = _load_script(script)
    except Exception as exc:  # noqa: BLE001
        click.echo(f"Error: cannot load {script}: {type(exc).__name__}: {exc}", err=True)
        raise SystemExit(1) from exc
    register = getattr(module, "register", None)
    if not callable(register):
        click.echo(f"Error: {script} does not define register(harness)", err=True)
        raise SystemExit(1)

    harness = Harness(config)
    try:
        register(harness)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    log.debug("Running %d task(s) from %s", len(harness.selected_tasks()), script)
    try:
        results = harness.run_sync()
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    store = BaselineStore(settings.directory or DEFAULT_BASELINE_DIR)
    comparison = None
    if compare_baseline:
        comparison = store.compare(
            results,
            regression_threshold=settings.regression_threshold,
            staleness_days=settings.staleness_days,
        )

    if fmt == "json":
        payload: dict[str, object] = {"results": results_to_dicts(results)}
        if comparison is not None:
            payload["baseline_comparison"] = baseline_comparison_to_dict(comparison)
        click.echo(json.dumps(payload, indent=2))
    elif fmt == "markdown":
        click.echo(export_markdown(results))
        if comparison is not None:
            click.echo()
            click.echo(format_baseline_comparison(comparison))
    else:
        click.echo(harness.table(groups=getattr(module, "GROUPS", None)))
        click.echo()
        click.echo(format_summary(results))
        if comparison is not None:
            click.echo()
            click.echo(format_baseline_comparison(comparison))

    if save_baseline:
        store.save(results)

    if fail_on_regression and comparison is not None and comparison.has_regressions:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# baseline
# ---------------------------------------------------------------------------


_baseline_dir_option = click.option(
    "--baseline-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Baseline directory [default: .benchmeter/baselines].",
)


@main.group()
def baseline() -> None:
    """Inspect or remove the stored baseline."""


@baseline.command("show")
@_baseline_dir_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def baseline_show(baseline_dir: Path | None, as_json: bool) -> None:
    """Print the stored baseline."""
    from benchmeter.bench.baseline import DEFAULT_BASELINE_DIR, BaselineStore
    from benchmeter.formatting import (
        UNIT_LABELS,
        detect_time_unit,
        format_number,
        format_table,
        format_time_ns,
    )

    setup_logging(quiet=True)
    store = BaselineStore(baseline_dir or DEFAULT_BASELINE_DIR)
    stored = store.load()
    if stored is None:
        click.echo(f"No baseline found in {store.directory}")
        return

    if as_json:
        click.echo(json.dumps(stored.to_dict(), indent=2))
        return

    click.echo(f"Baseline: {store.path}")
    click.echo(f"  Saved:   {stored.timestamp}")
    click.echo(f"  Commit:  {stored.git_commit or 'unknown'}")
    click.echo(f"  Branch:  {stored.git_branch or 'unknown'}")
    click.echo(f"  Runtime: {stored.runtime_version}")
    click.echo()

    unit = detect_time_unit([e.mean_ns for e in stored.entries])
    label = UNIT_LABELS[unit]
    rows = [
        [
            e.name,
            format_number(e.ops_per_second),
            format_time_ns(e.mean_ns, unit, suffix=False),
            format_time_ns(e.std_dev_ns, unit, suffix=False),
            format_time_ns(e.p99_ns, unit, suffix=False),
            str(e.sample_size),
        ]
        for e in stored.entries
    ]
    click.echo(
        format_table(
            ["Task", "ops/sec", f"mean ({label})", f"std ({label})", f"p99 ({label})", "samples"],
            rows,
            alignments=["l", "r", "r", "r", "r", "r"],
        )
    )


@baseline.command("clear")
@_baseline_dir_option
def baseline_clear(baseline_dir: Path | None) -> None:
    """Delete the stored baseline."""
    from benchmeter.bench.baseline import DEFAULT_BASELINE_DIR, BaselineStore

    setup_logging(quiet=True)
    store = BaselineStore(baseline_dir or DEFAULT_BASELINE_DIR)
    if not store.path.exists():
        click.echo(f"No baseline found in {store.directory}")
        return
    store.clear()
    click.echo(f"Removed {store.path}")
