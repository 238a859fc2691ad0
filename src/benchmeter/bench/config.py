"""Harness configuration and profile loading.

Handles:
- The resolved :class:`HarnessConfig` used by the harness.
- Eager validation: invalid settings fail at construction, never
  silently clamped.
- Loading benchmark profiles from YAML files.
- Merging CLI options with profile defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

from benchmeter.bench.results import DEFAULT_PERCENTILES
from benchmeter.bench.timing import Clock, default_clock

log = logging.getLogger("benchmeter")

# (task_name, iteration, abort) -> None; iteration is 1-based.
IterationCallback = Callable[[str, int, Callable[[], None]], None]

DEFAULT_DURATION_MS = 1000.0
DEFAULT_WARMUP_ITERATIONS = 5
DEFAULT_COOLDOWN_MS = 100.0
DEFAULT_MIN_ITERATIONS = 10
DEFAULT_MAX_ITERATIONS = 100_000


# ---------------------------------------------------------------------------
# HarnessConfig
# ---------------------------------------------------------------------------


@dataclass
class HarnessConfig:
    """Resolved configuration for a harness run."""

    # Time budget
    duration_ms: float = DEFAULT_DURATION_MS  # Target measurement time per task
    warmup_iterations: int = DEFAULT_WARMUP_ITERATIONS
    cooldown_ms: float = DEFAULT_COOLDOWN_MS  # Pause between tasks

    # Iteration bounds
    min_iterations: int = DEFAULT_MIN_ITERATIONS
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    # Instrumentation
    clock: Clock = default_clock
    on_iteration: IterationCallback | None = None

    # Output
    retain_timings: bool = True
    percentiles: Sequence[float] = field(default_factory=lambda: DEFAULT_PERCENTILES)

    def __post_init__(self) -> None:
        errors = validate_config(self)
        fatal = [e for e in errors if e.severity == "error"]
        for w in errors:
            if w.severity == "warning":
                log.warning("Config warning: %s: %s", w.field, w.message)
        if fatal:
            messages = [f"  {e.field}: {e.message}" for e in fatal]
            raise ValueError("Invalid harness configuration:\n" + "\n".join(messages))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: HarnessConfig) -> list[ValidationError]:
    """Validate a harness configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if not config.duration_ms > 0:
        errors.append(
            ValidationError(
                field="duration_ms",
                message=f"Target duration must be positive (got {config.duration_ms}).",
            )
        )

    if config.warmup_iterations < 0:
        errors.append(
            ValidationError(
                field="warmup_iterations",
                message=(
                    f"Warmup iterations cannot be negative (got {config.warmup_iterations})."
                ),
            )
        )

    if not config.cooldown_ms >= 0:
        errors.append(
            ValidationError(
                field="cooldown_ms",
                message=f"Cooldown cannot be negative (got {config.cooldown_ms}).",
            )
        )

    if config.min_iterations < 1:
        errors.append(
            ValidationError(
                field="min_iterations",
                message=f"Need at least 1 iteration (got {config.min_iterations}).",
            )
        )

    if config.max_iterations < config.min_iterations:
        errors.append(
            ValidationError(
                field="max_iterations",
                message=(
                    f"max_iterations ({config.max_iterations}) must be >= "
                    f"min_iterations ({config.min_iterations})."
                ),
            )
        )

    if not callable(config.clock):
        errors.append(ValidationError(field="clock", message="Clock must be callable."))

    if config.on_iteration is not None and not callable(config.on_iteration):
        errors.append(
            ValidationError(field="on_iteration", message="on_iteration must be callable.")
        )

    for p in config.percentiles:
        if not 0 <= p <= 1:
            errors.append(
                ValidationError(
                    field="percentiles",
                    message=f"Percentiles are fractions between 0 and 1 (got {p}).",
                )
            )

    if config.min_iterations < 3 <= config.max_iterations:
        errors.append(
            ValidationError(
                field="min_iterations",
                message=(
                    f"Fewer than 3 iterations disables outlier detection "
                    f"(min_iterations={config.min_iterations})."
                ),
                severity="warning",
            )
        )

    return errors


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


_PROFILE_KEYS = (
    "duration_ms",
    "warmup_iterations",
    "cooldown_ms",
    "min_iterations",
    "max_iterations",
    "retain_timings",
    "percentiles",
)


@dataclass
class BaselineSettings:
    """Baseline options read from a profile's ``baseline:`` block."""

    directory: Path | None = None
    regression_threshold: float = 1.0
    staleness_days: float | None = None


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a benchmark profile from a YAML file.

    Profile format::

        duration_ms: 2000
        warmup_iterations: 10
        cooldown_ms: 50
        min_iterations: 20
        max_iterations: 50000
        percentiles: [0.5, 0.75, 0.9, 0.95, 0.99]

        baseline:
          dir: ".benchmeter/baselines"
          regression_threshold: 1.05
          staleness_days: 7

    Returns:
        The parsed YAML as a dict.

    Raises:
        FileNotFoundError: If the profile does not exist.
        ValueError: If the file is not a YAML mapping.
    """
    import yaml

    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    data = yaml.safe_load(profile_path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    unknown = set(data) - set(_PROFILE_KEYS) - {"baseline"}
    for key in sorted(unknown):
        log.warning("Ignoring unknown profile key: %s", key)

    return data


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
    clock: Clock | None = None,
    on_iteration: IterationCallback | None = None,
) -> HarnessConfig:
    """Build a HarnessConfig from a parsed YAML profile.

    CLI overrides (keys matching HarnessConfig field names, ``None``
    meaning "not given") take precedence over profile values, which
    take precedence over the defaults.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    cli = cli_overrides or {}
    values: dict[str, Any] = {}
    for key in _PROFILE_KEYS:
        if cli.get(key) is not None:
            values[key] = cli[key]
        elif profile_data.get(key) is not None:
            values[key] = profile_data[key]

    if "percentiles" in values:
        if not isinstance(values["percentiles"], (list, tuple)):
            raise ValueError("Profile 'percentiles' must be a list of fractions")
        values["percentiles"] = tuple(float(p) for p in values["percentiles"])

    if clock is not None:
        values["clock"] = clock
    if on_iteration is not None:
        values["on_iteration"] = on_iteration

    return HarnessConfig(**values)


def baseline_settings_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> BaselineSettings:
    """Read the ``baseline:`` block of a profile, applying CLI overrides."""
    cli = cli_overrides or {}
    block = profile_data.get("baseline") or {}
    if not isinstance(block, dict):
        raise ValueError("Profile 'baseline' must be a mapping")

    settings = BaselineSettings()
    directory = cli.get("baseline_dir") or block.get("dir")
    if directory:
        settings.directory = Path(directory)

    threshold = cli.get("regression_threshold")
    if threshold is None:
        threshold = block.get("regression_threshold", 1.0)
    settings.regression_threshold = float(threshold)

    staleness = cli.get("staleness_days")
    if staleness is None:
        staleness = block.get("staleness_days")
    settings.staleness_days = float(staleness) if staleness is not None else None

    return settings
