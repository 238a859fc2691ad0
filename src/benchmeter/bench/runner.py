"""Benchmark execution engine.

Orchestrates, per task:
1. Setup (awaited if it suspends)
2. Warmup, which also classifies the operation as sync or suspending
3. Adaptive measurement bounded by time and min/max iterations
4. Teardown
5. Statistical analysis of the recorded timings
6. Cooldown before the next task

Tasks run strictly one after another. The synchronous measurement
loop never awaits, so sync operations pay no event-loop overhead.

Usage::

    harness = Harness(HarnessConfig(duration_ms=500))
    harness.add("join", lambda: ",".join(words))
    harness.add("fetch", fetch_async, setup=connect, teardown=close)
    results = harness.run_sync()
    print(harness.summary())
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from benchmeter.bench.config import HarnessConfig
from benchmeter.bench.display import (
    ResultGroup,
    format_results_table,
    format_results_table_grouped,
    format_summary,
)
from benchmeter.bench.results import BenchStats, TaskResult
from benchmeter.bench.timing import (
    ExecutionMode,
    call_maybe_async,
    detect_mode,
    ms_to_ns,
)

log = logging.getLogger("benchmeter")


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


@dataclass
class Task:
    """A named operation to benchmark.

    ``fn`` may be a plain function or return an awaitable; return
    values are otherwise ignored. ``setup`` and ``teardown`` are not
    timed. ``is_async`` skips detection when given.
    """

    name: str
    fn: Callable[[], Any]
    setup: Callable[[], Any] | None = None
    teardown: Callable[[], Any] | None = None
    is_async: bool | None = None
    skip: bool = False
    only: bool = False

    def __post_init__(self) -> None:
        if not callable(self.fn):
            raise ValueError(f"Task '{self.name}' needs a callable operation.")
        if self.skip and self.only:
            raise ValueError(f"Task '{self.name}' cannot be both skipped and only.")


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


class Harness:
    """Runs registered tasks and collects a :class:`TaskResult` for each."""

    def __init__(self, config: HarnessConfig | None = None) -> None:
        self.config = config or HarnessConfig()
        self._tasks: list[Task] = []
        self._results: list[TaskResult] = []

    # -- Registration -------------------------------------------------------

    def add(
        self,
        name_or_task: str | Task,
        fn: Callable[[], Any] | None = None,
        *,
        setup: Callable[[], Any] | None = None,
        teardown: Callable[[], Any] | None = None,
        is_async: bool | None = None,
        skip: bool = False,
        only: bool = False,
    ) -> Harness:
        """Register a task, by name and callable or as a :class:`Task`.

        Raises:
            ValueError: If the name is already registered or no callable
                was given with a name.
        """
        if isinstance(name_or_task, Task):
            task = name_or_task
        else:
            if fn is None:
                raise ValueError(f"Task '{name_or_task}' needs a callable operation.")
            task = Task(
                name=name_or_task,
                fn=fn,
                setup=setup,
                teardown=teardown,
                is_async=is_async,
                skip=skip,
                only=only,
            )

        if any(t.name == task.name for t in self._tasks):
            raise ValueError(f"Task '{task.name}' already exists")
        self._tasks.append(task)
        return self

    def remove(self, name: str) -> Harness:
        """Remove a task by name.

        Raises:
            ValueError: If no task has that name.
        """
        for i, task in enumerate(self._tasks):
            if task.name == name:
                del self._tasks[i]
                return self
        raise ValueError(f"Task '{name}' not found")

    def tasks(self) -> list[Task]:
        return list(self._tasks)

    def selected_tasks(self) -> list[Task]:
        """Tasks that a run will execute, in registration order.

        Skipped tasks never run. If any remaining task is marked
        ``only``, the unmarked ones are dropped.
        """
        candidates = [t for t in self._tasks if not t.skip]
        if any(t.only for t in candidates):
            return [t for t in candidates if t.only]
        return candidates

    # -- Execution ----------------------------------------------------------

    async def run(self) -> list[TaskResult]:
        """Run every selected task sequentially.

        Failures inside a task are captured on its result; the run
        always returns one result per selected task.
        """
        self._results = []
        selected = self.selected_tasks()
        cooldown_s = self.config.cooldown_ms / 1000

        for idx, task in enumerate(selected):
            log.debug("Running task %d/%d: %s", idx + 1, len(selected), task.name)
            result = await self._run_task(task)
            self._results.append(result)
            log.debug(
                "Task %s: %d iterations, %.2f ops/sec",
                task.name,
                result.iterations,
                result.stats.ops_per_second,
            )

            if cooldown_s > 0 and idx < len(selected) - 1:
                await asyncio.sleep(cooldown_s)

        return list(self._results)

    def run_sync(self) -> list[TaskResult]:
        """Blocking wrapper around :meth:`run` for non-async callers."""
        return asyncio.run(self.run())

    async def _run_task(self, task: Task) -> TaskResult:
        clock = self.config.clock
        start_ns = clock()
        timings: list[int] = []
        error: Exception | None = None

        # Teardown runs only when setup completed (or there was none).
        # A setup that raised may have left nothing to tear down.
        setup_done = False
        try:
            if task.setup is not None:
                await call_maybe_async(task.setup)
            setup_done = True

            mode = await self._warmup(task)
            await self._measure(task, mode, timings)
        except Exception as exc:  # noqa: BLE001
            error = exc
            phase = "measurement" if setup_done else "setup"
            log.warning("Task '%s' failed during %s: %s", task.name, phase, exc)
        finally:
            if setup_done and task.teardown is not None:
                try:
                    await call_maybe_async(task.teardown)
                except Exception as exc:  # noqa: BLE001
                    log.warning("Task '%s' teardown failed: %s", task.name, exc)
                    if error is None:
                        error = exc

        total_ns = clock() - start_ns

        return TaskResult(
            name=task.name,
            stats=BenchStats.from_timings(timings, percentiles=self.config.percentiles),
            iterations=len(timings),
            total_time_ns=total_ns,
            timings_ns=tuple(timings) if self.config.retain_timings else None,
            error=error,
        )

    async def _warmup(self, task: Task) -> ExecutionMode | None:
        """Run warmup iterations and classify the operation.

        Returns the execution mode, or None if it is still unknown
        (no hint and no warmup iterations).
        """
        mode = ExecutionMode.from_hint(task.is_async)
        for _ in range(self.config.warmup_iterations):
            value = task.fn()
            if mode is None:
                mode = detect_mode(value)
            if mode is ExecutionMode.SUSPENDING:
                await value
        return mode

    async def _measure(
        self,
        task: Task,
        mode: ExecutionMode | None,
        timings: list[int],
    ) -> None:
        """Measurement loop; appends one duration per iteration to *timings*.

        Stops when the caller aborts, when both the time budget and
        ``min_iterations`` are satisfied, or at ``max_iterations``.
        Timings appended before an exception are kept.
        """
        cfg = self.config
        clock = cfg.clock
        target_ns = ms_to_ns(cfg.duration_ms)
        on_iteration = cfg.on_iteration

        aborted = False

        def abort() -> None:
            nonlocal aborted
            aborted = True

        measurement_start = clock()

        if mode is None:
            # No warmup to learn from: classify on the first timed call.
            start = clock()
            value = task.fn()
            mode = detect_mode(value)
            if mode is ExecutionMode.SUSPENDING:
                await value
            end = clock()
            timings.append(end - start)
            if on_iteration is not None:
                on_iteration(task.name, 1, abort)
            if aborted or (cfg.min_iterations <= 1 and end - measurement_start >= target_ns):
                return

        fn = task.fn
        if mode is ExecutionMode.SYNC:
            while len(timings) < cfg.max_iterations:
                start = clock()
                fn()
                end = clock()
                timings.append(end - start)
                if on_iteration is not None:
                    on_iteration(task.name, len(timings), abort)
                if aborted:
                    break
                if len(timings) >= cfg.min_iterations and end - measurement_start >= target_ns:
                    break
        else:
            while len(timings) < cfg.max_iterations:
                start = clock()
                await fn()
                end = clock()
                timings.append(end - start)
                if on_iteration is not None:
                    on_iteration(task.name, len(timings), abort)
                if aborted:
                    break
                if len(timings) >= cfg.min_iterations and end - measurement_start >= target_ns:
                    break

    # -- Results ------------------------------------------------------------

    def results(self) -> list[TaskResult]:
        """Results of the last run (a copy)."""
        return list(self._results)

    def reset(self) -> Harness:
        """Drop results, keeping tasks so the harness can run again."""
        self._results = []
        return self

    def clear(self) -> Harness:
        """Drop results and tasks."""
        self._results = []
        self._tasks = []
        return self

    def summary(self) -> str:
        """One-paragraph fastest/slowest summary of the last run."""
        return format_summary(self._results)

    def table(self, groups: Sequence[ResultGroup] | None = None) -> str:
        """Results table of the last run, split into sections when *groups* is given."""
        if groups:
            return format_results_table_grouped(self._results, groups)
        return format_results_table(self._results)
