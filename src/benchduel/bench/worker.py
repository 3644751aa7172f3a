"""Worker side of a benchmark run.

A worker is a short-lived ``python -m benchduel --worker ...`` process
that runs one system's workload for a number of iterations and reports
each recorded step on stdout through the line protocol.  The run is
atomic: the exit status is 0 only if every iteration completed.

Per iteration:

1. Reclaim memory before the timed window.
2. Invoke the workload once; each step goes through ``StepRecorder``.
3. Print one ``SLAVE_STEP:`` line per step, then clear the recorder.
"""

from __future__ import annotations

import logging
import random
import sys
import tempfile
import time
import tracemalloc
from pathlib import Path
from typing import Callable, TextIO

from benchduel.bench.protocol import (
    encode_step,
    format_error_line,
    format_start_line,
    format_success_line,
)
from benchduel.bench.results import MeasurementRecord
from benchduel.bench.timing import measure_step, reclaim_memory
from benchduel.bench.workloads import WorkloadContext, resolve_workload

log = logging.getLogger("benchduel")

TEST_TYPES = ("performance",)

EXIT_OK = 0
EXIT_FAILED = 1


class StepRecorder:
    """Collects the measurements of one iteration, in execution order."""

    def __init__(self) -> None:
        self.steps: list[MeasurementRecord] = []

    def record(
        self,
        category: str,
        name: str,
        action: Callable[[], object],
    ) -> MeasurementRecord:
        """Time *action*, keep the measurement and return it.

        Errors raised by *action* propagate unchanged.
        """
        step = measure_step(category, name, action)
        log.debug("%s / %s: %.3f ms, %d B", category, name, step.duration_ms, step.allocated_bytes)
        self.steps.append(step)
        return step

    def clear(self) -> None:
        self.steps.clear()

    def __len__(self) -> int:
        return len(self.steps)


def run_iterations(
    system: str,
    iterations: int,
    *,
    workload_spec: str | None = None,
    seed: int = 101,
    user_count: int = 10_000,
    work_dir: Path,
    out: TextIO,
) -> None:
    """Run the workload *iterations* times, writing protocol lines to *out*.

    Raises whatever the workload raises; nothing is masked.
    """
    workload = resolve_workload(system, workload_spec)
    rng = random.Random(seed)
    recorder = StepRecorder()

    out.write(format_start_line(system, iterations) + "\n")
    out.flush()

    for index in range(1, iterations + 1):
        reclaim_memory()

        started = time.perf_counter()
        ctx = WorkloadContext(rng=rng, user_count=user_count, work_dir=work_dir, iteration=index)
        workload(recorder, ctx)
        elapsed = time.perf_counter() - started

        log.info("Iteration %d/%d: %d steps in %.2fs", index, iterations, len(recorder), elapsed)
        out.write(format_success_line(len(recorder), elapsed) + "\n")
        for step in recorder.steps:
            out.write(encode_step(step) + "\n")
        out.flush()
        recorder.clear()


def run_worker(
    system: str,
    iterations: int,
    *,
    test_type: str = "performance",
    workload_spec: str | None = None,
    seed: int = 101,
    user_count: int = 10_000,
    work_dir: Path | None = None,
    out: TextIO | None = None,
) -> int:
    """Entry point for worker mode.  Returns the process exit status.

    Any error, including an unknown test type or system, is reported as
    a ``SLAVE_ERROR:`` line on *out* and yields ``EXIT_FAILED``.
    """
    out = out or sys.stdout
    tracemalloc.start()
    try:
        if test_type not in TEST_TYPES:
            raise ValueError(f"Unknown test type: {test_type}")
        if iterations < 1:
            raise ValueError(f"Iterations must be positive (got {iterations})")

        if work_dir is not None:
            work_dir.mkdir(parents=True, exist_ok=True)
            run_iterations(
                system,
                iterations,
                workload_spec=workload_spec,
                seed=seed,
                user_count=user_count,
                work_dir=work_dir,
                out=out,
            )
        else:
            with tempfile.TemporaryDirectory(prefix="benchduel-") as tmp:
                run_iterations(
                    system,
                    iterations,
                    workload_spec=workload_spec,
                    seed=seed,
                    user_count=user_count,
                    work_dir=Path(tmp),
                    out=out,
                )
    except Exception as exc:  # noqa: BLE001
        log.error("Worker for %s failed: %s", system, exc)
        out.write(format_error_line(f"{type(exc).__name__}: {exc}") + "\n")
        out.flush()
        return EXIT_FAILED
    finally:
        tracemalloc.stop()

    return EXIT_OK
