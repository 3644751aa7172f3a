"""Timing capture for benchmark steps and worker processes.

Two levels of measurement live here:

- In the worker, ``measure_step`` wraps one workload action and records
  its wall-clock duration (``time.perf_counter``) and the memory it
  allocated (``tracemalloc`` peak above the starting level).
- In the master, ``run_timed`` executes a worker subprocess, drains its
  stdout and stderr concurrently and reports wall, user and system time.
"""

from __future__ import annotations

import gc
import logging
import os
import resource
import signal
import subprocess
import time
import tracemalloc
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from benchduel.bench.protocol import label_problem
from benchduel.bench.results import MeasurementRecord

log = logging.getLogger("benchduel")

# gc.collect() passes before a timed window; stop early once a pass frees nothing.
_MAX_RECLAIM_PASSES = 3


# ---------------------------------------------------------------------------
# Step measurement (worker side)
# ---------------------------------------------------------------------------


def reclaim_memory() -> int:
    """Run full garbage collections until nothing more is freed.

    Collecting also runs the finalizers of unreachable objects, so the
    next timed window does not pay for cleanup left over from earlier
    work.  Returns the number of unreachable objects found in total.
    """
    total = 0
    for _ in range(_MAX_RECLAIM_PASSES):
        found = gc.collect()
        total += found
        if found == 0:
            break
    return total


def measure_step(
    category: str,
    name: str,
    action: Callable[[], object],
) -> MeasurementRecord:
    """Run *action* once and measure it.

    Allocation is the peak traced memory during the action above the
    level traced just before it; it is 0 when ``tracemalloc`` is not
    tracing.  If *action* raises, the error is logged and re-raised
    unchanged.

    Raises:
        ValueError: If *category* or *name* cannot be carried by the
            worker protocol (checked before *action* runs).
    """
    for label in (category, name):
        problem = label_problem(label)
        if problem is not None:
            raise ValueError(f"Invalid step label {label!r}: {problem}")

    tracing = tracemalloc.is_tracing()
    if tracing:
        tracemalloc.reset_peak()
        before, _ = tracemalloc.get_traced_memory()

    start = time.perf_counter()
    try:
        action()
    except Exception:
        log.exception("Step failed: %s / %s", category, name)
        raise
    elapsed = time.perf_counter() - start

    allocated = 0
    if tracing:
        _, peak = tracemalloc.get_traced_memory()
        allocated = max(0, peak - before)

    return MeasurementRecord(
        category=category,
        name=name,
        duration_s=max(elapsed, 0.0),
        allocated_bytes=allocated,
    )


# ---------------------------------------------------------------------------
# TimedResult (master side)
# ---------------------------------------------------------------------------


@dataclass
class TimedResult:
    """Result of a timed subprocess execution."""

    wall_time_s: float
    user_time_s: float
    sys_time_s: float
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def cpu_time_s(self) -> float:
        """Total CPU time (user + system)."""
        return self.user_time_s + self.sys_time_s


def run_timed(
    command: list[str],
    *,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> TimedResult:
    """Execute *command* and capture its output, exit code and timings.

    Both output streams are drained concurrently by ``communicate()``,
    so a child that fills one pipe while the parent waits on the other
    cannot deadlock.

    Args:
        command: Argument list (no shell).
        cwd: Working directory for the subprocess.
        env: Extra environment variables layered over ``os.environ``.
        timeout: Seconds to wait before killing the process group.
            None waits indefinitely.

    Returns:
        TimedResult with timing data and process output.

    Raises:
        OSError: If the process cannot be started.
    """
    run_env = dict(os.environ)
    if env:
        run_env.update(env)

    pre_rusage = resource.getrusage(resource.RUSAGE_CHILDREN)
    wall_start = time.monotonic()

    timed_out = False
    proc = subprocess.Popen(
        command,
        cwd=str(cwd) if cwd else None,
        env=run_env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        start_new_session=True,
    )
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
        exit_code = proc.returncode
    except subprocess.TimeoutExpired:
        timed_out = True
        log.warning("Process %d exceeded %ss, killing it", proc.pid, timeout)
        _kill_process_group(proc.pid)
        try:
            stdout, stderr = proc.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            stdout, stderr = proc.communicate()
        exit_code = -1

    wall_time = time.monotonic() - wall_start
    post_rusage = resource.getrusage(resource.RUSAGE_CHILDREN)

    user_time = post_rusage.ru_utime - pre_rusage.ru_utime
    sys_time = post_rusage.ru_stime - pre_rusage.ru_stime

    return TimedResult(
        wall_time_s=round(wall_time, 6),
        user_time_s=round(max(user_time, 0.0), 6),
        sys_time_s=round(max(sys_time, 0.0), 6),
        exit_code=exit_code,
        stdout=stdout or "",
        stderr=stderr or "",
        timed_out=timed_out,
    )


def _kill_process_group(pid: int) -> None:
    """Attempt to kill the entire process group on timeout."""
    try:
        os.killpg(os.getpgid(pid), signal.SIGKILL)
    except (ProcessLookupError, PermissionError, OSError):
        pass
