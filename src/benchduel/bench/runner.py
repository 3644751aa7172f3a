"""Benchmark execution engine.

Orchestrates:
1. Configuration validation
2. One worker subprocess per system, baseline first, strictly sequential
3. Timing capture and decoding of the worker's step lines
4. Progress reporting

A failing worker aborts the whole run: there are no retries and no
partial comparisons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from benchduel.bench.config import BenchConfig, SystemDef, validate_config
from benchduel.bench.protocol import decode_output, extract_errors
from benchduel.bench.results import RunResult
from benchduel.bench.timing import run_timed

log = logging.getLogger("benchduel")


class WorkerFailedError(Exception):
    """A worker exited non-zero or was killed on timeout."""

    def __init__(
        self,
        system: str,
        exit_code: int,
        stdout: str = "",
        stderr: str = "",
        *,
        timed_out: bool = False,
    ) -> None:
        self.system = system
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        if timed_out:
            reason = "timed out"
        else:
            reason = f"exited with status {exit_code}"
        super().__init__(f"Worker for system '{system}' {reason}")

    @property
    def output(self) -> str:
        """Captured stdout followed by stderr."""
        parts = [text.rstrip("\n") for text in (self.stdout, self.stderr) if text]
        return "\n".join(parts)

    @property
    def errors(self) -> list[str]:
        """Messages the worker reported through ``SLAVE_ERROR:`` lines."""
        return extract_errors(self.stdout)


# ---------------------------------------------------------------------------
# Worker command
# ---------------------------------------------------------------------------


def build_worker_command(
    system: str,
    iterations: int,
    *,
    test_type: str = "performance",
    seed: int = 101,
    user_count: int = 10_000,
    workload: str | None = None,
    work_dir: str | None = None,
    python: str,
) -> list[str]:
    """Build the argument list that starts a worker for *system*."""
    cmd = [
        python,
        "-m",
        "benchduel",
        "--worker",
        f"--test-type={test_type}",
        f"--system={system}",
        f"--iterations={iterations}",
        f"--seed={seed}",
        f"--user-count={user_count}",
    ]
    if workload:
        cmd.append(f"--workload={workload}")
    if work_dir:
        cmd.append(f"--work-dir={work_dir}")
    return cmd


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass
class BenchProgress:
    """Progress info passed to the callback."""

    phase: str  # "start", "done"
    system: str
    systems_done: int
    systems_total: int
    wall_time_s: float = 0.0
    steps: int = 0
    detail: str = ""


# Type alias for the progress callback.
ProgressCallback = Any  # Callable[[BenchProgress], None] | None


# ---------------------------------------------------------------------------
# BenchRunner
# ---------------------------------------------------------------------------


class BenchRunner:
    """Executes a comparison run according to a BenchConfig.

    Usage::

        config = BenchConfig(...)
        runner = BenchRunner(config)
        results = runner.run()
    """

    def __init__(
        self,
        config: BenchConfig,
        progress_callback: ProgressCallback = None,
    ) -> None:
        self.config = config
        self.progress: Any = progress_callback or self._default_progress

    def run(self) -> dict[str, RunResult]:
        """Run every configured system once, in order.

        Returns:
            Dict of system name to RunResult, baseline first.

        Raises:
            ValueError: If configuration is invalid.
            WorkerFailedError: If any worker fails; later systems are
                not started.
        """
        errors = validate_config(self.config)
        fatal = [e for e in errors if e.severity == "error"]
        warnings = [e for e in errors if e.severity == "warning"]
        for w in warnings:
            log.warning("Config warning: %s: %s", w.field, w.message)
        if fatal:
            messages = [f"  {e.field}: {e.message}" for e in fatal]
            raise ValueError("Invalid benchmark configuration:\n" + "\n".join(messages))

        systems = list(self.config.systems.values())
        results: dict[str, RunResult] = {}
        for idx, system in enumerate(systems):
            self.progress(
                BenchProgress(
                    phase="start",
                    system=system.name,
                    systems_done=idx,
                    systems_total=len(systems),
                )
            )
            result = self.run_system(system)
            results[system.name] = result
            self.progress(
                BenchProgress(
                    phase="done",
                    system=system.name,
                    systems_done=idx + 1,
                    systems_total=len(systems),
                    wall_time_s=result.wall_time_s,
                    steps=result.step_count,
                )
            )

        return results

    def run_system(self, system: SystemDef) -> RunResult:
        """Launch one worker, wait for it and decode its step lines.

        Raises:
            WorkerFailedError: On non-zero exit or timeout.
        """
        cmd = build_worker_command(
            system.name,
            self.config.iterations,
            test_type=self.config.test_type,
            seed=self.config.seed,
            user_count=self.config.user_count,
            workload=system.workload,
            work_dir=str(self.config.work_dir / system.name) if self.config.work_dir else None,
            python=self.config.python,
        )
        log.debug("Starting worker: %s", " ".join(cmd))

        # The master decodes worker output as UTF-8 whatever the locale says.
        env = {**self.config.env, "PYTHONIOENCODING": "utf-8"}
        timed = run_timed(cmd, env=env, timeout=self.config.timeout)

        if timed.timed_out or timed.exit_code != 0:
            log.error(
                "Worker for %s failed (exit %d%s)",
                system.name,
                timed.exit_code,
                ", timed out" if timed.timed_out else "",
            )
            raise WorkerFailedError(
                system.name,
                timed.exit_code,
                timed.stdout,
                timed.stderr,
                timed_out=timed.timed_out,
            )

        steps = decode_output(timed.stdout)
        if not steps:
            log.warning("Worker for %s reported no steps", system.name)
        return RunResult(
            system_name=system.name,
            steps=steps,
            success=True,
            wall_time_s=timed.wall_time_s,
            user_time_s=timed.user_time_s,
            sys_time_s=timed.sys_time_s,
        )

    @staticmethod
    def _default_progress(p: BenchProgress) -> None:
        """Default progress reporter: logs at INFO level."""
        if p.phase == "start":
            log.info("[%d/%d] Running %s...", p.systems_done + 1, p.systems_total, p.system)
        elif p.phase == "done":
            log.info(
                "[%d/%d] %s finished: %d steps in %.2fs",
                p.systems_done,
                p.systems_total,
                p.system,
                p.steps,
                p.wall_time_s,
            )
