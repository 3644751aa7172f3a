"""Tests for benchduel.bench.timing: step measurement and timed subprocesses."""

from __future__ import annotations

import sys
import time
import tracemalloc
import unittest

from benchduel.bench.timing import TimedResult, measure_step, reclaim_memory, run_timed


class TestMeasureStep(unittest.TestCase):
    def test_records_labels_and_duration(self) -> None:
        rec = measure_step("1.General", "Sleep", lambda: time.sleep(0.01))
        self.assertEqual(rec.category, "1.General")
        self.assertEqual(rec.name, "Sleep")
        self.assertGreaterEqual(rec.duration_s, 0.009)

    def test_allocation_zero_without_tracing(self) -> None:
        if tracemalloc.is_tracing():
            self.skipTest("tracemalloc already active")
        rec = measure_step("c", "n", lambda: [0] * 100_000)
        self.assertEqual(rec.allocated_bytes, 0)

    def test_allocation_measured_while_tracing(self) -> None:
        tracemalloc.start()
        try:
            rec = measure_step("c", "n", lambda: bytearray(1_000_000))
        finally:
            tracemalloc.stop()
        self.assertGreaterEqual(rec.allocated_bytes, 1_000_000)

    def test_exception_propagates(self) -> None:
        def boom() -> None:
            raise RuntimeError("kaput")

        with self.assertLogs("benchduel", level="ERROR"):
            with self.assertRaises(RuntimeError):
                measure_step("c", "n", boom)

    def test_bad_label_rejected_before_running(self) -> None:
        calls: list[int] = []
        with self.assertRaises(ValueError):
            measure_step("c", "a - b", lambda: calls.append(1))
        self.assertEqual(calls, [])

    def test_trailing_dash_label_rejected_before_running(self) -> None:
        calls: list[int] = []
        with self.assertRaises(ValueError):
            measure_step("c", "Insert -", lambda: calls.append(1))
        self.assertEqual(calls, [])


class TestReclaimMemory(unittest.TestCase):
    def test_returns_non_negative(self) -> None:
        self.assertGreaterEqual(reclaim_memory(), 0)


class TestRunTimed(unittest.TestCase):
    def test_captures_output_and_exit_code(self) -> None:
        result = run_timed(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"]
        )
        self.assertEqual(result.exit_code, 3)
        self.assertEqual(result.stdout.strip(), "out")
        self.assertEqual(result.stderr.strip(), "err")
        self.assertFalse(result.timed_out)
        self.assertGreater(result.wall_time_s, 0)

    def test_large_stderr_does_not_deadlock(self) -> None:
        script = (
            "import sys\n"
            "sys.stderr.write('x' * (1024 * 1024))\n"
            "sys.stdout.write('y' * (1024 * 1024))\n"
        )
        result = run_timed([sys.executable, "-c", script], timeout=60)
        self.assertFalse(result.timed_out)
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(len(result.stderr), 1024 * 1024)
        self.assertEqual(len(result.stdout), 1024 * 1024)

    def test_timeout_kills_process(self) -> None:
        result = run_timed([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)
        self.assertTrue(result.timed_out)
        self.assertEqual(result.exit_code, -1)
        self.assertLess(result.wall_time_s, 20)

    def test_env_is_layered(self) -> None:
        result = run_timed(
            [sys.executable, "-c", "import os; print(os.environ['BENCHDUEL_TEST_VAR'])"],
            env={"BENCHDUEL_TEST_VAR": "hello"},
        )
        self.assertEqual(result.stdout.strip(), "hello")

    def test_cpu_time(self) -> None:
        result = TimedResult(1.0, 0.5, 0.25, 0, "", "")
        self.assertAlmostEqual(result.cpu_time_s, 0.75)


if __name__ == "__main__":
    unittest.main()
