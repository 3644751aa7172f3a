"""Tests for benchduel.bench.compare: baseline vs candidate differences."""

from __future__ import annotations

import math
import unittest

from bench_test_helpers import make_record

from benchduel.bench.compare import (
    APPROXIMATELY_EQUAL,
    BASELINE_BETTER,
    CANDIDATE_BETTER,
    NOT_APPLICABLE,
    UNBOUNDED,
    classify_difference,
    compare,
    pct_diff,
)
from benchduel.bench.stats import aggregate

NAMES = {"baseline_name": "A", "candidate_name": "B"}


class TestClassifyDifference(unittest.TestCase):
    def test_both_zero_not_applicable(self) -> None:
        diff = classify_difference(0.0, 0.0, **NAMES)
        self.assertEqual(diff.kind, NOT_APPLICABLE)
        self.assertEqual(diff.label, "N/A")
        self.assertTrue(math.isnan(diff.pct))

    def test_both_below_epsilon_not_applicable(self) -> None:
        self.assertEqual(classify_difference(1e-12, 5e-10, **NAMES).kind, NOT_APPLICABLE)

    def test_zero_baseline_unbounded(self) -> None:
        diff = classify_difference(0.0, 5.0, **NAMES)
        self.assertEqual(diff.kind, UNBOUNDED)
        self.assertEqual(diff.label, "B +Inf% (unbounded)")

    def test_tiny_difference_is_tie(self) -> None:
        diff = classify_difference(100.0, 100.05, **NAMES)
        self.assertEqual(diff.kind, APPROXIMATELY_EQUAL)
        self.assertEqual(diff.label, "≈ 0.0%")

    def test_candidate_better(self) -> None:
        diff = classify_difference(100.0, 50.0, **NAMES)
        self.assertEqual(diff.kind, CANDIDATE_BETTER)
        self.assertEqual(diff.winner, "B")
        self.assertAlmostEqual(diff.pct, -50.0)
        self.assertEqual(diff.label, "B better by 50.0%")

    def test_baseline_better(self) -> None:
        diff = classify_difference(50.0, 100.0, **NAMES)
        self.assertEqual(diff.kind, BASELINE_BETTER)
        self.assertEqual(diff.label, "A better by 100.0%")

    def test_thousands_separator(self) -> None:
        diff = classify_difference(1.0, 25.0, **NAMES)
        self.assertEqual(diff.label, "A better by 2,400.0%")

    def test_threshold_boundary(self) -> None:
        self.assertEqual(classify_difference(100.0, 100.2, **NAMES).kind, BASELINE_BETTER)
        self.assertEqual(classify_difference(100.0, 99.8, **NAMES).kind, CANDIDATE_BETTER)

    def test_pct_diff(self) -> None:
        self.assertAlmostEqual(pct_diff(100.0, 150.0), 50.0)
        self.assertAlmostEqual(pct_diff(200.0, 100.0), -50.0)


class TestCompare(unittest.TestCase):
    def test_end_to_end_labels(self) -> None:
        """A at 10ms vs B at 5ms with equal allocations."""
        a = aggregate([make_record("Step", 10.0, 1000)] * 3, name="A")
        b = aggregate([make_record("Step", 5.0, 1000)] * 3, name="B")
        report = compare(a, b)
        self.assertEqual(len(report.steps), 1)
        step = report.steps[0]
        self.assertEqual(step.time_diff.label, "B better by 50.0%")
        self.assertEqual(step.alloc_diff.label, "≈ 0.0%")
        self.assertEqual(report.candidate_wins, 1)
        self.assertEqual(report.baseline_wins, 0)
        assert step.baseline is not None
        self.assertEqual(step.baseline.count, 3)

    def test_union_sorted(self) -> None:
        a = aggregate(
            [make_record("zeta", 1), make_record("alpha", 1), make_record("f", 1, category="2.FS")],
            name="A",
        )
        b = aggregate([make_record("mid", 1), make_record("zeta", 1)], name="B")
        report = compare(a, b)
        self.assertEqual([c.category for c in report.categories], ["1.General", "2.FS"])
        self.assertEqual(
            [s.name for s in report.categories[0].steps], ["alpha", "mid", "zeta"]
        )

    def test_missing_candidate_side(self) -> None:
        a = aggregate([make_record("only_a", 10.0, 100)], name="A")
        b = aggregate([make_record("other", 10.0, 100)], name="B")
        report = compare(a, b)
        step = next(s for s in report.steps if s.name == "only_a")
        self.assertIsNone(step.candidate)
        self.assertEqual(step.candidate_duration_s, 0.0)
        self.assertEqual(step.time_diff.kind, CANDIDATE_BETTER)
        self.assertEqual(step.time_diff.label, "B better by 100.0%")

    def test_one_sided_steps_are_not_wins(self) -> None:
        a = aggregate([make_record("shared", 10.0), make_record("only_a", 10.0)], name="A")
        b = aggregate([make_record("shared", 10.0), make_record("only_b", 10.0)], name="B")
        report = compare(a, b)
        self.assertEqual(len(report.steps), 3)
        self.assertEqual(report.candidate_wins, 0)
        self.assertEqual(report.baseline_wins, 0)
        self.assertEqual(report.ties, 1)

    def test_missing_baseline_side(self) -> None:
        a = aggregate([], name="A")
        b = aggregate([make_record("only_b", 3.0, 10)], name="B")
        step = compare(a, b).steps[0]
        self.assertIsNone(step.baseline)
        self.assertEqual(step.time_diff.kind, UNBOUNDED)
        self.assertEqual(step.alloc_diff.kind, UNBOUNDED)

    def test_zero_allocations_not_applicable(self) -> None:
        a = aggregate([make_record("s", 2.0, 0)], name="A")
        b = aggregate([make_record("s", 2.0, 0)], name="B")
        step = compare(a, b).steps[0]
        self.assertEqual(step.alloc_diff.kind, NOT_APPLICABLE)
        self.assertEqual(step.time_diff.kind, APPROXIMATELY_EQUAL)

    def test_both_empty(self) -> None:
        report = compare(aggregate([], name="A"), aggregate([], name="B"))
        self.assertEqual(report.categories, [])
        self.assertEqual(report.ties, 0)

    def test_durations_compared_in_milliseconds(self) -> None:
        """0.1 ns and 0.05 ns are below epsilon in seconds but not in ms."""
        a = aggregate([make_record("s", 1e-7)], name="A")
        b = aggregate([make_record("s", 5e-8)], name="B")
        self.assertEqual(compare(a, b).steps[0].time_diff.kind, CANDIDATE_BETTER)


if __name__ == "__main__":
    unittest.main()
