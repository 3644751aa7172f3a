"""Side-by-side comparison of two systems' aggregated results.

Pairs every (category, step) present on either side and computes the
relative difference of the candidate against the baseline, separately
for duration and allocation.  Lower is better for both metrics, and
both go through the same ``classify_difference``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from benchduel.bench.stats import AggregatedStep, BenchmarkSummary

log = logging.getLogger("benchduel")

# Values below this are treated as "no measurement".
EPSILON = 1e-9
# Differences smaller than this (in percent) count as a tie.
EQUAL_THRESHOLD_PCT = 0.1

NOT_APPLICABLE = "not_applicable"
UNBOUNDED = "unbounded"
APPROXIMATELY_EQUAL = "approximately_equal"
CANDIDATE_BETTER = "candidate_better"
BASELINE_BETTER = "baseline_better"


# ---------------------------------------------------------------------------
# Relative difference
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Difference:
    """Classified relative difference between a baseline and a candidate value."""

    kind: str
    pct: float  # signed (cand - base) / base * 100; nan when undefined
    winner: str = ""  # system name shown in the label, if any

    @property
    def label(self) -> str:
        if self.kind == NOT_APPLICABLE:
            return "N/A"
        if self.kind == UNBOUNDED:
            return f"{self.winner} +Inf% (unbounded)"
        if self.kind == APPROXIMATELY_EQUAL:
            return "≈ 0.0%"
        return f"{self.winner} better by {abs(self.pct):,.1f}%"


def pct_diff(base: float, cand: float) -> float:
    """Relative change of *cand* against *base*, in percent.

    Raises:
        ZeroDivisionError: If *base* is 0; callers screen that case.
    """
    return (cand - base) / base * 100


def classify_difference(
    base: float,
    cand: float,
    *,
    baseline_name: str,
    candidate_name: str,
) -> Difference:
    """Classify *cand* against *base* where smaller values are better.

    - both ~0: not applicable
    - base ~0, cand > 0: unbounded, attributed to the candidate
    - ``|pct| < EQUAL_THRESHOLD_PCT``: approximately equal
    - pct < 0: candidate better, shown as ``|pct|``
    - pct > 0: baseline better
    """
    if abs(base) < EPSILON and abs(cand) < EPSILON:
        return Difference(kind=NOT_APPLICABLE, pct=float("nan"))
    if abs(base) < EPSILON:
        return Difference(kind=UNBOUNDED, pct=float("inf"), winner=candidate_name)

    pct = pct_diff(base, cand)
    if abs(pct) < EQUAL_THRESHOLD_PCT:
        return Difference(kind=APPROXIMATELY_EQUAL, pct=pct)
    if pct < 0:
        return Difference(kind=CANDIDATE_BETTER, pct=pct, winner=candidate_name)
    return Difference(kind=BASELINE_BETTER, pct=pct, winner=baseline_name)


# ---------------------------------------------------------------------------
# Comparison report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComparisonStep:
    """One step paired across both systems; a missing side is None."""

    category: str
    name: str
    baseline: AggregatedStep | None
    candidate: AggregatedStep | None
    time_diff: Difference
    alloc_diff: Difference

    @property
    def baseline_duration_s(self) -> float:
        return self.baseline.avg_duration_s if self.baseline else 0.0

    @property
    def candidate_duration_s(self) -> float:
        return self.candidate.avg_duration_s if self.candidate else 0.0

    @property
    def baseline_bytes(self) -> float:
        return self.baseline.avg_bytes if self.baseline else 0.0

    @property
    def candidate_bytes(self) -> float:
        return self.candidate.avg_bytes if self.candidate else 0.0


@dataclass
class CategoryComparison:
    category: str
    steps: list[ComparisonStep] = field(default_factory=list)


@dataclass
class ComparisonReport:
    """Complete comparison between a baseline and a candidate system."""

    baseline_name: str
    candidate_name: str
    categories: list[CategoryComparison] = field(default_factory=list)

    @property
    def steps(self) -> list[ComparisonStep]:
        return [step for c in self.categories for step in c.steps]

    def _count_paired(self, kind: str) -> int:
        # A step measured by only one system is not a win for either.
        return sum(
            1
            for s in self.steps
            if s.baseline is not None and s.candidate is not None and s.time_diff.kind == kind
        )

    @property
    def candidate_wins(self) -> int:
        """Steps both systems ran where the candidate was faster."""
        return self._count_paired(CANDIDATE_BETTER)

    @property
    def baseline_wins(self) -> int:
        """Steps both systems ran where the baseline was faster."""
        return self._count_paired(BASELINE_BETTER)

    @property
    def ties(self) -> int:
        return self._count_paired(APPROXIMATELY_EQUAL)


def compare(baseline: BenchmarkSummary, candidate: BenchmarkSummary) -> ComparisonReport:
    """Pair two systems' summaries step by step.

    Categories and step names are the union of both sides, each sorted
    ascending.  A step missing on one side compares against 0 for that
    side and keeps None as its aggregate.

    Args:
        baseline: Reference system; relative differences use it as base.
        candidate: System being compared against the baseline.

    Returns:
        ComparisonReport; empty if both summaries are empty.
    """
    report = ComparisonReport(baseline_name=baseline.name, candidate_name=candidate.name)
    names = {"baseline_name": baseline.name, "candidate_name": candidate.name}

    for category in sorted(set(baseline.category_names) | set(candidate.category_names)):
        base_cat = baseline.category(category)
        cand_cat = candidate.category(category)
        step_names: set[str] = set()
        if base_cat is not None:
            step_names.update(base_cat.step_names)
        if cand_cat is not None:
            step_names.update(cand_cat.step_names)

        cat_cmp = CategoryComparison(category=category)
        for name in sorted(step_names):
            base_step = baseline.get(category, name)
            cand_step = candidate.get(category, name)
            if base_step is None or cand_step is None:
                log.debug(
                    "Step %s / %s only measured for %s",
                    category,
                    name,
                    baseline.name if cand_step is None else candidate.name,
                )
            # Durations compare in milliseconds, allocations in bytes.
            base_time = base_step.avg_duration_s * 1000 if base_step else 0.0
            cand_time = cand_step.avg_duration_s * 1000 if cand_step else 0.0
            base_bytes = base_step.avg_bytes if base_step else 0.0
            cand_bytes = cand_step.avg_bytes if cand_step else 0.0
            cat_cmp.steps.append(
                ComparisonStep(
                    category=category,
                    name=name,
                    baseline=base_step,
                    candidate=cand_step,
                    time_diff=classify_difference(base_time, cand_time, **names),
                    alloc_diff=classify_difference(base_bytes, cand_bytes, **names),
                )
            )
        report.categories.append(cat_cmp)

    return report
