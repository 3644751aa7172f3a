"""Aggregation of raw step measurements into per-step summaries.

Records are grouped by category, then by step name.  Each group yields
an ``AggregatedStep`` with count, mean/min/max duration and allocation,
summed duration, and the group's share of its category's total time.

Ordering is deterministic: categories sort ascending; steps keep the
order in which their name first appears in the input, which for a
worker's output is the order the workload ran them.

Only min/avg/max/sum are computed; this is not a general statistics
module.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field, replace
from typing import Iterable

from benchduel.bench.results import MeasurementRecord, RunResult


@dataclass(frozen=True)
class AggregatedStep:
    """Summary of every measurement sharing one (category, name)."""

    category: str
    name: str
    count: int
    avg_duration_s: float
    min_duration_s: float
    max_duration_s: float
    avg_bytes: float
    min_bytes: int
    max_bytes: int
    total_duration_s: float
    time_share_pct: float = 0.0  # of the category's total duration


@dataclass
class CategorySummary:
    """All aggregated steps of one category."""

    category: str
    steps: list[AggregatedStep] = field(default_factory=list)
    total_duration_s: float = 0.0

    def get(self, name: str) -> AggregatedStep | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]


@dataclass
class BenchmarkSummary:
    """Aggregated view of one system's measurements."""

    name: str
    categories: list[CategorySummary] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.categories

    @property
    def category_names(self) -> list[str]:
        return [c.category for c in self.categories]

    @property
    def step_count(self) -> int:
        """Number of distinct (category, name) groups."""
        return sum(len(c.steps) for c in self.categories)

    @property
    def record_count(self) -> int:
        """Number of measurements that went into the summary."""
        return sum(step.count for c in self.categories for step in c.steps)

    def category(self, name: str) -> CategorySummary | None:
        for summary in self.categories:
            if summary.category == name:
                return summary
        return None

    def get(self, category: str, name: str) -> AggregatedStep | None:
        """Look up one aggregated step; None if either key is unknown."""
        summary = self.category(category)
        if summary is None:
            return None
        return summary.get(name)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate_group(records: list[MeasurementRecord]) -> AggregatedStep:
    """Fold a non-empty group of same-(category, name) records.

    Means are taken over float seconds, so long runs cannot overflow.
    ``time_share_pct`` is left at 0; ``aggregate`` fills it in.

    Raises:
        ValueError: If *records* is empty.
    """
    if not records:
        raise ValueError("Cannot aggregate an empty group")

    durations = [r.duration_s for r in records]
    allocations = [r.allocated_bytes for r in records]
    first = records[0]

    return AggregatedStep(
        category=first.category,
        name=first.name,
        count=len(records),
        avg_duration_s=statistics.fmean(durations),
        min_duration_s=min(durations),
        max_duration_s=max(durations),
        avg_bytes=statistics.fmean(allocations),
        min_bytes=min(allocations),
        max_bytes=max(allocations),
        total_duration_s=sum(durations),
    )


def time_share(part: float, total: float) -> float:
    """``part / total * 100``, or 0.0 when *total* is 0."""
    if total <= 0:
        return 0.0
    return part / total * 100


def aggregate(records: Iterable[MeasurementRecord], name: str = "") -> BenchmarkSummary:
    """Group *records* by category and step name and summarize each group.

    An empty input gives an empty summary rather than an error.

    Args:
        records: Measurements for one system, merged across iterations.
        name: Label for the resulting summary (usually the system name).

    Returns:
        BenchmarkSummary with categories sorted ascending and steps in
        first-seen order.
    """
    # category -> step name -> records; dicts keep first-seen order.
    grouped: dict[str, dict[str, list[MeasurementRecord]]] = {}
    for record in records:
        grouped.setdefault(record.category, {}).setdefault(record.name, []).append(record)

    summary = BenchmarkSummary(name=name)
    for category in sorted(grouped):
        steps = [aggregate_group(group) for group in grouped[category].values()]
        grand_total = sum(step.total_duration_s for step in steps)
        with_share = [
            replace(step, time_share_pct=time_share(step.total_duration_s, grand_total))
            for step in steps
        ]
        summary.categories.append(
            CategorySummary(category=category, steps=with_share, total_duration_s=grand_total)
        )

    return summary


def merge_results(results: Iterable[RunResult]) -> list[MeasurementRecord]:
    """Concatenate the steps of several runs of the same system."""
    merged: list[MeasurementRecord] = []
    for result in results:
        merged.extend(result.steps)
    return merged
