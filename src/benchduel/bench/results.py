"""Benchmark result data structures.

Hierarchy::

    RunResult (one worker subprocess invocation for one system)
      → steps: list[MeasurementRecord]

A ``MeasurementRecord`` is produced exactly once per timed operation
inside a worker and crosses the process boundary as one protocol line
(see ``benchduel.bench.protocol``).  Everything here is process-local
and short-lived; nothing is persisted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Step-level measurement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MeasurementRecord:
    """One timed operation: how long it took and how much it allocated."""

    category: str
    name: str
    duration_s: float
    allocated_bytes: int  # 0 when allocation tracking is unavailable

    def __post_init__(self) -> None:
        if math.isnan(self.duration_s) or self.duration_s < 0:
            raise ValueError(f"duration_s must be >= 0 (got {self.duration_s})")
        if self.allocated_bytes < 0:
            raise ValueError(f"allocated_bytes must be >= 0 (got {self.allocated_bytes})")

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        return self.duration_s * 1000

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "category": self.category,
            "name": self.name,
            "duration_s": round(self.duration_s, 6),
            "allocated_bytes": self.allocated_bytes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MeasurementRecord:
        """Deserialize from a dict, ignoring unknown fields."""
        return cls(
            category=data["category"],
            name=data["name"],
            duration_s=float(data["duration_s"]),
            allocated_bytes=int(data.get("allocated_bytes", 0)),
        )


# ---------------------------------------------------------------------------
# Run-level result (one system, one worker invocation)
# ---------------------------------------------------------------------------


@dataclass
class RunResult:
    """Everything the master learned from one worker subprocess."""

    system_name: str
    steps: list[MeasurementRecord] = field(default_factory=list)
    success: bool = False
    # Whole-process timings, measured by the master.
    wall_time_s: float = 0.0
    user_time_s: float = 0.0
    sys_time_s: float = 0.0

    @property
    def total_duration_s(self) -> float:
        """Sum of all recorded step durations."""
        return sum(step.duration_s for step in self.steps)

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def average_step_ms(self) -> float:
        """Mean step duration in milliseconds, 0.0 without steps."""
        if not self.steps:
            return 0.0
        return self.total_duration_s * 1000 / len(self.steps)
