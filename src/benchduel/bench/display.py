"""Terminal display formatting for benchmark results.

Produces the per-system detail tables and the side-by-side comparison.
All tables go through ``benchduel.formatting.render_table``.
"""

from __future__ import annotations

from benchduel.bench.compare import ComparisonReport, ComparisonStep
from benchduel.bench.config import BenchConfig
from benchduel.bench.results import RunResult
from benchduel.bench.stats import AggregatedStep, BenchmarkSummary, CategorySummary
from benchduel.formatting import (
    format_banner,
    format_bytes,
    format_duration,
    format_percentage,
    format_time,
    render_table,
)

SUMMARY_HEADERS = [
    "Step Name",
    "N",
    "Time Avg",
    "Time Min",
    "Time Max",
    "% Time",
    "Alloc Avg",
    "Alloc Min",
    "Alloc Max",
]


# ---------------------------------------------------------------------------
# Run banner
# ---------------------------------------------------------------------------


def format_run_banner(config: BenchConfig) -> str:
    """Format the header printed before any worker starts."""
    title = config.name or "benchduel"
    lines = [format_banner(title.upper())]
    if config.description:
        lines.append(config.description)
    for role, system in (("Baseline", config.baseline), ("Candidate", config.candidate)):
        desc = f" ({system.description})" if system.description else ""
        lines.append(f"{role + ':':<12}{system.name}{desc}")
    lines.append(f"{'Iterations:':<12}{config.iterations}")
    lines.append(f"{'Users:':<12}{config.user_count:,}")
    lines.append(f"{'Seed:':<12}{config.seed}")
    if config.timeout:
        lines.append(f"{'Timeout:':<12}{format_duration(config.timeout)} per system")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Single system display
# ---------------------------------------------------------------------------


def format_system_header(name: str, result: RunResult) -> str:
    """Format the banner that opens one system's detail section."""
    lines = ["", format_banner(f"{name.upper()} DETAILED BENCHMARK RESULTS")]
    lines.append(
        f"Steps: {result.step_count}  "
        f"Wall: {format_time(result.wall_time_s)}  "
        f"CPU: {format_time(result.user_time_s + result.sys_time_s)} "
        f"(user {format_time(result.user_time_s)}, sys {format_time(result.sys_time_s)})"
    )
    return "\n".join(lines)


def _summary_row(step: AggregatedStep) -> list[str]:
    return [
        step.name,
        str(step.count),
        format_time(step.avg_duration_s),
        format_time(step.min_duration_s),
        format_time(step.max_duration_s),
        format_percentage(step.time_share_pct),
        format_bytes(step.avg_bytes),
        format_bytes(step.min_bytes),
        format_bytes(step.max_bytes),
    ]


def format_category(category: CategorySummary) -> str:
    rows = [_summary_row(step) for step in category.steps]
    return render_table(f"Category: {category.category}", SUMMARY_HEADERS, rows)


def format_summary(summary: BenchmarkSummary) -> str:
    """Format one system's aggregated steps, one table per category.

    Args:
        summary: Output of ``stats.aggregate``.

    Returns:
        The tables joined by newlines, or a one-line notice when the
        summary holds no steps.
    """
    if summary.is_empty:
        return f"Benchmark '{summary.name}' contains no steps to display."
    return "\n".join(format_category(category) for category in summary.categories)


# ---------------------------------------------------------------------------
# Comparison display
# ---------------------------------------------------------------------------


def comparison_headers(baseline: str, candidate: str) -> list[str]:
    return [
        "Step Name",
        f"{baseline} Time",
        f"{candidate} Time",
        "Difference",
        f"{baseline} Alloc",
        f"{candidate} Alloc",
        "Difference",
    ]


def _comparison_row(step: ComparisonStep) -> list[str]:
    base, cand = step.baseline, step.candidate
    return [
        step.name,
        format_time(base.avg_duration_s) if base else "N/A",
        format_time(cand.avg_duration_s) if cand else "N/A",
        step.time_diff.label,
        format_bytes(base.avg_bytes) if base else "N/A",
        format_bytes(cand.avg_bytes) if cand else "N/A",
        step.alloc_diff.label,
    ]


def format_comparison(report: ComparisonReport) -> str:
    """Format the side-by-side comparison of two systems.

    A step measured on only one side shows ``N/A`` for the other.  The
    footer counts, by duration, how often each system came out ahead.
    """
    headers = comparison_headers(report.baseline_name, report.candidate_name)
    lines = ["", format_banner("COMPARISON OF RESULTS")]

    if not report.categories:
        lines.append(render_table("All steps", headers, []))
        return "\n".join(lines)

    for category in report.categories:
        rows = [_comparison_row(step) for step in category.steps]
        lines.append(render_table(f"Category: {category.category}", headers, rows))

    lines.append("")
    lines.append(
        f"Faster steps: {report.candidate_name} {report.candidate_wins}, "
        f"{report.baseline_name} {report.baseline_wins}, ties {report.ties} "
        f"(of {len(report.steps)})"
    )
    return "\n".join(lines)
