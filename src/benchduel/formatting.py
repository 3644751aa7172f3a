"""Shared text formatting helpers for benchduel.

Provides the fixed-width table renderer used by every report, plus
formatters for durations, byte counts and percentages.
"""

from __future__ import annotations

import math

NO_DATA_MESSAGE = "No data available for this section."

_BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_time(seconds: float) -> str:
    """Format a duration with adaptive units.

    Examples: ``'850.00 µs'``, ``'12.34 ms'``, ``'1.50 s'``.
    Returns ``'N/A'`` for NaN.
    """
    if math.isnan(seconds):
        return "N/A"
    ms = seconds * 1000
    if ms < 1:
        return f"{seconds * 1_000_000:.2f} µs"
    if ms < 1000:
        return f"{ms:.2f} ms"
    return f"{seconds:.2f} s"


def format_bytes(count: float) -> str:
    """Format a byte count using 1024-based units.

    Examples: ``'0 B'``, ``'512.00 B'``, ``'1.50 KB'``, ``'3.00 MB'``.
    """
    if count == 0:
        return "0 B"
    order = int(math.floor(math.log(abs(count), 1024)))
    order = max(0, min(order, len(_BYTE_UNITS) - 1))
    value = count / 1024**order
    return f"{value:.2f} {_BYTE_UNITS[order]}"


def format_duration(seconds: float) -> str:
    """Format seconds as human-readable duration.

    Examples: ``'8s'``, ``'1m 23s'``, ``'1h 12m 34s'``. Always whole seconds
    (truncated, not rounded).
    """
    total = int(seconds)
    if total >= 3600:
        h = total // 3600
        m = (total % 3600) // 60
        s = total % 60
        return f"{h}h {m:2d}m {s:2d}s"
    if total >= 60:
        m = total // 60
        s = total % 60
        return f"{m}m {s:2d}s"
    return f"{total}s"


def format_percentage(value: float, precision: int = 1) -> str:
    """Format a share already expressed in percent: ``'44.2'``."""
    if math.isnan(value):
        return "N/A"
    return f"{value:.{precision}f}"


def format_banner(title: str, *, char: str = "=", width: int = 60) -> str:
    """Format a three-line banner: rule, title, rule."""
    rule = char * max(width, len(title))
    return "\n".join([rule, title, rule])


def render_table(
    title: str,
    headers: list[str],
    rows: list[list[str]],
) -> str:
    """Render *rows* as a bordered, fixed-width text table.

    Each column is as wide as its header or its widest cell, whichever is
    larger, plus one space of padding on each side.  The first column is
    left-aligned and every other column right-aligned, so header,
    separator, data and closing lines all come out the same length::

        Category: Ops
        -------------
        | Name  | Count |
        |-------|-------|
        | alpha |     1 |
        | beta  |    12 |
        -----------------

    When *rows* is empty the table body is replaced by a single
    ``NO_DATA_MESSAGE`` line.

    Args:
        title: Line printed above the table, underlined with dashes.
        headers: Column header strings.
        rows: Data rows; each must have exactly ``len(headers)`` cells.

    Returns:
        The rendered table, starting with a blank line.

    Raises:
        ValueError: If a row's length differs from the header length.
    """
    lines: list[str] = ["", title, "-" * len(title)]

    if not rows:
        lines.append(NO_DATA_MESSAGE)
        return "\n".join(lines)

    ncols = len(headers)
    for index, row in enumerate(rows):
        if len(row) != ncols:
            raise ValueError(
                f"Row {index} has {len(row)} cells, expected {ncols} to match the headers"
            )

    widths = [len(h) for h in headers]
    for row in rows:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(cell))

    def _format_row(cells: list[str]) -> str:
        formatted = [
            cell.ljust(widths[ci]) if ci == 0 else cell.rjust(widths[ci])
            for ci, cell in enumerate(cells)
        ]
        return "| " + " | ".join(formatted) + " |"

    separator = "|" + "|".join("-" * (w + 2) for w in widths) + "|"

    lines.append(_format_row(headers))
    lines.append(separator)
    for row in rows:
        lines.append(_format_row(row))
    lines.append(separator.replace("|", "-"))

    return "\n".join(lines)
