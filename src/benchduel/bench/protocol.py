"""Line protocol between worker and master.

A worker writes newline-delimited UTF-8 lines on stdout::

    SLAVE_START: Performance test sqlite iterations 3
    SLAVE_SUCCESS: 11 steps completed in 812.40ms
    SLAVE_STEP:1.General - Inserting 10000 users - 41.27ms - 5284613B
    SLAVE_ERROR: updated 0 users, expected at least one

Only ``SLAVE_STEP:`` lines carry measurements.  Decoding is fail-open:
anything that is not a step line is ignored, and a step line that does
not parse is dropped, so stray diagnostic output on stdout never aborts
a batch.  Fields are not escaped; labels containing the delimiter are
rejected when encoding.
"""

from __future__ import annotations

import logging
import math

from benchduel.bench.results import MeasurementRecord

log = logging.getLogger("benchduel")

START_PREFIX = "SLAVE_START:"
STEP_PREFIX = "SLAVE_STEP:"
SUCCESS_PREFIX = "SLAVE_SUCCESS:"
ERROR_PREFIX = "SLAVE_ERROR:"

FIELD_DELIMITER = " - "
DURATION_SUFFIX = "ms"
BYTES_SUFFIX = "B"


class ProtocolError(ValueError):
    """A value cannot be represented on the wire."""


# ---------------------------------------------------------------------------
# Label checks
# ---------------------------------------------------------------------------


def label_problem(label: str) -> str | None:
    """Return why *label* cannot travel in a step line, or None if it can."""
    if not label:
        return "label is empty"
    if FIELD_DELIMITER in label:
        return f"label contains the field delimiter {FIELD_DELIMITER!r}"
    # Joined with the delimiter that follows, a trailing " -" reads as " - ".
    if label.endswith(FIELD_DELIMITER.rstrip()):
        return f"label ends with {FIELD_DELIMITER.rstrip()!r}"
    if "\n" in label or "\r" in label:
        return "label contains a line break"
    return None


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_step(record: MeasurementRecord) -> str:
    """Encode *record* as one ``SLAVE_STEP:`` line (without newline).

    Raises:
        ProtocolError: If the category or name cannot be carried safely.
    """
    for what, label in (("category", record.category), ("name", record.name)):
        problem = label_problem(label)
        if problem is not None:
            raise ProtocolError(f"Cannot encode step {what} {label!r}: {problem}")

    return (
        f"{STEP_PREFIX}{record.category}{FIELD_DELIMITER}{record.name}"
        f"{FIELD_DELIMITER}{record.duration_ms:.2f}{DURATION_SUFFIX}"
        f"{FIELD_DELIMITER}{record.allocated_bytes}{BYTES_SUFFIX}"
    )


def format_start_line(system: str, iterations: int) -> str:
    return f"{START_PREFIX} Performance test {system} iterations {iterations}"


def format_success_line(step_count: int, elapsed_s: float) -> str:
    return f"{SUCCESS_PREFIX} {step_count} steps completed in {elapsed_s * 1000:.2f}ms"


def format_error_line(message: str) -> str:
    # Keep the error on one line so the master's line split still works.
    flat = " | ".join(part for part in message.splitlines() if part.strip())
    return f"{ERROR_PREFIX} {flat}"


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _strip_suffix(text: str, suffix: str) -> str:
    text = text.strip()
    if text.endswith(suffix):
        return text[: -len(suffix)]
    return text


def decode_line(line: str) -> MeasurementRecord | None:
    """Decode one protocol line.

    Returns None for lines that are not step lines and for step lines
    whose fields cannot be parsed.  Never raises.
    """
    line = line.rstrip("\r\n")
    if not line.startswith(STEP_PREFIX):
        return None

    parts = line[len(STEP_PREFIX) :].split(FIELD_DELIMITER)
    if len(parts) < 4:
        log.debug("Dropping step line with %d fields: %r", len(parts), line)
        return None

    category, name, raw_ms, raw_bytes = parts[:4]
    try:
        duration_ms = float(_strip_suffix(raw_ms, DURATION_SUFFIX))
        allocated = int(_strip_suffix(raw_bytes, BYTES_SUFFIX))
    except ValueError:
        log.debug("Dropping step line with unparseable numbers: %r", line)
        return None

    if not math.isfinite(duration_ms) or duration_ms < 0 or allocated < 0:
        log.debug("Dropping step line with out-of-range numbers: %r", line)
        return None

    return MeasurementRecord(
        category=category,
        name=name,
        duration_s=duration_ms / 1000,
        allocated_bytes=allocated,
    )


def decode_output(text: str) -> list[MeasurementRecord]:
    """Decode every step line in a worker's captured stdout, in order."""
    records: list[MeasurementRecord] = []
    for line in text.splitlines():
        record = decode_line(line)
        if record is not None:
            records.append(record)
    return records


def is_error_line(line: str) -> bool:
    return line.startswith(ERROR_PREFIX)


def extract_errors(text: str) -> list[str]:
    """Return the messages of all ``SLAVE_ERROR:`` lines in *text*."""
    return [
        line[len(ERROR_PREFIX) :].strip() for line in text.splitlines() if is_error_line(line)
    ]
