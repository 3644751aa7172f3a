"""Logging setup for benchduel.

Configures a console handler on stderr and an optional file handler that
always logs at DEBUG level.  Worker processes rely on the console handler
writing to stderr: their stdout carries nothing but protocol lines.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "benchduel"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    worker: str | None = None,
) -> logging.Logger:
    """Configure and return the root benchduel logger.

    Sets up a console handler whose level is controlled by *verbose*/*quiet*,
    and an optional file handler that always logs at DEBUG.

    Args:
        verbose: If True, set console log level to DEBUG.
        quiet: If True, set console log level to WARNING. Ignored if *verbose* is True.
        log_file: If provided, add a file handler at DEBUG level to this path.
        worker: Name of the system a worker process runs. Each line is tagged
            with it so the master can tell whose stderr it is reading.

    Returns:
        The configured root logger for benchduel.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Remove any existing handlers to allow reconfiguration.
    logger.handlers.clear()

    # Console handler (stderr).
    console = logging.StreamHandler()
    if verbose:
        console.setLevel(logging.DEBUG)
    elif quiet:
        console.setLevel(logging.WARNING)
    else:
        console.setLevel(logging.INFO)
    console_format = _CONSOLE_FORMAT
    file_format = _DEFAULT_FORMAT
    if worker is not None:
        tag = "[worker " + worker.replace("%", "%%") + "] "
        console_format = console_format.replace("%(message)s", tag + "%(message)s")
        file_format = file_format.replace("%(message)s", tag + "%(message)s")
    console.setFormatter(logging.Formatter(console_format))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(file_format))
        logger.addHandler(fh)

    return logger
