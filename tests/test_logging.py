"""Tests for benchduel.logging."""

from __future__ import annotations

import logging
import tempfile
import unittest
from pathlib import Path

from benchduel.logging import setup_logging


class TestSetupLogging(unittest.TestCase):
    def tearDown(self) -> None:
        logger = logging.getLogger("benchduel")
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def test_console_levels(self) -> None:
        self.assertEqual(setup_logging().handlers[0].level, logging.INFO)
        self.assertEqual(setup_logging(verbose=True).handlers[0].level, logging.DEBUG)
        self.assertEqual(setup_logging(quiet=True).handlers[0].level, logging.WARNING)
        self.assertEqual(
            setup_logging(verbose=True, quiet=True).handlers[0].level, logging.DEBUG
        )

    def test_reconfigure_replaces_handlers(self) -> None:
        setup_logging()
        logger = setup_logging()
        self.assertEqual(len(logger.handlers), 1)

    def test_file_handler_logs_debug(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "bench.log"
            logger = setup_logging(quiet=True, log_file=path)
            logger.debug("detail for the file")
            for handler in logger.handlers:
                handler.flush()
            self.assertIn("detail for the file", path.read_text(encoding="utf-8"))
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

    def test_worker_lines_tagged_with_system(self) -> None:
        logger = setup_logging(worker="sqlite")
        record = logging.LogRecord(
            "benchduel", logging.WARNING, __file__, 1, "slow disk", None, None
        )
        line = logger.handlers[0].format(record)
        self.assertEqual(line, "WARNING  [worker sqlite] slow disk")

    def test_worker_name_with_percent_sign(self) -> None:
        logger = setup_logging(worker="100%")
        record = logging.LogRecord("benchduel", logging.ERROR, __file__, 1, "boom", None, None)
        self.assertIn("[worker 100%] boom", logger.handlers[0].format(record))

    def test_master_lines_untagged(self) -> None:
        logger = setup_logging()
        record = logging.LogRecord("benchduel", logging.INFO, __file__, 1, "hello", None, None)
        self.assertEqual(logger.handlers[0].format(record), "INFO     hello")


if __name__ == "__main__":
    unittest.main()
