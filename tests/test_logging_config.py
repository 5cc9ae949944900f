# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import tempfile
import unittest
from pathlib import Path

from dkprice.config.logging_config import ROOT_LOGGER_NAME, setup_logging


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Start each test with a bare dkprice logger and temp dir."""
        self._tmp = tempfile.TemporaryDirectory()
        self.log_dir = Path(self._tmp.name) / "logs"
        self.root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self._drop_handlers()

    def tearDown(self) -> None:
        self._drop_handlers()
        self._tmp.cleanup()

    def _drop_handlers(self) -> None:
        for handler in list(self.root_logger.handlers):
            handler.close()
            self.root_logger.removeHandler(handler)

    def test_creates_log_file_in_given_dir(self) -> None:
        """The log file exists inside the requested directory."""
        log_path = setup_logging(log_dir=self.log_dir)
        self.assertTrue(log_path.exists())
        self.assertEqual(log_path.parent, self.log_dir)

    def test_log_file_naming_convention(self) -> None:
        """File name matches track_YYYYMMDD_HHMMSS.log."""
        log_path = setup_logging(log_dir=self.log_dir)
        self.assertRegex(log_path.name, r"^track_\d{8}_\d{6}\.log$")

    def test_file_handler_debug_console_warning(self) -> None:
        """File handler logs DEBUG, console handler WARNING."""
        setup_logging(log_dir=self.log_dir)
        file_handlers = [
            h for h in self.root_logger.handlers
            if isinstance(h, logging.FileHandler)
        ]
        stream_handlers = [
            h for h in self.root_logger.handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(len(stream_handlers), 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)
        self.assertEqual(stream_handlers[0].level, logging.WARNING)

    def test_console_level_is_configurable(self) -> None:
        """console_level overrides the default WARNING threshold."""
        setup_logging(log_dir=self.log_dir, console_level=logging.INFO)
        stream_levels = [
            h.level for h in self.root_logger.handlers
            if not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(stream_levels, [logging.INFO])

    def test_repeated_calls_no_duplicate_handlers(self) -> None:
        """Calling setup_logging twice does not duplicate handlers."""
        setup_logging(log_dir=self.log_dir)
        count_before = len(self.root_logger.handlers)
        setup_logging(log_dir=self.log_dir)
        self.assertEqual(len(self.root_logger.handlers), count_before)

    def test_child_records_reach_file(self) -> None:
        """Records from dkprice.* children land in the run log."""
        log_path = setup_logging(log_dir=self.log_dir)
        logging.getLogger("dkprice.pipeline").debug("probe-message")
        for handler in self.root_logger.handlers:
            handler.flush()
        self.assertIn(
            "probe-message", log_path.read_text(encoding="utf-8")
        )


if __name__ == "__main__":
    unittest.main()
