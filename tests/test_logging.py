"""Tests for benchmeter.logging — logger configuration."""

from __future__ import annotations

import io
import logging
import tempfile
import unittest
from pathlib import Path

from benchmeter.logging import console_level, get_logger, setup_logging


def _reset() -> None:
    logger = logging.getLogger("benchmeter")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class TestConsoleLevel(unittest.TestCase):
    def test_levels(self) -> None:
        self.assertEqual(console_level(), logging.INFO)
        self.assertEqual(console_level(verbose=True), logging.DEBUG)
        self.assertEqual(console_level(quiet=True), logging.WARNING)

    def test_verbose_wins_over_quiet(self) -> None:
        self.assertEqual(console_level(verbose=True, quiet=True), logging.DEBUG)


class TestSetupLogging(unittest.TestCase):
    def tearDown(self) -> None:
        _reset()

    def test_console_stream(self) -> None:
        stream = io.StringIO()
        logger = setup_logging(stream=stream)
        self.assertEqual(logger.name, "benchmeter")
        get_logger("test").info("hello")
        get_logger("test").debug("hidden")
        self.assertEqual(stream.getvalue(), "INFO: hello\n")

    def test_quiet_hides_info(self) -> None:
        stream = io.StringIO()
        setup_logging(quiet=True, stream=stream)
        get_logger("test").info("hidden")
        get_logger("test").warning("shown")
        self.assertEqual(stream.getvalue(), "WARNING: shown\n")

    def test_repeated_calls_replace_handlers(self) -> None:
        first = io.StringIO()
        second = io.StringIO()
        setup_logging(stream=first)
        logger = setup_logging(stream=second)
        self.assertEqual(len(logger.handlers), 1)
        get_logger("test").info("once")
        self.assertEqual(first.getvalue(), "")
        self.assertIn("once", second.getvalue())

    def test_log_file_gets_debug(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "logs" / "bench.log"
            setup_logging(quiet=True, log_file=path, stream=io.StringIO())
            get_logger("test").debug("detail line")
            _reset()
            text = path.read_text(encoding="utf-8")
        self.assertIn("[DEBUG] benchmeter.test: detail line", text)


class TestGetLogger(unittest.TestCase):
    def test_child_name(self) -> None:
        self.assertEqual(get_logger("cli").name, "benchmeter.cli")
        self.assertIs(get_logger("cli").parent, logging.getLogger("benchmeter"))


if __name__ == "__main__":
    unittest.main()
