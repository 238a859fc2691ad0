"""Logging setup for benchmeter.

Library modules log through the ``benchmeter`` logger and never attach
handlers; the CLI calls :func:`setup_logging` once per invocation.
Console messages go to stderr so reports written to stdout (JSON in
particular) stay machine-readable.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

_LOGGER_NAME = "benchmeter"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)s: %(message)s"


def console_level(*, verbose: bool = False, quiet: bool = False) -> int:
    """Console threshold for the ``-v``/``-q`` flags; *verbose* wins."""
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach benchmeter's handlers and return its logger.

    Handlers from an earlier call are closed and replaced.

    Args:
        verbose: Show DEBUG messages on the console.
        quiet: Only show warnings and errors on the console.
        log_file: Also write every message, DEBUG included, to this
            file. Parent directories are created.
        stream: Console stream; ``sys.stderr`` when omitted.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.setLevel(logging.DEBUG)

    console = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console.setLevel(console_level(verbose=verbose, quiet=quiet))
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger ``benchmeter.<name>``; propagates to the configured handlers."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
