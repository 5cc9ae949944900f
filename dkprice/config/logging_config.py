# dkprice/config/logging_config.py

"""Per-run logging for dkprice.

Every launch writes a dedicated ``logs/track_<timestamp>.log`` file that
collects all ``dkprice.*`` records at DEBUG level, including the thread
name: network interception callbacks fire on whichever thread issued the
host request, so the thread is part of every detailed record.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from dkprice.config.settings import Settings

ROOT_LOGGER_NAME = "dkprice"

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    log_dir: Path | None = None,
    console_level: int = logging.WARNING,
) -> Path:
    """Attach file and console handlers to the ``dkprice`` logger.

    Calling this again after handlers exist is a no-op apart from
    returning a fresh log path, so tests and the CLI can both call it.

    Returns:
        The :class:`~pathlib.Path` of this run's log file.
    """
    target_dir = log_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"track_{stamp}.log"

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger.debug("Run log opened at %s", log_file)

    return log_file
