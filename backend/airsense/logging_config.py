"""Logging configuration for AirSense."""

import logging
from datetime import datetime
from pathlib import Path

from airsense.config import LOG_DIR, LOG_LEVEL

# paho callbacks run on the MQTT network thread, so the thread is part of the format
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)-12s | %(name)s | %(message)s"

NOISY_LOGGERS = ("httpx", "uvicorn.access", "sqlalchemy.engine", "aiosqlite", "paho")


# Pass-all filter that tags the handlers installed here
_marker_filter = logging.Filter()


def _default_log_dir() -> Path:
    if LOG_DIR:
        return Path(LOG_DIR)
    return Path(__file__).parent.parent.parent / "logs"


def setup_logging(log_dir: Path | None = None, level: str = LOG_LEVEL) -> Path:
    """Attach a dated file handler and a console handler to the root logger.

    Safe to call more than once: handlers from an earlier call are removed
    first. Returns the log file path.
    """
    log_dir = log_dir or _default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"airsense-{datetime.now().strftime('%Y-%m-%d')}.log"

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")

    file_handler = logging.FileHandler(log_file)
    console_handler = logging.StreamHandler()
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        handler.setLevel(logging.INFO)
        handler.addFilter(_marker_filter)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if _marker_filter in existing.filters:
            root_logger.removeHandler(existing)
            existing.close()

    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("airsense").setLevel(logging.INFO)

    logging.info("Logging initialized - file: %s", log_file)
    return log_file
