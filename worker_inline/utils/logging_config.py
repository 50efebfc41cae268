"""
worker-inline: Logging Configuration

Console logging split across streams: progress and summaries go to stdout,
warnings and errors go to stderr. Optional daily file log.

Usage:
    from worker_inline.utils.logging_config import setup_logging
    setup_logging()
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

from worker_inline.utils.constants import LOG_DATE_FORMAT, LOG_FORMAT, LOG_LEVEL, LOGS_DIR


class _BelowWarningFilter(logging.Filter):
    """Pass only records below WARNING."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.WARNING


def setup_logging(
    level: str = LOG_LEVEL,
    log_dir: Path | None = None,
    enable_file_logging: bool = False,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory for log files. Defaults to project logs/ directory.
        enable_file_logging: Whether to also write logs to a file.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(numeric_level)
    stdout_handler.addFilter(_BelowWarningFilter())
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(max(numeric_level, logging.WARNING))
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = LOGS_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        app_log_path = log_dir / f"transform_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(app_log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    root_logger.debug("Logging initialized — level=%s, file_logging=%s", level, enable_file_logging)


if __name__ == "__main__":
    setup_logging(level="DEBUG")
    logger = logging.getLogger("test")
    logger.debug("Debug message")
    logger.info("Info message")
    logger.warning("Warning message")
    print("Logging setup complete.")
