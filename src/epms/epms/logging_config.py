"""Logging configuration.

``setup_logging`` is called once from ``create_app``; modules only ever call
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"

# Third-party loggers that are too chatty at INFO.
MODULE_LOG_LEVELS = {
    "werkzeug": "WARNING",
    "mysql.connector": "WARNING",
}


def setup_logging(
    level: str = "INFO",
    *,
    log_format: str = "detailed",
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger with a console handler and an optional file handler.

    Args:
        level: Threshold for the console handler (DEBUG, INFO, WARNING, ...).
        log_format: ``simple`` or ``detailed``.
        log_file: When set, everything from DEBUG up is also written there.
    """
    level = (level or "INFO").upper()
    format_str = SIMPLE_FORMAT if log_format == "simple" else DETAILED_FORMAT
    formatter = logging.Formatter(format_str, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info("Logging configured: level=%s, format=%s, file=%s", level, log_format, log_file or "-")
