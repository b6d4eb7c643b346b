"""Logging utilities."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from textual.logging import TextualHandler

FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", log_file: Path | None = None, dashboard: bool = False) -> None:
    """
    Configure root logging.

    Records go to stderr in plain mode. While the dashboard owns the
    terminal they are routed through Textual instead, so nothing is drawn
    over the screen. An optional rotating log file is added in both modes.
    """
    formatter = logging.Formatter(FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = []

    console_handler = TextualHandler() if dashboard else logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        rotating_handler = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=5)
        rotating_handler.setFormatter(formatter)
        handlers.append(rotating_handler)

    logging.basicConfig(level=level.upper(), handlers=handlers, force=True)
    logging.getLogger(__name__).debug("Logging configured at %s", level.upper())
