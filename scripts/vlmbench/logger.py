"""Coloured logging configuration for the VLM benchmark harness.

This module provides the shared ``vlmbench`` logger with coloured console output,
so driver, backend and reporting messages read the same way during a run. The
level can be lowered with the ``VLMBENCH_LOG_LEVEL`` environment variable.
"""

from __future__ import annotations

import logging
import os
import re
from typing import ClassVar

# C0 control characters except tab, newline and carriage return
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class LogMessageFilter(logging.Filter):
    """Strip control characters that backends sometimes echo into generated text."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Clean the message and any cached traceback text in place.

        Returns:
            Always True, records are never dropped.
        """
        if isinstance(record.msg, str):
            record.msg = CONTROL_CHARS.sub("", record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                CONTROL_CHARS.sub("", arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        if record.exc_text:
            record.exc_text = CONTROL_CHARS.sub("", record.exc_text)
        return True


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps each line in the ANSI colour of its level."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[90m",  # Grey
        "INFO": "\033[92m",  # Green
        "WARNING": "\033[93m",  # Yellow
        "ERROR": "\033[91m",  # Red
        "CRITICAL": "\033[95m",  # Magenta
    }
    RESET: ClassVar[str] = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format the record and colour the whole line.

        Returns:
            The formatted, coloured log line.
        """
        formatted = super().format(record)
        colour = self.COLORS.get(record.levelname, "")
        return f"{colour}{formatted}{self.RESET}" if colour else formatted


def _resolve_level(name: str | None) -> int:
    """Map a level name from the environment to a logging level, defaulting to DEBUG."""
    level = logging.getLevelName((name or "DEBUG").upper())
    return level if isinstance(level, int) else logging.DEBUG


logger = logging.getLogger("vlmbench")
logger.setLevel(_resolve_level(os.getenv("VLMBENCH_LOG_LEVEL")))

console_handler = logging.StreamHandler()
console_handler.setLevel(logging.DEBUG)
console_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
console_handler.addFilter(LogMessageFilter())
logger.addHandler(console_handler)

# Prevent duplicate logs from root logger
logger.propagate = False
