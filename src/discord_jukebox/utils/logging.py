"""Colored logging formatter for console output."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Literal


class ColoredFormatter(logging.Formatter):
    """Logging formatter that colors the level name and dims the logger name.

    With ``use_color="auto"`` colors are disabled when the ``NO_COLOR``
    environment variable is set or when stdout is not a TTY. ``True`` and
    ``False`` force the choice; ``NO_COLOR`` still wins over ``True``.
    """

    COLORS: dict[int, str] = {
        logging.DEBUG: "\033[36m",     # cyan
        logging.INFO: "\033[32m",      # green
        logging.WARNING: "\033[33m",   # yellow
        logging.ERROR: "\033[31m",     # red
        logging.CRITICAL: "\033[1;31m",  # bold red
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: Literal["%", "{", "$"] = "%",
        use_color: bool | Literal["auto"] = "auto",
        **kwargs: Any,
    ) -> None:
        super().__init__(fmt, datefmt, style, **kwargs)
        self.use_color = use_color

    def _use_color(self) -> bool:
        if os.environ.get("NO_COLOR") is not None:
            return False
        if self.use_color != "auto":
            return bool(self.use_color)
        return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self._use_color():
            return super().format(record)

        record = logging.makeLogRecord(record.__dict__)
        level_color = self.COLORS.get(record.levelno, "")
        record.levelname = f"{level_color}{record.levelname}{self.RESET}"
        record.name = f"{self.DIM}{record.name}{self.RESET}"
        return super().format(record)
