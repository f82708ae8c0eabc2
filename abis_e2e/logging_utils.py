from __future__ import annotations

import logging
from datetime import datetime, timezone

STEP = 25
logging.addLevelName(STEP, "STEP")

_LEVEL_ALIASES = {"WARNING": "WARN", "CRITICAL": "ERROR"}


class StepFormatter(logging.Formatter):
    """
    Renders ``[LEVEL] [timestamp] message`` lines.
    Timestamps are ISO-8601 in UTC with millisecond precision.
    """

    def format(self, record: logging.LogRecord) -> str:
        level = _LEVEL_ALIASES.get(record.levelname, record.levelname)
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        line = f"[{level}] [{stamp.isoformat(timespec='milliseconds')}] {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    logger = logging.getLogger("abis_e2e")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not any(isinstance(h.formatter, StepFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(StepFormatter())
        logger.addHandler(handler)
    return logger


def step(logger: logging.Logger, message: str, *args) -> None:
    logger.log(STEP, message, *args)
