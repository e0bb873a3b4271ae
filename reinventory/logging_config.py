import logging
import sys

LOG_LEVELS = {
    "none": None,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_LEVEL_COLORS = {
    logging.DEBUG: "\033[37m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"

FORMAT = "[%(asctime)s][%(name)s][%(levelname)s] %(message)s"
DATE_FORMAT = "[%Y-%m-%d][%H:%M:%S]"


class ColoredLevelFormatter(logging.Formatter):
    """Wraps the level name in ANSI colors."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno)
        if not color:
            return super().formatMessage(record)
        original = record.levelname
        record.levelname = f"{color}{original}{_RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = original


def setup_logging(
    level: str = "warn",
    colored: bool = False,
    log_file: str | None = None,
) -> logging.Logger:
    logger = logging.getLogger("reinventory")
    if logger.handlers:
        return logger  # already configured

    numeric_level = LOG_LEVELS[level]
    if numeric_level is None:
        # "none": swallow everything, including the last-resort stderr handler
        logger.addHandler(logging.NullHandler())
        logger.propagate = False
        logger.setLevel(logging.CRITICAL + 1)
        return logger

    logger.setLevel(numeric_level)
    handler = logging.StreamHandler(sys.stderr)
    formatter_cls = ColoredLevelFormatter if colored else logging.Formatter
    handler.setFormatter(formatter_cls(FORMAT, DATE_FORMAT))
    logger.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)
    return logger
