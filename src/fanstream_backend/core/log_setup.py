# src/fanstream_backend/core/log_setup.py
import logging
import sys

from fanstream_backend.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"
DATE_FORMAT = "%H:%M:%S"

# third-party loggers that are noisy at DEBUG
QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "fastapi": logging.INFO,
    "redis": logging.WARNING,
    "aiohttp": logging.WARNING,
    "vlc": logging.WARNING,
}


class ColoredFormatter(logging.Formatter):
    """Colours only the level name; the rest of the line stays plain."""

    LEVEL_COLORS = {
        "DEBUG": "\x1b[38;5;244m",
        "INFO": "\x1b[36m",
        "WARNING": "\x1b[33m",
        "ERROR": "\x1b[31m",
        "CRITICAL": "\x1b[1;41m",
    }
    RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        copy = logging.makeLogRecord(record.__dict__)
        copy.levelname = f"{color}{record.levelname:<8}{self.RESET}"
        return super().format(copy)


def setup_logging(level: str = None) -> None:
    level_name = (level or settings.log_level or "INFO").upper()
    root_level = logging.getLevelName(level_name)
    if not isinstance(root_level, int):
        root_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    formatter_cls = ColoredFormatter if sys.stdout.isatty() else logging.Formatter
    handler.setFormatter(formatter_cls(LOG_FORMAT, datefmt=DATE_FORMAT))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(root_level)

    for name, lvl in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(lvl)
    logging.getLogger("fanstream_backend").setLevel(logging.DEBUG if settings.debug else root_level)
