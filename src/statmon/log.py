"""Logging setup for statmon."""

import logging
import sys
from datetime import datetime

from textual.logging import TextualHandler

VERBOSITY_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
    3: logging.DEBUG,
}

# Chatty HTTP stack loggers, only opened up at the highest verbosity
HTTP_LOGGERS = ("httpx", "httpcore")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_installed_handler: logging.Handler | None = None


class _MicrosecondFormatter(logging.Formatter):
    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return datetime.fromtimestamp(record.created).strftime("%Y-%m-%dT%H:%M:%S.%f")


def level_for(verbosity: int) -> int:
    """Map a -v count onto a logging level."""
    return VERBOSITY_LEVELS[min(max(verbosity, 0), 3)]


def setup_logging(
    verbosity: int = 0,
    log_file: str | None = None,
    textual: bool = False,
) -> logging.Handler:
    """
    Install one handler on the root logger.

    Records go to the log file when given, otherwise to Textual's devtools
    console while the full-screen app owns the terminal, otherwise stderr.
    Calling it again replaces the previously installed handler.
    """
    global _installed_handler

    root = logging.getLogger()
    if _installed_handler is not None:
        root.removeHandler(_installed_handler)
        _installed_handler.close()

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    elif textual:
        handler = TextualHandler()
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_MicrosecondFormatter(LOG_FORMAT))
    root.addHandler(handler)
    _installed_handler = handler
    root.setLevel(logging.WARNING)
    logging.getLogger("statmon").setLevel(level_for(verbosity))

    http_level = logging.DEBUG if verbosity >= 3 else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    return handler
