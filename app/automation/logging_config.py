"""
Logging for the automation engine.

Owners' cycles run on worker threads, so every line carries the thread name.
The console level follows LOG_LEVEL; files always get DEBUG.
"""

import logging
import os
import sys
import traceback
from pathlib import Path
from typing import Any

LOGGER_NAME = "automation_engine"
DEFAULT_LOG_FILE = os.environ.get("LOGS_PATH", "logs/automation_engine.log")
LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(threadName)s] %(message)s"


class DetailedExceptionFormatter(logging.Formatter):
    """Appends the full traceback to ERROR and CRITICAL records that carry one."""

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            return super().format(record)

        saved = record.exc_info, record.exc_text
        record.exc_info = record.exc_text = None
        try:
            return super().format(record)
        finally:
            record.exc_info, record.exc_text = saved


def _console_level() -> int:
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _file_handler(path: str) -> logging.FileHandler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(DetailedExceptionFormatter())
    return handler


def setup_logger() -> logging.Logger:
    """
    Return the engine logger, configuring it on first use.

    Returns:
        Logger with a console handler at LOG_LEVEL and a DEBUG file handler.
    """
    logger = logging.getLogger(LOGGER_NAME)

    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(_console_level())
    console_handler.setFormatter(DetailedExceptionFormatter())

    logger.addHandler(console_handler)
    logger.addHandler(_file_handler(DEFAULT_LOG_FILE))

    return logger


def attach_chain_log(path: str) -> logging.Logger:
    """Also write engine logs to a chain's own log file. Attaching the same path twice is a no-op."""
    logger = setup_logger()
    target = os.path.abspath(path)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return logger

    logger.addHandler(_file_handler(path))
    logger.info("Logging to %s", target)
    return logger


def global_exception_handler(exctype: type, value: BaseException, tb: Any) -> None:
    """
    sys.excepthook that logs uncaught exceptions.

    KeyboardInterrupt goes to the default hook so Ctrl-C stays quiet.
    """
    if issubclass(exctype, KeyboardInterrupt):
        sys.__excepthook__(exctype, value, tb)
        return

    logger = logging.getLogger(LOGGER_NAME)
    trace_str = "".join(traceback.format_exception(exctype, value, tb))
    logger.critical("Uncaught exception:\n %s", trace_str)
