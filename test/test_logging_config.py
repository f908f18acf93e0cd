"""
Tests for the engine logger: formatting, chain log files and the excepthook.
"""

import logging
import os
import sys

from app.automation.logging_config import (
    LOGGER_NAME,
    DetailedExceptionFormatter,
    attach_chain_log,
    global_exception_handler,
    setup_logger,
)


def _record(level, exc_info=None):
    return logging.LogRecord(LOGGER_NAME, level, __file__, 1, "cycle for %s", ("0xabc",), exc_info)


def _exc_info():
    try:
        raise RuntimeError("market api down")
    except RuntimeError:
        return sys.exc_info()


def test_formatter_adds_traceback_for_errors_only():
    formatter = DetailedExceptionFormatter()
    exc_info = _exc_info()

    error_line = formatter.format(_record(logging.ERROR, exc_info))
    warning_line = formatter.format(_record(logging.WARNING, exc_info))

    assert "cycle for 0xabc" in error_line
    assert "RuntimeError: market api down" in error_line
    assert "[MainThread]" in warning_line
    assert "Traceback" not in warning_line


def test_attach_chain_log_is_idempotent(tmp_path):
    path = str(tmp_path / "sei_automation.log")
    logger = setup_logger()

    attach_chain_log(path)
    attach_chain_log(path)

    matching = [
        h for h in logger.handlers if isinstance(h, logging.FileHandler) and h.baseFilename == os.path.abspath(path)
    ]
    assert len(matching) == 1

    logger.removeHandler(matching[0])
    matching[0].close()


def test_global_exception_handler_logs_critical(caplog):
    exctype, value, tb = _exc_info()

    with caplog.at_level(logging.CRITICAL, logger=LOGGER_NAME):
        global_exception_handler(exctype, value, tb)

    assert "Uncaught exception" in caplog.text
    assert "market api down" in caplog.text
