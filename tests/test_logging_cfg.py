"""Tests for logging setup."""

import logging
import logging.handlers

import pytest

from mailpoll.logging_cfg import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_console_only_by_default():
    setup_logging("WARNING")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.StreamHandler)


def test_debug_overrides_level():
    setup_logging("ERROR", debug=True)
    assert logging.getLogger().level == logging.DEBUG


def test_unknown_level_defaults_to_info():
    setup_logging("chatty")
    assert logging.getLogger().level == logging.INFO


def test_rotating_file(tmp_path):
    log_file = tmp_path / "logs" / "mailpoll.log"

    setup_logging("INFO", log_file=log_file)
    logging.getLogger("mailpoll.test").info("hello")

    handlers = logging.getLogger().handlers
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in handlers)
    for handler in handlers:
        handler.flush()
    assert "hello" in log_file.read_text()


def test_repeated_setup_does_not_duplicate_handlers():
    setup_logging()
    setup_logging()
    assert len(logging.getLogger().handlers) == 1


def test_imapclient_is_quiet():
    setup_logging(debug=True)
    assert logging.getLogger("imapclient").level == logging.WARNING
