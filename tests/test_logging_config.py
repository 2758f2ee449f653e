import logging

from logging_config import get_logger, resolve_level, setup_logging


def test_setup_logging_string_levels():
    setup_logging("ERROR")
    root = logging.getLogger()
    assert root.getEffectiveLevel() == logging.ERROR
    assert len(root.handlers) >= 1

    setup_logging("debug")
    assert logging.getLogger().getEffectiveLevel() == logging.DEBUG


def test_setup_logging_numeric():
    setup_logging(10)
    assert logging.getLogger().getEffectiveLevel() == logging.DEBUG


def test_setup_logging_does_not_duplicate_handlers():
    setup_logging("INFO")
    count = len(logging.getLogger().handlers)
    setup_logging("INFO")
    assert len(logging.getLogger().handlers) == count


def test_resolve_level_falls_back_to_info():
    assert resolve_level("nonsense") == logging.INFO
    assert resolve_level(None) == logging.INFO
    assert resolve_level("20") == logging.INFO
    assert resolve_level("warn") == logging.WARNING


def test_get_logger_returns_named_logger():
    assert get_logger("syncview.test").name == "syncview.test"
