import logging

from zillopoly.logging_config import configure_logging, get_logger


def test_configure_logging_applies_level_and_quiets_http_loggers():
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("debug")

        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_get_logger_returns_named_logger():
    logger = get_logger("zillopoly.orchestrator")

    assert logger.name == "zillopoly.orchestrator"
    assert logging.getLogger().handlers
