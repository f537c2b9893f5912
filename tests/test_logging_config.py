import logging

import pytest

from music_browser.logging_config import setup_logging


@pytest.fixture
def browser_logger():
    logger = logging.getLogger("music_browser")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def test_console_handler_uses_requested_level(browser_logger):
    setup_logging("info")

    (handler,) = browser_logger.handlers
    assert handler.level == logging.INFO
    assert browser_logger.level == logging.INFO


def test_repeated_setup_does_not_stack_handlers(browser_logger):
    setup_logging()
    setup_logging()
    assert len(browser_logger.handlers) == 1


def test_log_file_receives_debug_records(browser_logger, tmp_path):
    log_file = tmp_path / "logs" / "browser.log"
    setup_logging("WARNING", log_file)

    logging.getLogger("music_browser.controller").debug("expanding %s", "Albums")
    for handler in browser_logger.handlers:
        handler.flush()

    assert "expanding Albums" in log_file.read_text(encoding="utf-8")
