import logging

import pytest

from grocery_sync.logging_config import configure_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_sets_level(self, root_logger):
        configure_logging("debug")
        assert root_logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, root_logger):
        configure_logging("chatty")
        assert root_logger.level == logging.INFO

    def test_repeated_calls_keep_one_handler(self, root_logger):
        configure_logging()
        configure_logging()
        assert len(root_logger.handlers) == 1

    def test_quietens_request_and_limiter_logs(self, root_logger):
        configure_logging("DEBUG")
        assert logging.getLogger("werkzeug").level == logging.WARNING
        assert logging.getLogger("flask_limiter").level == logging.WARNING
