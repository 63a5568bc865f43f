"""
Tests for logging setup and level resolution.
"""

import logging
from pathlib import Path

import pytest

from boxpm.core.observability.logging_config import resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    def test_flags_take_precedence(self):
        env = {"BOX_LOG_LEVEL": "ERROR"}
        assert resolve_level(debug=True, verbose=True, environ=env) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True, environ=env) == "INFO"
        assert resolve_level(quiet=True, environ={}) == "ERROR"

    def test_environment(self):
        assert resolve_level(environ={"BOX_LOG_LEVEL": "INFO"}) == "INFO"

    def test_default(self):
        assert resolve_level(environ={}) == "WARNING"


class TestSetupLogging:
    def test_console_level(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "box.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")

        logging.getLogger("boxpm.test").debug("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "hello file" in log_file.read_text()

    def test_quiets_third_party(self):
        setup_logging("INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING
