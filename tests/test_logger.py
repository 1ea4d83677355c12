import logging

import pytest

from utils import app_logger, config
from utils.logger import LOGGER_NAME, LoggerSetup


@pytest.fixture
def restore_level():
    previous = app_logger.level
    yield
    app_logger.setLevel(previous)


def test_setup_is_idempotent():
    handlers = list(app_logger.handlers)
    assert LoggerSetup.setup() is app_logger
    assert app_logger.handlers == handlers
    assert app_logger.name == LOGGER_NAME


def test_console_only_under_test_config():
    assert not any(isinstance(h, logging.FileHandler) for h in app_logger.handlers)


@pytest.mark.parametrize(
    "verbose, quiet, expected",
    [
        (True, False, logging.DEBUG),
        (False, True, logging.WARNING),
        (True, True, logging.DEBUG),
    ],
)
def test_set_verbosity(restore_level, verbose, quiet, expected):
    assert LoggerSetup.set_verbosity(verbose, quiet) == expected
    assert app_logger.level == expected


def test_set_verbosity_without_flags_keeps_configured_level(restore_level):
    app_logger.setLevel(logging.INFO)
    assert LoggerSetup.set_verbosity() == logging.INFO


def test_file_handler_uses_configured_dir_and_prefix(tmp_path, monkeypatch):
    monkeypatch.setitem(config._config["paths"], "logs_dir", str(tmp_path / "app"))
    monkeypatch.setitem(config._config["logging"], "filename_prefix", "edge")

    handler = LoggerSetup._file_handler(logging.Formatter("%(message)s"))
    try:
        assert handler.baseFilename.startswith(str(tmp_path / "app" / "edge_"))
        assert handler.maxBytes == 10 * 1024 * 1024
        assert handler.backupCount == 5
    finally:
        handler.close()
