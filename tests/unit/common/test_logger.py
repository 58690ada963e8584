"""Tests for logging setup."""

import logging
from types import SimpleNamespace

import pytest

from subsidy.common.logger import (
    AUDIT_FORMAT,
    AUDIT_LOGGER_NAME,
    ROOT_LOGGER_NAME,
    configure_logging,
    get_audit_logger,
    get_logger,
    setup_logger,
)


def _reset(logger):
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def preserve_engine_loggers():
    """Restore the engine loggers after a test reconfigures them."""
    saved = {}
    for name in (ROOT_LOGGER_NAME, AUDIT_LOGGER_NAME):
        logger = logging.getLogger(name)
        saved[name] = (logger.level, list(logger.handlers))
        logger.handlers = []
    yield
    for name, (level, handlers) in saved.items():
        logger = logging.getLogger(name)
        _reset(logger)
        logger.handlers = handlers
        logger.setLevel(level)


class TestSetupLogger:

    def test_file_and_console_handlers(self, tmp_path):
        logger = setup_logger("subsidy.test.both", log_dir=str(tmp_path), level="debug")
        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            logger.info("hello")
            assert (tmp_path / "subsidy.test.both.log").exists()
        finally:
            _reset(logger)

    def test_no_duplicate_handlers(self, tmp_path):
        name = "subsidy.test.dupes"
        first = setup_logger(name, log_dir=str(tmp_path), file_logging=False)
        second = setup_logger(name, log_dir=str(tmp_path), level="ERROR", file_logging=False)
        try:
            assert first is second
            assert len(second.handlers) == 1
            # Level still follows the latest call
            assert second.level == logging.ERROR
        finally:
            _reset(second)

    def test_invalid_level(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logger("subsidy.test.bad", log_dir=str(tmp_path), level="LOUD")


class TestConfigureLogging:

    def test_audit_trail_goes_to_its_own_file(self, tmp_path, preserve_engine_loggers):
        settings = SimpleNamespace(log_dir=str(tmp_path), log_level="WARNING", log_to_file=True)

        engine_logger = configure_logging(settings)

        assert engine_logger.name == ROOT_LOGGER_NAME
        assert engine_logger.level == logging.WARNING
        audit = get_audit_logger()
        assert audit.level == logging.INFO
        assert len(audit.handlers) == 1
        assert audit.handlers[0].formatter._fmt == AUDIT_FORMAT

        audit.info("Transition: process=abc draft -> submitted")
        audit.handlers[0].flush()
        content = (tmp_path / f"{AUDIT_LOGGER_NAME}.log").read_text()
        assert "draft -> submitted" in content

    def test_console_only_without_files(self, tmp_path, preserve_engine_loggers):
        settings = SimpleNamespace(log_dir=str(tmp_path / "logs"), log_level="INFO", log_to_file=False)

        configure_logging(settings)

        assert get_audit_logger().handlers == []
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1
        assert not (tmp_path / "logs").exists()


class TestGetLogger:

    def test_prefixes_foreign_names(self):
        assert get_logger("adapters").name == "subsidy.adapters"

    def test_keeps_engine_names(self):
        assert get_logger("subsidy.db.session").name == "subsidy.db.session"
        assert get_logger(ROOT_LOGGER_NAME).name == ROOT_LOGGER_NAME

    def test_audit_logger_name(self):
        assert get_audit_logger().name == AUDIT_LOGGER_NAME == "subsidy.audit"
