"""Tests for venuecal logging setup."""

import logging
import os
from unittest.mock import patch

import pytest
from colorlog import ColoredFormatter

from venuecal import _init_logging
from venuecal.core.lite_logging import (
    SUPPRESSED_LOGGERS,
    VENUECAL_MODULES,
    configure_logging,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_logger_levels():
    """Put every touched logger back to its level before the test."""
    names = ["", *VENUECAL_MODULES, *SUPPRESSED_LOGGERS]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    def test_default_production_mode(self):
        configure_logging()

        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("venuecal").level == logging.INFO
        assert logging.getLogger("dateutil").level == logging.WARNING

    def test_debug_mode(self):
        configure_logging(debug_mode=True)

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("venuecal.calendar.lite_occurrence_expander").level == logging.DEBUG
        # Third-party loggers stay quiet
        assert logging.getLogger("asyncio").level == logging.WARNING

    def test_force_debug_overrides_argument(self):
        configure_logging(debug_mode=True, force_debug=False)
        assert logging.getLogger("venuecal").level == logging.INFO

    @patch.dict(os.environ, {"VENUECAL_DEBUG": "yes"})
    def test_env_debug_enables_debug(self):
        configure_logging()
        assert logging.getLogger("venuecal").level == logging.DEBUG

    def test_configured_level_quiets_module_loggers(self):
        configure_logging(log_level="warning")

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("venuecal.core.config_loader").getEffectiveLevel() == logging.WARNING

    def test_configured_level_does_not_override_debug(self):
        configure_logging(debug_mode=True, log_level="ERROR")
        assert logging.getLogger("venuecal").level == logging.DEBUG

    @patch.dict(os.environ, {"VENUECAL_LOG_LEVEL": "error"})
    def test_env_log_level_sets_root_level(self):
        configure_logging()
        assert logging.getLogger().level == logging.ERROR


class TestInitLogging:
    def test_installs_colored_handler_when_none_present(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", [])

        _init_logging("warning")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, ColoredFormatter)
        assert root.level == logging.WARNING

    def test_keeps_existing_handlers(self, monkeypatch):
        root = logging.getLogger()
        existing = logging.NullHandler()
        monkeypatch.setattr(root, "handlers", [existing])

        _init_logging("INFO")

        assert root.handlers == [existing]

    @patch.dict(os.environ, {"VENUECAL_DEBUG": "on"})
    def test_env_debug_forces_debug_level(self, monkeypatch):
        monkeypatch.setattr(logging.getLogger(), "handlers", [logging.NullHandler()])
        _init_logging("WARNING")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_name_defaults_to_info(self, monkeypatch):
        monkeypatch.setattr(logging.getLogger(), "handlers", [logging.NullHandler()])
        _init_logging("chatty")
        assert logging.getLogger().level == logging.INFO
