"""
Tests for logging setup.
Root logger state is restored after every test.
"""

from __future__ import annotations

import logging

import json_log_formatter
import pytest

from news_scope.config import Settings
from news_scope.logging_config import QUIET_LOGGERS, build_logging_config, setup_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    quiet_levels = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    yield root
    root.handlers = handlers
    root.setLevel(level)
    for name, lvl in quiet_levels.items():
        logging.getLogger(name).setLevel(lvl)


class TestBuildConfig:
    def test_production_uses_json(self):
        config = build_logging_config(Settings(env="production", log_level="INFO"))
        assert config["handlers"]["stdout"]["formatter"] == "json"

    def test_development_uses_text(self):
        config = build_logging_config(Settings(env="development", log_level="debug"))
        assert config["handlers"]["stdout"]["formatter"] == "text"
        assert config["root"]["level"] == "DEBUG"

    def test_unknown_level_falls_back_to_info(self):
        config = build_logging_config(Settings(env="development", log_level="chatty"))
        assert config["root"]["level"] == "INFO"


class TestSetupLogging:
    def test_production_handler_is_json(self, restore_root):
        setup_logging(Settings(env="production", log_level="WARNING"))
        assert restore_root.level == logging.WARNING
        assert len(restore_root.handlers) == 1
        assert isinstance(restore_root.handlers[0].formatter, json_log_formatter.VerboseJSONFormatter)

    def test_noisy_loggers_quieted(self, restore_root):
        setup_logging(Settings(env="development", log_level="DEBUG"))
        assert restore_root.level == logging.DEBUG
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
