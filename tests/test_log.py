"""Tests for logging setup and the startup summary."""

import logging
import sys

import pytest

from browsermcp.config import load_config
from browsermcp.log import log_startup_info, mask_secret, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_mask_secret():
    assert mask_secret("") == ""
    assert mask_secret("short") == "***"
    assert mask_secret("sk-1234567890abcd") == "sk-1...abcd"


def test_setup_logging_writes_to_stderr(restore_root_logger):
    setup_logging("debug")

    assert restore_root_logger.level == logging.DEBUG
    assert any(getattr(h, "stream", None) is sys.stderr for h in restore_root_logger.handlers)


def test_setup_logging_unknown_level_falls_back_to_info(restore_root_logger):
    setup_logging("chatty")

    assert restore_root_logger.level == logging.INFO


def test_log_startup_info_masks_api_keys(caplog):
    config = load_config(
        {"GOOGLE_API_KEY": "AIzaSECRETSECRET1234", "BROWSER_HEADLESS": "true"}
    )

    with caplog.at_level(logging.DEBUG, logger="browsermcp.log"):
        log_startup_info(config)

    assert "Starting browser-use-claude-mcp v1.0.0" in caplog.text
    assert "AI provider: GEMINI (model: gemini-2.5-pro)" in caplog.text
    assert "Browser mode: headless, ephemeral session" in caplog.text
    assert "Browser resolution: 1280x720" in caplog.text
    assert "AIzaSECRETSECRET1234" not in caplog.text
    assert "AIza...1234" in caplog.text
