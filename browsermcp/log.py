"""Logging setup for the server process.

stdout carries the MCP stdio transport, so every handler writes to stderr.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import asdict
from typing import Any, Dict

from browsermcp.config import AppConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level: str = "info") -> None:
    """Route the root logger to stderr at ``level`` (a name such as ``"debug"``)."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT, stream=sys.stderr, force=True)


def mask_secret(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


def _masked(config: AppConfig) -> Dict[str, Any]:
    data = asdict(config)
    for provider in ("gemini", "anthropic", "openai"):
        data["ai"][provider]["api_key"] = mask_secret(data["ai"][provider]["api_key"])
    return data


def log_startup_info(config: AppConfig) -> None:
    """Summarise the effective configuration at INFO (full dump at DEBUG)."""
    browser = config.browser
    provider = config.ai.provider
    logger.info("Starting %s v%s", config.server.name, config.server.version)
    logger.info("Log level: %s", config.server.log_level)
    try:
        model = config.ai.for_provider(provider).model_name
    except ValueError:
        model = "unknown"
    logger.info("AI provider: %s (model: %s)", provider, model)
    logger.info(
        "Browser mode: %s, %s session",
        "headless" if browser.headless else "visible",
        "persistent" if browser.persistent_session and browser.user_data_dir else "ephemeral",
    )
    logger.info("Browser resolution: %dx%d", browser.window_width, browser.window_height)
    logger.debug("Configuration: %s", _masked(config))


__all__ = ["LOG_FORMAT", "log_startup_info", "mask_secret", "setup_logging"]
