"""Environment-driven configuration for the browsermcp server.

Values are read from ``os.environ`` after :func:`dotenv.load_dotenv` has had a
chance to populate it from a ``.env`` file in the working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

SUPPORTED_PROVIDERS = ("GEMINI", "ANTHROPIC", "OPENAI")


class ConfigError(ValueError):
    """Raised when the loaded configuration cannot be used."""


@dataclass(frozen=True)
class ServerConfig:
    name: str = "browser-use-claude-mcp"
    version: str = "1.0.0"
    log_level: str = "info"
    telemetry: bool = False


@dataclass(frozen=True)
class BrowserConfig:
    """Launch settings for the shared Chromium process."""

    chrome_path: str = ""
    user_data_dir: str = ""
    debugging_port: int = 9222
    debugging_host: str = "localhost"
    persistent_session: bool = False
    headless: bool = True
    disable_security: bool = False
    window_width: int = 1280
    window_height: int = 720


@dataclass(frozen=True)
class ProviderConfig:
    api_key: str = ""
    model_name: str = ""


@dataclass(frozen=True)
class AIConfig:
    provider: str = "GEMINI"
    gemini: ProviderConfig = field(
        default_factory=lambda: ProviderConfig(model_name="gemini-2.5-pro")
    )
    anthropic: ProviderConfig = field(
        default_factory=lambda: ProviderConfig(model_name="claude-3-5-sonnet-20241022")
    )
    openai: ProviderConfig = field(
        default_factory=lambda: ProviderConfig(model_name="gpt-4o")
    )

    def for_provider(self, provider: Optional[str] = None) -> ProviderConfig:
        name = (provider or self.provider).upper()
        if name == "GEMINI":
            return self.gemini
        if name == "ANTHROPIC":
            return self.anthropic
        if name == "OPENAI":
            return self.openai
        raise ConfigError(f"Unsupported AI provider: {name}")


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    ai: AIConfig = field(default_factory=AIConfig)


def _flag(env: Mapping[str, str], key: str) -> bool:
    return env.get(key, "").strip().lower() == "true"


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}.") from exc


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build an :class:`AppConfig` from ``environ`` (default: ``os.environ``)."""
    if environ is None:
        load_dotenv()
        environ = os.environ
    env = environ

    server = ServerConfig(
        name=env.get("SERVER_NAME") or "browser-use-claude-mcp",
        version=env.get("SERVER_VERSION") or "1.0.0",
        log_level=(env.get("LOG_LEVEL") or "info").lower(),
        telemetry=_flag(env, "ANONYMIZED_TELEMETRY"),
    )
    browser = BrowserConfig(
        chrome_path=env.get("CHROME_PATH", ""),
        user_data_dir=env.get("CHROME_USER_DATA", ""),
        debugging_port=_int(env, "CHROME_DEBUGGING_PORT", 9222),
        debugging_host=env.get("CHROME_DEBUGGING_HOST") or "localhost",
        persistent_session=_flag(env, "CHROME_PERSISTENT_SESSION"),
        headless=_flag(env, "BROWSER_HEADLESS"),
        disable_security=_flag(env, "BROWSER_DISABLE_SECURITY"),
        window_width=_int(env, "BROWSER_WINDOW_WIDTH", 1280),
        window_height=_int(env, "BROWSER_WINDOW_HEIGHT", 720),
    )
    ai = AIConfig(
        provider=(env.get("MCP_MODEL_PROVIDER") or "GEMINI").upper(),
        gemini=ProviderConfig(
            api_key=env.get("GOOGLE_API_KEY", ""),
            model_name=env.get("GEMINI_MODEL_NAME") or "gemini-2.5-pro",
        ),
        anthropic=ProviderConfig(
            api_key=env.get("ANTHROPIC_API_KEY", ""),
            model_name=env.get("ANTHROPIC_MODEL_NAME") or "claude-3-5-sonnet-20241022",
        ),
        openai=ProviderConfig(
            api_key=env.get("OPENAI_API_KEY", ""),
            model_name=env.get("OPENAI_MODEL_NAME") or "gpt-4o",
        ),
    )
    return AppConfig(server=server, browser=browser, ai=ai)


_KEY_HINTS = {
    "GEMINI": ("Google", "GOOGLE_API_KEY"),
    "ANTHROPIC": ("Anthropic", "ANTHROPIC_API_KEY"),
    "OPENAI": ("OpenAI", "OPENAI_API_KEY"),
}


def validate_config(config: AppConfig) -> None:
    """Raise :class:`ConfigError` unless the selected AI provider is usable."""
    provider = config.ai.provider
    if not provider:
        raise ConfigError(
            "No AI provider specified. Set MCP_MODEL_PROVIDER environment variable."
        )
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigError(f"Unsupported AI provider: {provider}")
    if not config.ai.for_provider(provider).api_key:
        label, env_key = _KEY_HINTS[provider]
        raise ConfigError(f"Missing {label} API key. Set {env_key} environment variable.")


__all__ = [
    "AIConfig",
    "AppConfig",
    "BrowserConfig",
    "ConfigError",
    "ProviderConfig",
    "ServerConfig",
    "SUPPORTED_PROVIDERS",
    "load_config",
    "validate_config",
]
