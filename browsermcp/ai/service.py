"""Provider-agnostic façade over the configured AI adapter."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from browsermcp.config import AIConfig, ConfigError

from .base import AIResponse, ChatMessage, GenerationOptions

logger = logging.getLogger(__name__)


class AIAdapter(Protocol):
    provider: str
    model_name: str

    async def generate_text(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AIResponse: ...

    async def generate_text_with_image(
        self,
        prompt: str,
        image_data: str,
        mime_type: str,
        options: Optional[GenerationOptions] = None,
    ) -> AIResponse: ...

    async def generate_chat_response(
        self, messages: Sequence[ChatMessage], options: Optional[GenerationOptions] = None
    ) -> AIResponse: ...


def create_adapter(config: AIConfig) -> AIAdapter:
    """Instantiate the adapter for ``config.provider``."""
    provider = config.provider.upper()
    logger.info("Creating AI adapter for provider: %s", provider)
    if provider == "GEMINI":
        from .gemini_adapter import GeminiAdapter

        return GeminiAdapter(config.gemini)
    if provider == "ANTHROPIC":
        from .anthropic_adapter import AnthropicAdapter

        return AnthropicAdapter(config.anthropic)
    if provider == "OPENAI":
        from .openai_adapter import OpenAIAdapter

        return OpenAIAdapter(config.openai)
    logger.error("Unsupported AI provider: %s", provider)
    raise ConfigError(f"Unsupported AI provider: {provider}")


class AIService:
    """Route generation requests to the configured provider.

    The adapter is created on first use.  ``main()`` validates the provider
    key up front, but servers built by ``create_server`` for ``fastmcp run``
    or the ASGI app only need the key once an AI tool is called.
    """

    def __init__(self, config: AIConfig, *, adapter: Optional[AIAdapter] = None) -> None:
        self._config = config
        self._adapter = adapter
        logger.info("Initializing AI service with provider: %s", config.provider)

    @property
    def provider(self) -> str:
        return self._config.provider

    @property
    def adapter(self) -> AIAdapter:
        if self._adapter is None:
            self._adapter = create_adapter(self._config)
        return self._adapter

    async def generate_text(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AIResponse:
        try:
            return await self.adapter.generate_text(prompt, options)
        except Exception as exc:
            logger.error("Error generating text: %s", exc)
            raise

    async def generate_text_with_image(
        self,
        prompt: str,
        image_data: str,
        mime_type: str = "image/png",
        options: Optional[GenerationOptions] = None,
    ) -> AIResponse:
        try:
            return await self.adapter.generate_text_with_image(
                prompt, image_data, mime_type, options
            )
        except Exception as exc:
            logger.error("Error generating text with image: %s", exc)
            raise

    async def generate_chat_response(
        self, messages: Sequence[ChatMessage], options: Optional[GenerationOptions] = None
    ) -> AIResponse:
        try:
            return await self.adapter.generate_chat_response(messages, options)
        except Exception as exc:
            logger.error("Error generating chat response: %s", exc)
            raise


__all__ = ["AIAdapter", "AIService", "create_adapter"]
