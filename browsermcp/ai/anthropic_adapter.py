"""Anthropic Claude adapter built on the official async SDK."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import anthropic
from anthropic import AsyncAnthropic

from browsermcp.config import ConfigError, ProviderConfig

from .base import AIProviderError, AIResponse, ChatMessage, GenerationOptions, split_system

DEFAULT_OPTIONS = GenerationOptions(temperature=0.7, top_p=0.95, max_tokens=4096)

logger = logging.getLogger(__name__)


class AnthropicAdapter:
    provider = "ANTHROPIC"

    def __init__(self, config: ProviderConfig, *, timeout: float = 120.0) -> None:
        if not config.api_key:
            raise ConfigError("No Anthropic API key provided")
        self._api_key = config.api_key
        self.model_name = config.model_name
        self._timeout = timeout
        self._client: Optional[AsyncAnthropic] = None
        logger.info("Initialized Anthropic adapter with model: %s", self.model_name)

    def _ensure_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def generate_text(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AIResponse:
        return await self._create([{"role": "user", "content": prompt}], options)

    async def generate_text_with_image(
        self,
        prompt: str,
        image_data: str,
        mime_type: str,
        options: Optional[GenerationOptions] = None,
    ) -> AIResponse:
        content = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": mime_type, "data": image_data},
            },
            {"type": "text", "text": prompt},
        ]
        return await self._create([{"role": "user", "content": content}], options)

    async def generate_chat_response(
        self, messages: Sequence[ChatMessage], options: Optional[GenerationOptions] = None
    ) -> AIResponse:
        system, turns = split_system(messages)
        converted = [
            {
                "role": "assistant" if message.get("role") in ("assistant", "model") else "user",
                "content": message.get("content", ""),
            }
            for message in turns
        ]
        return await self._create(converted, options, system=system)

    async def _create(
        self,
        messages: List[Dict[str, Any]],
        options: Optional[GenerationOptions],
        *,
        system: Optional[str] = None,
    ) -> AIResponse:
        opts = (options or GenerationOptions()).with_defaults(DEFAULT_OPTIONS)
        kwargs: Dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "max_tokens": opts.max_tokens,
            "temperature": opts.temperature,
            "top_p": opts.top_p,
        }
        if opts.stop_sequences:
            kwargs["stop_sequences"] = list(opts.stop_sequences)
        if system:
            kwargs["system"] = system

        logger.debug("Generating content with model: %s", self.model_name)
        client = self._ensure_client()
        try:
            response = await client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            raise AIProviderError(
                self.provider, f"({exc.status_code}): {exc.message}", status_code=exc.status_code
            ) from exc
        except anthropic.APIError as exc:
            raise AIProviderError(self.provider, str(exc)) from exc

        text = "".join(
            getattr(block, "text", "")
            for block in response.content
            if getattr(block, "type", None) == "text"
        )
        logger.debug("Generated %d characters", len(text))
        usage = getattr(response, "usage", None)
        return AIResponse(
            text=text,
            model=self.model_name,
            provider=self.provider,
            usage={
                "input_tokens": int(getattr(usage, "input_tokens", 0) or 0),
                "output_tokens": int(getattr(usage, "output_tokens", 0) or 0),
            },
        )


__all__ = ["AnthropicAdapter"]
