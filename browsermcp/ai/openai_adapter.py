"""OpenAI chat-completions adapter built on the official async SDK."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from browsermcp.config import ConfigError, ProviderConfig

from .base import AIProviderError, AIResponse, ChatMessage, GenerationOptions

DEFAULT_OPTIONS = GenerationOptions(temperature=0.7, top_p=1.0, max_tokens=4096)

logger = logging.getLogger(__name__)


class OpenAIAdapter:
    provider = "OPENAI"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
    ) -> None:
        if not config.api_key:
            raise ConfigError("No OpenAI API key provided")
        self._api_key = config.api_key
        self.model_name = config.model_name
        self._base_url = base_url
        self._timeout = timeout
        self._client: Optional[AsyncOpenAI] = None
        logger.info("Initialized OpenAI adapter with model: %s", self.model_name)

    def _ensure_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key, base_url=self._base_url, timeout=self._timeout
            )
        return self._client

    async def generate_text(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AIResponse:
        return await self._complete([{"role": "user", "content": prompt}], options)

    async def generate_text_with_image(
        self,
        prompt: str,
        image_data: str,
        mime_type: str,
        options: Optional[GenerationOptions] = None,
    ) -> AIResponse:
        content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_data}"}},
        ]
        return await self._complete([{"role": "user", "content": content}], options)

    async def generate_chat_response(
        self, messages: Sequence[ChatMessage], options: Optional[GenerationOptions] = None
    ) -> AIResponse:
        converted = [
            {
                "role": "assistant" if message.get("role") == "model" else message.get("role", "user"),
                "content": message.get("content", ""),
            }
            for message in messages
        ]
        return await self._complete(converted, options)

    async def _complete(
        self, messages: List[Dict[str, Any]], options: Optional[GenerationOptions]
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
            kwargs["stop"] = list(opts.stop_sequences)

        logger.debug("Generating content with model: %s", self.model_name)
        client = self._ensure_client()
        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            raise AIProviderError(
                self.provider, f"({exc.status_code}): {exc.message}", status_code=exc.status_code
            ) from exc
        except openai.OpenAIError as exc:
            raise AIProviderError(self.provider, str(exc)) from exc

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        logger.debug("Generated %d characters", len(text))
        usage = getattr(response, "usage", None)
        return AIResponse(
            text=text,
            model=self.model_name,
            provider=self.provider,
            usage={
                "input_tokens": int(getattr(usage, "prompt_tokens", 0) or 0),
                "output_tokens": int(getattr(usage, "completion_tokens", 0) or 0),
            },
        )


__all__ = ["OpenAIAdapter"]
