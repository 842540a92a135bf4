"""Google Gemini adapter speaking the ``generateContent`` REST API via httpx."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from browsermcp.config import ConfigError, ProviderConfig

from .base import AIProviderError, AIResponse, ChatMessage, GenerationOptions, split_system

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

DEFAULT_OPTIONS = GenerationOptions(
    temperature=0.7,
    top_k=40,
    top_p=0.95,
    max_tokens=8192,
)

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

logger = logging.getLogger(__name__)


class GeminiAdapter:
    provider = "GEMINI"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        base_url: str = GEMINI_API_BASE,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not config.api_key:
            raise ConfigError("No Gemini API key provided")
        self._api_key = config.api_key
        self.model_name = config.model_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        logger.info("Initialized Gemini adapter with model: %s", self.model_name)

    async def generate_text(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AIResponse:
        contents = [{"role": "user", "parts": [{"text": prompt}]}]
        return await self._generate(contents, options)

    async def generate_text_with_image(
        self,
        prompt: str,
        image_data: str,
        mime_type: str,
        options: Optional[GenerationOptions] = None,
    ) -> AIResponse:
        contents = [
            {
                "role": "user",
                "parts": [
                    {"text": prompt},
                    {"inlineData": {"mimeType": mime_type, "data": image_data}},
                ],
            }
        ]
        return await self._generate(contents, options)

    async def generate_chat_response(
        self, messages: Sequence[ChatMessage], options: Optional[GenerationOptions] = None
    ) -> AIResponse:
        system, turns = split_system(messages)
        contents = [
            {
                "role": "model" if message.get("role") in ("model", "assistant") else "user",
                "parts": [{"text": str(message.get("content", ""))}],
            }
            for message in turns
        ]
        return await self._generate(contents, options, system=system)

    async def _generate(
        self,
        contents: List[Dict[str, Any]],
        options: Optional[GenerationOptions],
        *,
        system: Optional[str] = None,
    ) -> AIResponse:
        opts = (options or GenerationOptions()).with_defaults(DEFAULT_OPTIONS)
        generation_config: Dict[str, Any] = {
            "temperature": opts.temperature,
            "topK": opts.top_k,
            "topP": opts.top_p,
            "maxOutputTokens": opts.max_tokens,
        }
        if opts.stop_sequences:
            generation_config["stopSequences"] = list(opts.stop_sequences)
        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
            "safetySettings": SAFETY_SETTINGS,
        }
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}

        url = f"{self._base_url}/models/{self.model_name}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key}
        logger.debug("Generating content with model: %s", self.model_name)
        timeout = httpx.Timeout(self._timeout, connect=10.0)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise AIProviderError(self.provider, str(exc)) from exc
        if response.status_code != 200:
            raise AIProviderError(
                self.provider,
                f"({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        payload = response.json()
        text = self._extract_text(payload)
        logger.debug("Generated %d characters", len(text))
        usage = payload.get("usageMetadata") or {}
        return AIResponse(
            text=text,
            model=self.model_name,
            provider=self.provider,
            usage={
                "input_tokens": int(usage.get("promptTokenCount") or 0),
                "output_tokens": int(usage.get("candidatesTokenCount") or 0),
            },
        )

    def _extract_text(self, payload: Dict[str, Any]) -> str:
        candidates = payload.get("candidates") or []
        if not candidates:
            reason = (payload.get("promptFeedback") or {}).get("blockReason")
            raise AIProviderError(
                self.provider, f"no candidates returned (block reason: {reason or 'unknown'})"
            )
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


__all__ = ["GeminiAdapter", "GEMINI_API_BASE"]
