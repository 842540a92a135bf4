"""Shared types for the AI provider adapters."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence


class AIProviderError(RuntimeError):
    """A provider call failed (HTTP error, SDK error, or empty/blocked reply)."""

    kind = "ai_provider"

    def __init__(self, provider: str, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(f"{provider} API error: {message}")
        self.provider = provider
        self.status_code = status_code


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling parameters; ``None`` means "use the adapter default"."""

    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_tokens: Optional[int] = None
    stop_sequences: Optional[Sequence[str]] = None

    def with_defaults(self, defaults: "GenerationOptions") -> "GenerationOptions":
        overrides = {k: v for k, v in asdict(self).items() if v is not None}
        return replace(defaults, **overrides)


@dataclass(frozen=True)
class AIResponse:
    text: str
    model: str
    provider: str
    usage: Dict[str, int] = field(default_factory=dict)


ChatMessage = Mapping[str, Any]


def split_system(messages: Sequence[ChatMessage]) -> "tuple[Optional[str], List[ChatMessage]]":
    """Separate ``system`` messages from the conversation turns."""
    system_parts: List[str] = []
    turns: List[ChatMessage] = []
    for message in messages:
        if message.get("role") == "system":
            system_parts.append(str(message.get("content", "")))
        else:
            turns.append(message)
    return ("\n\n".join(system_parts) or None), turns


__all__ = [
    "AIProviderError",
    "AIResponse",
    "ChatMessage",
    "GenerationOptions",
    "split_system",
]
