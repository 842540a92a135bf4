"""Provider adapters and AI-assisted page analysis."""

from .analysis import PageAnalyst
from .base import AIProviderError, AIResponse, GenerationOptions
from .service import AIService, create_adapter

__all__ = [
    "AIProviderError",
    "AIResponse",
    "AIService",
    "GenerationOptions",
    "PageAnalyst",
    "create_adapter",
]
