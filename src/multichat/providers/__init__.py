"""AI provider adapter implementations."""

from .anthropic import AnthropicAdapter
from .base import BaseProviderAdapter, ProviderConfig
from .cohere import CohereAdapter
from .gemini import GeminiAdapter, GeminiChatSession
from .huggingface import HuggingFaceAdapter
from .openai import OpenAIAdapter
from .registry import PROVIDER_CATALOG, ProviderDescriptor, ProviderRegistry, default_registry
from .strategy import FallbackStrategy, fall_back_on_provider_error

__all__ = [
    "BaseProviderAdapter",
    "ProviderConfig",
    "AnthropicAdapter",
    "CohereAdapter",
    "GeminiAdapter",
    "GeminiChatSession",
    "HuggingFaceAdapter",
    "OpenAIAdapter",
    "PROVIDER_CATALOG",
    "ProviderDescriptor",
    "ProviderRegistry",
    "default_registry",
    "FallbackStrategy",
    "fall_back_on_provider_error",
]
