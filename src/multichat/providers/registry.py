"""
Provider Registry.

Maps provider ids to adapter factories. The five built-in providers are
registered by default_registry(); hosts can register additional factories
(or replace a built-in one, e.g. with a test double) through register().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

import httpx

from ..domain.entities import ProviderId
from ..exceptions import UnknownProviderError
from .anthropic import AnthropicAdapter
from .base import BaseProviderAdapter, ProviderConfig
from .cohere import CohereAdapter
from .gemini import GeminiAdapter
from .huggingface import HuggingFaceAdapter
from .openai import OpenAIAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[..., BaseProviderAdapter]


@dataclass(frozen=True)
class ProviderDescriptor:
    """Display metadata for a provider, used by settings screens."""

    id: ProviderId
    name: str
    models: tuple[str, ...]
    supports_images: bool
    max_context_tokens: int
    key_url: str


PROVIDER_CATALOG: dict[ProviderId, ProviderDescriptor] = {
    ProviderId.GEMINI: ProviderDescriptor(
        id=ProviderId.GEMINI,
        name="Google Gemini",
        models=("gemini-1.5-flash", "gemini-1.5-pro", "gemini-pro-vision"),
        supports_images=True,
        max_context_tokens=1_000_000,
        key_url="https://makersuite.google.com/app/apikey",
    ),
    ProviderId.OPENAI: ProviderDescriptor(
        id=ProviderId.OPENAI,
        name="OpenAI GPT",
        models=("gpt-3.5-turbo", "gpt-4", "gpt-4-turbo"),
        supports_images=True,
        max_context_tokens=128000,
        key_url="https://platform.openai.com/api-keys",
    ),
    ProviderId.ANTHROPIC: ProviderDescriptor(
        id=ProviderId.ANTHROPIC,
        name="Anthropic Claude",
        models=tuple(m["id"] for m in AnthropicAdapter.AVAILABLE_MODELS),
        supports_images=True,
        max_context_tokens=AnthropicAdapter.MAX_CONTEXT_TOKENS,
        key_url="https://console.anthropic.com/",
    ),
    ProviderId.COHERE: ProviderDescriptor(
        id=ProviderId.COHERE,
        name="Cohere",
        models=tuple(m["id"] for m in CohereAdapter.AVAILABLE_MODELS),
        supports_images=False,
        max_context_tokens=CohereAdapter.MAX_CONTEXT_TOKENS,
        key_url="https://dashboard.cohere.ai/api-keys",
    ),
    ProviderId.HUGGINGFACE: ProviderDescriptor(
        id=ProviderId.HUGGINGFACE,
        name="Hugging Face",
        models=tuple(m["id"] for m in HuggingFaceAdapter.AVAILABLE_MODELS),
        supports_images=False,
        max_context_tokens=HuggingFaceAdapter.MAX_CONTEXT_TOKENS,
        key_url="https://huggingface.co/settings/tokens",
    ),
}


class ProviderRegistry:
    """Registry of adapter factories keyed by provider id.

    A factory is called as ``factory(config, http_client=...)`` and must
    return a ready-to-use adapter. Adapter classes qualify directly.

    Usage:
        registry = default_registry()
        adapter = registry.create("openai", api_key="sk-...", config={"model": "gpt-4"})
    """

    def __init__(self):
        self._factories: dict[str, AdapterFactory] = {}

    @staticmethod
    def _key(provider_id: Union[ProviderId, str]) -> str:
        return provider_id.value if isinstance(provider_id, ProviderId) else str(provider_id)

    def register(self, provider_id: Union[ProviderId, str], factory: AdapterFactory) -> None:
        """Register (or replace) the factory for a provider id."""
        key = self._key(provider_id)
        if key in self._factories:
            logger.info(f"Replacing adapter factory for {key}")
        self._factories[key] = factory

    def is_registered(self, provider_id: Union[ProviderId, str]) -> bool:
        return self._key(provider_id) in self._factories

    def available_providers(self) -> list[str]:
        """Registered provider ids, in registration order."""
        return list(self._factories)

    def create(
        self,
        provider_id: Union[ProviderId, str],
        api_key: Optional[str],
        config: Optional[Mapping[str, Any]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> BaseProviderAdapter:
        """Build a fresh adapter for provider_id.

        Args:
            provider_id: Registered provider id (enum or its string value)
            api_key: Credential; an empty key yields an adapter that is not ready
            config: Host settings (model, temperature, ...) for ProviderConfig
            http_client: Optional transport handed to the adapter

        Returns:
            New adapter instance

        Raises:
            UnknownProviderError: If no factory is registered for provider_id
        """
        key = self._key(provider_id)
        factory = self._factories.get(key)
        if factory is None:
            raise UnknownProviderError(key)

        provider_config = ProviderConfig.from_mapping(key, api_key, config)
        return factory(provider_config, http_client=http_client)


def default_registry() -> ProviderRegistry:
    """Return a registry with the five built-in adapters."""
    registry = ProviderRegistry()
    registry.register(ProviderId.GEMINI, GeminiAdapter)
    registry.register(ProviderId.OPENAI, OpenAIAdapter)
    registry.register(ProviderId.ANTHROPIC, AnthropicAdapter)
    registry.register(ProviderId.COHERE, CohereAdapter)
    registry.register(ProviderId.HUGGINGFACE, HuggingFaceAdapter)
    return registry
