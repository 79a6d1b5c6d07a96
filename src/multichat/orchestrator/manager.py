"""
AI Manager.

Owns the configured provider adapters, tracks which one is the default and
routes send_message calls. The manager never retries and never falls back
to another provider: adapter errors reach the caller unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

import httpx

from ..domain.entities import Message, ProviderId, SendOptions
from ..exceptions import NoActiveServiceError
from ..providers.base import BaseProviderAdapter
from ..providers.registry import ProviderRegistry, default_registry

logger = logging.getLogger(__name__)


class AIManager:
    """Registry of live adapters with a default for routing.

    Usage:
        manager = AIManager()
        manager.add_service("gemini", api_key="...")
        manager.add_service("openai", api_key="sk-...", config={"model": "gpt-4"})

        # Routed to the default (gemini, the first added)
        reply = await manager.send_message(history)

        # Routed explicitly
        reply = await manager.send_message(history, SendOptions(provider_id="openai"))
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the manager.

        Args:
            registry: Adapter factories (the five built-ins when omitted)
            http_client: Optional transport shared by every adapter created here
        """
        self.registry = registry or default_registry()
        self._http_client = http_client
        self._services: dict[str, BaseProviderAdapter] = {}
        self._default_id: Optional[str] = None
        # replaced adapters, closed on aclose
        self._retired: list[BaseProviderAdapter] = []

    @staticmethod
    def _key(provider_id: Union[ProviderId, str]) -> str:
        return provider_id.value if isinstance(provider_id, ProviderId) else str(provider_id)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_service(
        self,
        provider_id: Union[ProviderId, str],
        api_key: Optional[str],
        config: Optional[Mapping[str, Any]] = None,
    ) -> BaseProviderAdapter:
        """Create and register an adapter.

        The first service added becomes the default. Adding an id that is
        already present replaces the previous adapter instance; the replaced
        one is closed by ``aclose()``.

        Raises:
            UnknownProviderError: If the registry has no factory for provider_id
        """
        key = self._key(provider_id)
        adapter = self.registry.create(key, api_key, config, http_client=self._http_client)

        replaced = self._services.get(key)
        if replaced is not None:
            self._retired.append(replaced)
        self._services[key] = adapter
        if self._default_id is None:
            self._default_id = key

        action = "added" if replaced is None else "replaced"
        logger.info(f"AI service {action}: {key} (model={adapter.model_name})")
        return adapter

    def remove_service(self, provider_id: Union[ProviderId, str]) -> None:
        """Drop an adapter; the next configured one becomes default if needed.

        Removal does not close the adapter, callers that own it can still
        await ``adapter.aclose()``.
        """
        key = self._key(provider_id)
        if self._services.pop(key, None) is None:
            return

        logger.info(f"AI service removed: {key}")
        if self._default_id == key:
            self._default_id = next(iter(self._services), None)
            if self._default_id:
                logger.info(f"Default AI service is now {self._default_id}")

    def set_default_service(self, provider_id: Union[ProviderId, str]) -> None:
        """Make provider_id the default. No-op if it is not configured."""
        key = self._key(provider_id)
        if key in self._services:
            self._default_id = key

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def default_service(self) -> Optional[str]:
        return self._default_id

    def get_service(
        self,
        provider_id: Optional[Union[ProviderId, str]] = None,
    ) -> Optional[BaseProviderAdapter]:
        """Return the adapter for provider_id, or the default when omitted."""
        key = self._key(provider_id) if provider_id is not None else self._default_id
        if key is None:
            return None
        return self._services.get(key)

    def active_services(self) -> list[str]:
        """Configured provider ids, in insertion order."""
        return list(self._services)

    def has_active_services(self) -> bool:
        return bool(self._services)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def send_message(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> str:
        """Route a conversation to one adapter and return its reply.

        Args:
            history: Ordered conversation ending with the new user turn
            options: provider_id selects the adapter (default otherwise)

        Returns:
            Assistant reply text

        Raises:
            NoActiveServiceError: If no adapter matches
            ProviderError: Propagated unchanged from the adapter
        """
        options = options or SendOptions()
        adapter = self.get_service(options.provider_id)
        if adapter is None:
            if options.provider_id is not None:
                raise NoActiveServiceError(
                    f"AI service '{self._key(options.provider_id)}' is not configured"
                )
            raise NoActiveServiceError()

        logger.debug(f"Routing message to {adapter.provider} ({len(history)} turns)")
        return await adapter.send_message(history, options)

    async def aclose(self) -> None:
        """Close every registered adapter's transport, and any replaced ones."""
        retired, self._retired = self._retired, []
        for adapter in [*retired, *self._services.values()]:
            await adapter.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
