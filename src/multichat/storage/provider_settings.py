"""
Per-provider settings persistence.

Each provider's saved settings live under ``multichat.providers.<id>`` as
one JSON document, validated with pydantic on the way back in.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from ..domain.entities import ProviderId
from ..domain.ports import IKeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "multichat.providers."


class SavedProviderSettings(BaseModel):
    """Settings a host saved for one provider.

    Unknown keys (provider-specific parameters such as ``wait_for_model``)
    are kept and handed back verbatim.
    """

    model_config = ConfigDict(extra="allow")

    api_key: str = ""
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None

    def config(self) -> dict[str, Any]:
        """Settings without the key, ready for AIManager.add_service()."""
        return self.model_dump(exclude={"api_key"}, exclude_none=True)


class ProviderSettingsStore:
    """Saves and restores provider settings through an IKeyValueStore.

    Usage:
        settings = ProviderSettingsStore(store)
        settings.save("openai", api_key="sk-...", settings={"model": "gpt-4"})

        saved = settings.load("openai")
        manager.add_service("openai", saved.api_key, saved.config())
    """

    def __init__(self, store: IKeyValueStore):
        self.store = store

    @staticmethod
    def _key(provider_id: Union[ProviderId, str]) -> str:
        pid = provider_id.value if isinstance(provider_id, ProviderId) else str(provider_id)
        return f"{KEY_PREFIX}{pid}"

    def save(
        self,
        provider_id: Union[ProviderId, str],
        api_key: Optional[str] = None,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> SavedProviderSettings:
        saved = SavedProviderSettings.model_validate({**(settings or {}), "api_key": (api_key or "").strip()})
        self.store.set(self._key(provider_id), saved.model_dump_json(exclude_none=True))
        return saved

    def load(self, provider_id: Union[ProviderId, str]) -> Optional[SavedProviderSettings]:
        """Return saved settings, or None when absent or unreadable."""
        raw = self.store.get(self._key(provider_id))
        if raw is None:
            return None
        try:
            return SavedProviderSettings.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding invalid saved settings for {provider_id}: {e}")
            return None

    def remove(self, provider_id: Union[ProviderId, str]) -> None:
        self.store.remove(self._key(provider_id))

    def saved_providers(self) -> list[ProviderId]:
        """Built-in providers that have saved settings, in enum order."""
        return [pid for pid in ProviderId if self.store.get(self._key(pid)) is not None]
