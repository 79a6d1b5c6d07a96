"""Key-value persistence for agent state and provider settings."""

from .kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from .provider_settings import ProviderSettingsStore, SavedProviderSettings

__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "ProviderSettingsStore",
    "SavedProviderSettings",
]
