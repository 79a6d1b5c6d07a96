"""
Unit tests for environment configuration and wiring.
"""

import logging

import pytest

from multichat.config import (
    DEFAULT_PROVIDER_ORDER,
    Settings,
    build_coordinator,
    build_manager,
    build_store,
)
from multichat.domain.entities import MAX_IMAGE_BYTES, ProviderId
from multichat.exceptions import ConfigurationError
from multichat.providers import GeminiAdapter, HuggingFaceAdapter, ProviderRegistry
from multichat.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, ProviderSettingsStore


@pytest.fixture
def registry():
    """Registry with only raw-HTTP adapters so no SDK is needed."""
    registry = ProviderRegistry()
    registry.register(ProviderId.GEMINI, GeminiAdapter)
    registry.register(ProviderId.HUGGINGFACE, HuggingFaceAdapter)
    return registry


class TestSettingsFromEnv:
    """Tests for Settings.from_env with an explicit mapping."""

    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.api_keys == {}
        assert settings.provider_order == DEFAULT_PROVIDER_ORDER
        assert settings.default_provider is None
        assert settings.max_image_bytes == MAX_IMAGE_BYTES
        assert settings.timeout == 60.0
        assert settings.log_level == "INFO"
        assert settings.state_file is None

    def test_keys_and_models(self):
        settings = Settings.from_env({
            "GEMINI_API_KEY": "g-key",
            "OPENAI_API_KEY": "  ",
            "HUGGINGFACE_API_KEY": "hf-key",
            "HUGGINGFACE_MODEL": "HuggingFaceH4/zephyr-7b-beta",
        })

        assert settings.api_keys == {ProviderId.GEMINI: "g-key", ProviderId.HUGGINGFACE: "hf-key"}
        assert settings.configured_providers() == [ProviderId.GEMINI, ProviderId.HUGGINGFACE]
        assert settings.provider_config(ProviderId.HUGGINGFACE) == {
            "timeout": 60.0,
            "model": "HuggingFaceH4/zephyr-7b-beta",
        }

    def test_explicit_order_then_defaults(self):
        settings = Settings.from_env({"MULTICHAT_PROVIDER_ORDER": "Cohere, openai,cohere"})

        assert settings.provider_order == [
            ProviderId.COHERE,
            ProviderId.OPENAI,
            ProviderId.GEMINI,
            ProviderId.ANTHROPIC,
            ProviderId.HUGGINGFACE,
        ]

    def test_numbers_and_paths(self):
        settings = Settings.from_env({
            "MULTICHAT_MAX_IMAGE_BYTES": "2048",
            "MULTICHAT_TIMEOUT": "12.5",
            "MULTICHAT_LOG_LEVEL": "debug",
            "MULTICHAT_STATE_FILE": "/tmp/state.json",
            "MULTICHAT_DEFAULT_PROVIDER": "anthropic",
        })

        assert settings.max_image_bytes == 2048
        assert settings.timeout == 12.5
        assert settings.log_level == "DEBUG"
        assert settings.state_file == "/tmp/state.json"
        assert settings.default_provider == ProviderId.ANTHROPIC

    @pytest.mark.parametrize("env", [
        {"MULTICHAT_PROVIDER_ORDER": "gemini,mistral"},
        {"MULTICHAT_DEFAULT_PROVIDER": "mistral"},
        {"MULTICHAT_TIMEOUT": "soon"},
        {"MULTICHAT_MAX_IMAGE_BYTES": "1.5"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigurationError):
            Settings.from_env(env)


class TestBuildManager:
    """Tests for build_manager wiring."""

    def test_adds_configured_providers_in_order(self, registry):
        settings = Settings.from_env({
            "HUGGINGFACE_API_KEY": "hf-key",
            "GEMINI_API_KEY": "g-key",
            "MULTICHAT_PROVIDER_ORDER": "huggingface",
        })

        manager = build_manager(settings, registry=registry)

        assert manager.active_services() == ["huggingface", "gemini"]
        assert manager.default_service == "huggingface"

    def test_default_provider_override(self, registry):
        settings = Settings.from_env({
            "GEMINI_API_KEY": "g-key",
            "HUGGINGFACE_API_KEY": "hf-key",
            "MULTICHAT_DEFAULT_PROVIDER": "huggingface",
        })

        assert build_manager(settings, registry=registry).default_service == "huggingface"

    def test_unconfigured_default_is_ignored(self, registry, caplog):
        settings = Settings.from_env({
            "GEMINI_API_KEY": "g-key",
            "MULTICHAT_DEFAULT_PROVIDER": "huggingface",
        })

        with caplog.at_level(logging.WARNING):
            manager = build_manager(settings, registry=registry)

        assert manager.default_service == "gemini"
        assert "not configured" in caplog.text

    def test_unregistered_provider_is_skipped(self, registry):
        settings = Settings.from_env({"COHERE_API_KEY": "co-key", "GEMINI_API_KEY": "g-key"})

        manager = build_manager(settings, registry=registry)

        assert manager.active_services() == ["gemini"]

    def test_saved_settings_fill_in_and_env_wins(self, registry):
        saved = ProviderSettingsStore(InMemoryKeyValueStore())
        saved.save("gemini", api_key="saved-g", settings={"model": "gemini-1.5-pro", "temperature": 0.1})
        saved.save("huggingface", api_key="saved-hf", settings={"wait_for_model": False})
        settings = Settings.from_env({"GEMINI_API_KEY": "env-g", "MULTICHAT_TIMEOUT": "5"})

        manager = build_manager(settings, registry=registry, saved_settings=saved)

        gemini = manager.get_service("gemini")
        assert gemini.config.api_key == "env-g"
        assert gemini.model_name == "gemini-1.5-pro"
        assert gemini.config.temperature == 0.1
        assert gemini.config.timeout == 5.0
        hf = manager.get_service("huggingface")
        assert hf.config.api_key == "saved-hf"
        assert hf.wait_for_model() is False

    def test_no_keys_gives_empty_manager(self, registry):
        assert build_manager(Settings.from_env({}), registry=registry).has_active_services() is False


class TestBuildCoordinator:
    """Tests for full wiring."""

    def test_store_selection(self, tmp_path):
        assert isinstance(build_store(Settings()), InMemoryKeyValueStore)
        settings = Settings(state_file=str(tmp_path / "state.json"))
        assert isinstance(build_store(settings), JsonFileKeyValueStore)

    def test_shared_store(self, registry):
        store = InMemoryKeyValueStore()
        ProviderSettingsStore(store).save("gemini", api_key="saved-g")
        settings = Settings.from_env({"MULTICHAT_MAX_IMAGE_BYTES": "2048"})

        coordinator = build_coordinator(settings, store=store, registry=registry)
        coordinator.agents.interpret("/agent code-master")

        assert coordinator.manager.active_services() == ["gemini"]
        assert coordinator.max_image_bytes == 2048
        assert store.get("multichat.agents.active") == "code-master"
