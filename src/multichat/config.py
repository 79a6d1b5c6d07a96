"""
Environment-driven configuration.

Reads API keys and tuning knobs from the environment (after loading a
``.env`` file with python-dotenv) and wires up the AI manager and the
agent service from them.

Environment variables:
    GEMINI_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY,
    COHERE_API_KEY, HUGGINGFACE_API_KEY: Provider credentials
    GEMINI_MODEL, OPENAI_MODEL, ...: Optional per-provider model override
    MULTICHAT_PROVIDER_ORDER: Comma list, priority order for build_manager
    MULTICHAT_DEFAULT_PROVIDER: Default provider if configured
    MULTICHAT_MAX_IMAGE_BYTES: Attachment size limit (default 10 MiB)
    MULTICHAT_TIMEOUT: Request timeout in seconds (default 60)
    MULTICHAT_LOG_LEVEL: Logging level name (default INFO)
    MULTICHAT_STATE_FILE: JSON file for agent state and provider settings
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from .agents.service import AgentService
from .domain.entities import MAX_IMAGE_BYTES, ProviderId
from .domain.ports import IKeyValueStore
from .exceptions import ConfigurationError, MultichatError
from .orchestrator.coordinator import ChatCoordinator
from .orchestrator.manager import AIManager
from .providers.registry import ProviderRegistry
from .storage.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from .storage.provider_settings import ProviderSettingsStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_PROVIDER_ORDER = [
    ProviderId.GEMINI,
    ProviderId.OPENAI,
    ProviderId.ANTHROPIC,
    ProviderId.COHERE,
    ProviderId.HUGGINGFACE,
]


def _env_prefix(provider_id: ProviderId) -> str:
    return provider_id.value.upper()


def _parse_provider(value: str, variable: str) -> ProviderId:
    try:
        return ProviderId(value.strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"{variable} has unknown provider '{value}'",
            details={"variable": variable, "valid": [p.value for p in ProviderId]},
        ) from None


def _parse_number(env: Mapping[str, str], variable: str, default: Any, kind: type) -> Any:
    raw = env.get(variable)
    if raw is None or not raw.strip():
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(
            f"{variable} must be a number, got '{raw}'",
            details={"variable": variable},
        ) from None


@dataclass
class Settings:
    """Process configuration.

    Attributes:
        api_keys: Credential per provider (only providers with a key)
        models: Model override per provider
        provider_order: Priority order used by build_manager
        default_provider: Preferred default, if configured
        max_image_bytes: Attachment size limit
        timeout: Request timeout in seconds
        log_level: Logging level name
        state_file: JSON state file (in-memory state when None)
    """

    api_keys: dict[ProviderId, str] = field(default_factory=dict)
    models: dict[ProviderId, str] = field(default_factory=dict)
    provider_order: list[ProviderId] = field(default_factory=lambda: list(DEFAULT_PROVIDER_ORDER))
    default_provider: Optional[ProviderId] = None
    max_image_bytes: int = MAX_IMAGE_BYTES
    timeout: float = 60.0
    log_level: str = "INFO"
    state_file: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> Settings:
        """Build settings from the environment.

        Args:
            env: Mapping to read instead of os.environ
            dotenv: Load a .env file first (ignored when env is given)

        Raises:
            ConfigurationError: On unparseable values
        """
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        api_keys: dict[ProviderId, str] = {}
        models: dict[ProviderId, str] = {}
        for pid in ProviderId:
            key = (env.get(f"{_env_prefix(pid)}_API_KEY") or "").strip()
            if key:
                api_keys[pid] = key
            model = (env.get(f"{_env_prefix(pid)}_MODEL") or "").strip()
            if model:
                models[pid] = model

        order_raw = env.get("MULTICHAT_PROVIDER_ORDER", "")
        order: list[ProviderId] = []
        for item in order_raw.split(","):
            if item.strip():
                pid = _parse_provider(item, "MULTICHAT_PROVIDER_ORDER")
                if pid not in order:
                    order.append(pid)
        # providers left out of the explicit order keep their default rank
        order.extend(pid for pid in DEFAULT_PROVIDER_ORDER if pid not in order)

        default_raw = (env.get("MULTICHAT_DEFAULT_PROVIDER") or "").strip()
        default = _parse_provider(default_raw, "MULTICHAT_DEFAULT_PROVIDER") if default_raw else None

        return cls(
            api_keys=api_keys,
            models=models,
            provider_order=order,
            default_provider=default,
            max_image_bytes=_parse_number(env, "MULTICHAT_MAX_IMAGE_BYTES", MAX_IMAGE_BYTES, int),
            timeout=_parse_number(env, "MULTICHAT_TIMEOUT", 60.0, float),
            log_level=(env.get("MULTICHAT_LOG_LEVEL") or "INFO").strip().upper(),
            state_file=(env.get("MULTICHAT_STATE_FILE") or "").strip() or None,
        )

    def configured_providers(self) -> list[ProviderId]:
        """Providers with a credential, in priority order."""
        return [pid for pid in self.provider_order if pid in self.api_keys]

    def provider_config(self, provider_id: ProviderId) -> dict[str, Any]:
        config: dict[str, Any] = {"timeout": self.timeout}
        if provider_id in self.models:
            config["model"] = self.models[provider_id]
        return config


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging with the standard multichat format."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def build_store(settings: Settings) -> IKeyValueStore:
    """JSON-file store when MULTICHAT_STATE_FILE is set, in-memory otherwise."""
    if settings.state_file:
        return JsonFileKeyValueStore(settings.state_file)
    return InMemoryKeyValueStore()


def build_manager(
    settings: Settings,
    registry: Optional[ProviderRegistry] = None,
    saved_settings: Optional[ProviderSettingsStore] = None,
) -> AIManager:
    """Create an AIManager with every provider that has a credential.

    Providers are added in priority order, so the first one becomes the
    default unless settings.default_provider names a configured provider.
    Settings saved through ProviderSettingsStore fill in providers without
    an environment key; environment values win where both exist. A provider
    that fails to build is logged and skipped.

    Args:
        settings: Process settings
        registry: Adapter factories (built-ins when omitted)
        saved_settings: Host-saved provider settings

    Returns:
        Configured AIManager (possibly with no services)
    """
    manager = AIManager(registry=registry)

    for pid in settings.provider_order:
        saved = saved_settings.load(pid) if saved_settings else None
        api_key = settings.api_keys.get(pid) or (saved.api_key if saved else "")
        if not api_key:
            continue

        config = saved.config() if saved else {}
        config.update(settings.provider_config(pid))
        try:
            adapter = manager.add_service(pid, api_key, config)
            logger.info(f"Using {adapter.PROVIDER_NAME} provider with model: {adapter.model_name}")
        except (MultichatError, ImportError) as e:
            logger.warning(f"Failed to initialize {pid.value} provider: {e}")

    if settings.default_provider:
        if settings.default_provider.value in manager.active_services():
            manager.set_default_service(settings.default_provider)
        else:
            logger.warning(
                f"Default provider {settings.default_provider.value} is not configured, "
                f"keeping {manager.default_service}"
            )

    if not manager.has_active_services():
        logger.warning("No AI provider could be initialized - chat will be unavailable")
    return manager


def build_coordinator(
    settings: Settings,
    store: Optional[IKeyValueStore] = None,
    registry: Optional[ProviderRegistry] = None,
) -> ChatCoordinator:
    """Wire manager, agent service and saved provider settings to one store."""
    store = store if store is not None else build_store(settings)
    manager = build_manager(settings, registry=registry, saved_settings=ProviderSettingsStore(store))
    return ChatCoordinator(manager, AgentService(store), max_image_bytes=settings.max_image_bytes)
