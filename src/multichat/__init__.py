"""
multichat - Multi-provider AI orchestration for chat applications.

A uniform async interface over five LLM HTTP APIs plus a small command
engine that switches agent personas from within the chat input.

Architecture:
- Domain: Canonical message model, personas and port interfaces
- Providers: Gemini, OpenAI, Anthropic, Cohere and Hugging Face adapters
- Orchestrator: AIManager routing and the ChatCoordinator turn flow
- Agents: Persona catalog and slash-command / keyword interpreter
- Storage: Key-value stores for agent state and provider settings

Key Features:
- Provider-specific wire normalization (history, system prompt, images)
- One error taxonomy for every vendor failure
- Silent persona activation from keywords
- Write-through persistence of agent state
"""

from .agents import AgentService
from .config import Settings, build_coordinator, build_manager, configure_logging
from .domain.entities import (
    ActivationRecord,
    Agent,
    CommandOutcome,
    ImageAttachment,
    Message,
    MessageRole,
    ModelInfo,
    OutcomeType,
    ProviderId,
    SendOptions,
)
from .exceptions import (
    AgentDataError,
    AttachmentTooLargeError,
    ConfigurationError,
    InvalidCredentialError,
    InvalidHistoryError,
    InvalidResponseError,
    MissingCredentialError,
    ModelLoadingError,
    MultichatError,
    NetworkError,
    NoActiveServiceError,
    ProviderAPIError,
    ProviderError,
    RateLimitedError,
    TransientUnavailableError,
    UnknownProviderError,
)
from .orchestrator import AIManager, ChatCoordinator, ChatTurn
from .providers import ProviderConfig, ProviderRegistry, default_registry
from .storage import InMemoryKeyValueStore, JsonFileKeyValueStore, ProviderSettingsStore

__version__ = "0.1.0"

__all__ = [
    # Domain
    "ActivationRecord",
    "Agent",
    "CommandOutcome",
    "ImageAttachment",
    "Message",
    "MessageRole",
    "ModelInfo",
    "OutcomeType",
    "ProviderId",
    "SendOptions",
    # Orchestration
    "AIManager",
    "AgentService",
    "ChatCoordinator",
    "ChatTurn",
    # Providers
    "ProviderConfig",
    "ProviderRegistry",
    "default_registry",
    # Storage
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "ProviderSettingsStore",
    # Config
    "Settings",
    "build_coordinator",
    "build_manager",
    "configure_logging",
    # Errors
    "AgentDataError",
    "AttachmentTooLargeError",
    "ConfigurationError",
    "InvalidCredentialError",
    "InvalidHistoryError",
    "InvalidResponseError",
    "MissingCredentialError",
    "ModelLoadingError",
    "MultichatError",
    "NetworkError",
    "NoActiveServiceError",
    "ProviderAPIError",
    "ProviderError",
    "RateLimitedError",
    "TransientUnavailableError",
    "UnknownProviderError",
]
