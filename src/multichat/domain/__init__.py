"""Domain entities and port interfaces for multichat."""

from .entities import (
    MAX_IMAGE_BYTES,
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
from .ports import IKeyValueStore, IProviderAdapter

__all__ = [
    # Entities
    "MAX_IMAGE_BYTES",
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
    # Ports
    "IKeyValueStore",
    "IProviderAdapter",
]
