"""
Domain entities for the multichat orchestration layer.

These are pure domain objects with no infrastructure dependencies.
They define the canonical message model shared by every provider adapter
and the persona/command types used by the agent service.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from ..exceptions import AttachmentTooLargeError

# 10 MiB, the upload limit enforced by producers before adapters see an image
MAX_IMAGE_BYTES = 10 * 1024 * 1024


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# Providers
# ============================================


class ProviderId(str, Enum):
    """Identifier of a supported AI provider."""

    GEMINI = "gemini"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    COHERE = "cohere"
    HUGGINGFACE = "huggingface"


@dataclass(frozen=True)
class ModelInfo:
    """Static capabilities of a configured adapter.

    Attributes:
        provider_name: Human-readable provider name
        model_id: Model identifier sent on the wire
        supports_images: True if image attachments reach the model
        max_context_tokens: Advertised context window
    """

    provider_name: str
    model_id: str
    supports_images: bool
    max_context_tokens: int


# ============================================
# Message Types
# ============================================


class MessageRole(str, Enum):
    """Role of a message in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ImageAttachment:
    """An image attached to a user turn.

    Attributes:
        mime_type: MIME type, e.g. 'image/png'
        data: Base64-encoded image bytes
        name: Original file name
        size: Size of the decoded image in bytes
    """

    mime_type: str
    data: str
    name: str
    size: int

    @classmethod
    def from_bytes(
        cls,
        raw: bytes,
        mime_type: str,
        name: str,
        max_bytes: int = MAX_IMAGE_BYTES,
    ) -> ImageAttachment:
        """Encode raw image bytes, rejecting files over max_bytes."""
        if len(raw) > max_bytes:
            raise AttachmentTooLargeError(name, len(raw), max_bytes)
        return cls(
            mime_type=mime_type,
            data=base64.b64encode(raw).decode("ascii"),
            name=name,
            size=len(raw),
        )

    def validate(self, max_bytes: int = MAX_IMAGE_BYTES) -> ImageAttachment:
        """Raise AttachmentTooLargeError if this image exceeds max_bytes."""
        if self.size > max_bytes:
            raise AttachmentTooLargeError(self.name, self.size, max_bytes)
        return self

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass
class Message:
    """A single turn in a conversation.

    The role is fixed at creation. Edits go through edit(), which only
    replaces the text.

    Attributes:
        role: Message role (user, assistant, system)
        text: Message text content
        timestamp: Creation timestamp (UTC)
        attachments: Images attached to this turn
    """

    role: MessageRole
    text: str
    timestamp: datetime = field(default_factory=utc_now)
    attachments: tuple[ImageAttachment, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "role", MessageRole(self.role))
        self.attachments = tuple(self.attachments)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "role" and "role" in self.__dict__:
            raise AttributeError("Message role cannot be changed after creation")
        super().__setattr__(name, value)

    def edit(self, text: str) -> None:
        """Replace the text of this message, keeping its role."""
        self.text = text

    @classmethod
    def user(cls, text: str, attachments: Optional[list[ImageAttachment]] = None) -> Message:
        return cls(role=MessageRole.USER, text=text, attachments=tuple(attachments or ()))

    @classmethod
    def assistant(cls, text: str) -> Message:
        return cls(role=MessageRole.ASSISTANT, text=text)

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role=MessageRole.SYSTEM, text=text)


@dataclass
class SendOptions:
    """Per-call options for send_message.

    Attributes:
        provider_id: Adapter to route to (default adapter when None)
        system_prompt: Base system prompt, persona fragments merged in
        attachments: Images for the final user turn
        params: Provider parameters overriding the adapter config
            (temperature, max_tokens, top_p, penalties, wait_for_model, ...)
    """

    provider_id: Optional[Union[ProviderId, str]] = None
    system_prompt: Optional[str] = None
    attachments: list[ImageAttachment] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.provider_id is not None:
            try:
                self.provider_id = ProviderId(self.provider_id)
            except ValueError:
                # host-registered provider outside the built-in set
                pass


# ============================================
# Agents (personas)
# ============================================


@dataclass(frozen=True)
class Agent:
    """A persona: a named system-prompt fragment plus keyword triggers.

    Attributes:
        id: Unique catalog id (e.g. 'code-master')
        name: Display name
        description: One-line description
        prompt: System-prompt fragment merged into outgoing requests
        icon: Display icon
        color: Colour tag used by the UI
        keywords: Lower-cased trigger words for silent activation
        custom: True for user-created agents, False for built-ins
        created_at: Creation time of custom agents
    """

    id: str
    name: str
    description: str
    prompt: str
    icon: str = "🤖"
    color: str = "#6b7280"
    keywords: frozenset[str] = frozenset()
    custom: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(
            self,
            "keywords",
            frozenset(k.strip().lower() for k in self.keywords if k and k.strip()),
        )

    @property
    def is_built_in(self) -> bool:
        return not self.custom

    def keyword_matches(self, text: str) -> int:
        """Count keywords contained in text (case-insensitive substring)."""
        lowered = text.lower()
        return sum(1 for keyword in self.keywords if keyword in lowered)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "prompt": self.prompt,
            "icon": self.icon,
            "color": self.color,
            "keywords": sorted(self.keywords),
            "custom": self.custom,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class ActivationRecord:
    """An entry in the capped agent activation history."""

    agent_id: str
    timestamp: datetime = field(default_factory=utc_now)
    context: str = "manual-activation"

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
        }


class OutcomeType(str, Enum):
    """Kinds of result produced by AgentService.interpret()."""

    AGENT_ACTIVATED = "agent-activated"
    SILENT_ACTIVATION = "silent-activation"
    AGENT_LIST = "agent-list"
    AGENT_CREATED = "agent-created"
    CREATE_HELP = "create-help"
    SHOW_HELP = "show-help"
    RESET = "reset"
    ERROR = "error"
    PASS_THROUGH = "pass-through"


# Outcomes that still go to the model; everything else is UI-only
_FORWARDED_OUTCOMES = {OutcomeType.SILENT_ACTIVATION, OutcomeType.PASS_THROUGH}


@dataclass
class CommandOutcome:
    """Result of interpreting one line of user input.

    Attributes:
        type: Outcome kind
        message: Display text for the caller (system message or advisory)
        agent: Agent affected by the outcome, if any
        agents: Agent listing for 'agent-list'
        system_prompt: Active persona prompt to merge into the request
        text: Raw input to forward for forwarded outcomes
    """

    type: OutcomeType
    message: str = ""
    agent: Optional[Agent] = None
    agents: Optional[list[Agent]] = None
    system_prompt: Optional[str] = None
    text: Optional[str] = None

    @property
    def forwards_to_model(self) -> bool:
        return self.type in _FORWARDED_OUTCOMES

    @property
    def is_error(self) -> bool:
        return self.type == OutcomeType.ERROR
