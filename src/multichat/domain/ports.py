"""
Port interfaces (abstract base classes) for multichat.

These define the contracts that adapters and host collaborators must
implement. Following the Ports & Adapters (Hexagonal) architecture pattern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .entities import Message, ModelInfo, SendOptions


# ============================================
# Provider Adapter Interface
# ============================================


class IProviderAdapter(ABC):
    """Interface for AI provider adapters (Gemini, GPT, Claude, ...).

    Implementations translate the canonical message model into one vendor's
    wire protocol while presenting a consistent interface to AIManager.
    """

    @abstractmethod
    async def send_message(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> str:
        """Send the conversation and return the assistant text.

        Args:
            history: Ordered conversation; the last entry is the new user turn
            options: System prompt, attachments and provider parameters

        Returns:
            Assistant reply text

        Raises:
            ProviderError: Classified failure (see multichat.exceptions)
        """
        pass

    @abstractmethod
    def get_model_info(self) -> ModelInfo:
        """Return provider name, model id and capabilities."""
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """Return True iff a non-empty credential is configured."""
        pass

    @abstractmethod
    def format_history(
        self,
        history: list[Message],
        options: Optional[SendOptions] = None,
    ) -> Any:
        """Build the provider-native request payload (no I/O)."""
        pass


# ============================================
# Persistence Interface
# ============================================


class IKeyValueStore(ABC):
    """Host persistent key-value store (browser local storage in a web host)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None if absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete key; missing keys are ignored."""
        pass
