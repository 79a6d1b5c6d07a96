"""
Chat Coordinator.

Runs one user turn through the agent service and, when the input is meant
for the model, through the AI manager with the active persona merged into
the system prompt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from ..agents.service import AgentService
from ..domain.entities import MAX_IMAGE_BYTES, CommandOutcome, ImageAttachment, Message, SendOptions
from .manager import AIManager

logger = logging.getLogger(__name__)


def merge_system_prompt(base: Optional[str], persona: Optional[str]) -> Optional[str]:
    """Join the caller's base prompt and a persona fragment."""
    if base and persona:
        return f"{base}\n\n{persona}"
    return base or persona


@dataclass
class ChatTurn:
    """Result of one handled turn.

    Attributes:
        outcome: How the agent service classified the input
        reply: Assistant text, None for UI-only outcomes
        message: The user message that was sent, None for UI-only outcomes
    """

    outcome: CommandOutcome
    reply: Optional[str] = None
    message: Optional[Message] = None

    @property
    def is_ui_only(self) -> bool:
        return self.reply is None


class ChatCoordinator:
    """Agent service first, then the AI manager.

    Usage:
        coordinator = ChatCoordinator(manager, AgentService(store))
        turn = await coordinator.handle(history, "explique este algoritmo")
        if turn.is_ui_only:
            show_system_message(turn.outcome.message)
        else:
            history.extend([turn.message, Message.assistant(turn.reply)])
    """

    def __init__(
        self,
        manager: AIManager,
        agents: AgentService,
        max_image_bytes: int = MAX_IMAGE_BYTES,
    ):
        self.manager = manager
        self.agents = agents
        self.max_image_bytes = max_image_bytes

    async def handle(
        self,
        history: list[Message],
        raw_text: str,
        options: Optional[SendOptions] = None,
        attachments: Optional[list[ImageAttachment]] = None,
    ) -> ChatTurn:
        """Interpret raw_text and send it to the model if appropriate.

        Args:
            history: Conversation so far (not modified)
            raw_text: New user input
            options: Base send options (provider, system prompt, params)
            attachments: Images for the new user turn

        Returns:
            ChatTurn with the outcome and, for forwarded input, the reply

        Raises:
            AttachmentTooLargeError: If an image exceeds max_image_bytes
            NoActiveServiceError: If no provider is configured
            ProviderError: Propagated from the adapter
        """
        for image in attachments or ():
            image.validate(self.max_image_bytes)

        outcome = self.agents.interpret(raw_text)
        if not outcome.forwards_to_model:
            logger.debug(f"Handled agent command locally: {outcome.type.value}")
            return ChatTurn(outcome=outcome)

        if outcome.message:
            logger.info(outcome.message)

        base = options or SendOptions()
        send_options = replace(
            base,
            system_prompt=merge_system_prompt(base.system_prompt, outcome.system_prompt),
        )
        user_message = Message.user(raw_text, attachments=attachments)
        reply = await self.manager.send_message([*history, user_message], send_options)
        return ChatTurn(outcome=outcome, reply=reply, message=user_message)
