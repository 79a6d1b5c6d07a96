"""Provider routing and turn coordination."""

from .coordinator import ChatCoordinator, ChatTurn, merge_system_prompt
from .manager import AIManager

__all__ = [
    "AIManager",
    "ChatCoordinator",
    "ChatTurn",
    "merge_system_prompt",
]
