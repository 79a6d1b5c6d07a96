"""Agent personas and the command interpreter."""

from .catalog import BUILT_IN_AGENTS, BUILT_IN_IDS
from .service import (
    ACTIVE_KEY,
    CATALOG_KEY,
    HISTORY_KEY,
    HISTORY_LIMIT,
    AgentDecision,
    AgentService,
    AgentSnapshot,
    AgentSuggestion,
)

__all__ = [
    "BUILT_IN_AGENTS",
    "BUILT_IN_IDS",
    "ACTIVE_KEY",
    "CATALOG_KEY",
    "HISTORY_KEY",
    "HISTORY_LIMIT",
    "AgentDecision",
    "AgentService",
    "AgentSnapshot",
    "AgentSuggestion",
]
