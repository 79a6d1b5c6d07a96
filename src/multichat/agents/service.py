"""
Agent Service.

Interprets raw user input before any model call. Slash commands
(``/agent``, ``/switch``, ``/list``, ``/create``, ``/reset``) produce
UI-only outcomes; otherwise a keyword scan may silently activate a
persona; anything else passes through with the active persona's prompt.

State (catalog of custom agents, active-agent pointer, capped activation
history) is written through to an IKeyValueStore on every mutation.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from ..domain.entities import ActivationRecord, Agent, CommandOutcome, OutcomeType, utc_now
from ..domain.ports import IKeyValueStore
from ..exceptions import AgentDataError
from ..storage.kv_store import InMemoryKeyValueStore
from .catalog import BUILT_IN_AGENTS, BUILT_IN_IDS, CUSTOM_AGENT_COLOR, DEFAULT_AGENT_COLOR

logger = logging.getLogger(__name__)

CATALOG_KEY = "multichat.agents.catalog"
ACTIVE_KEY = "multichat.agents.active"
HISTORY_KEY = "multichat.agents.history"

HISTORY_LIMIT = 50
SILENT_ACTIVATION_THRESHOLD = 2
MAX_SUGGESTIONS = 2

CREATE_USAGE = "name:description:prompt:icon[:keyword1,keyword2]"


# =============================================================================
# Snapshot schemas
# =============================================================================


class AgentRecord(BaseModel):
    """Serialized agent, as stored and exported."""

    id: str
    name: str
    description: str = ""
    prompt: str
    icon: str = "🤖"
    color: str = DEFAULT_AGENT_COLOR
    keywords: list[str] = Field(default_factory=list)
    custom: bool = True
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    def to_agent(self) -> Agent:
        # anything outside the built-in set is a custom agent
        return Agent(
            id=self.id,
            name=self.name,
            description=self.description,
            prompt=self.prompt,
            icon=self.icon,
            color=self.color,
            keywords=frozenset(self.keywords),
            custom=True,
            created_at=self.created_at,
        )


class ActivationEntry(BaseModel):
    agent_id: str = Field(validation_alias=AliasChoices("agent_id", "agent"))
    timestamp: datetime
    context: str = "manual-activation"

    def to_record(self) -> ActivationRecord:
        return ActivationRecord(agent_id=self.agent_id, timestamp=self.timestamp, context=self.context)


class AgentSnapshot(BaseModel):
    """Backup document produced by export_agent_data()."""

    agents: Optional[dict[str, AgentRecord]] = None
    history: Optional[list[ActivationEntry]] = None
    active_agent: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("active_agent", "activeAgent")
    )


_CATALOG_ADAPTER = TypeAdapter(dict[str, AgentRecord])
_HISTORY_ADAPTER = TypeAdapter(list[ActivationEntry])


# =============================================================================
# Results
# =============================================================================


@dataclass
class AgentDecision:
    """Whether input should go to the model, and with which persona."""

    should_process: bool
    response: Optional[CommandOutcome] = None
    agent_prompt: Optional[str] = None
    silent_agent: Optional[Agent] = None


@dataclass
class AgentSuggestion:
    agent: Agent
    relevance: int
    message: str


# =============================================================================
# Service
# =============================================================================


class AgentService:
    """Persona catalog and command interpreter.

    States are Idle (no active agent) and PersonaActive(agent). Built-in
    agents are seeded on construction; custom agents, the active pointer
    and the activation history are restored from the store.

    Usage:
        agents = AgentService(JsonFileKeyValueStore("state.json"))

        outcome = agents.interpret("/agent code-master")
        if not outcome.forwards_to_model:
            show_system_message(outcome.message)

        outcome = agents.interpret("preciso de ajuda com este código")
        # PASS_THROUGH, outcome.system_prompt == Code Master prompt
    """

    def __init__(self, store: Optional[IKeyValueStore] = None):
        """Initialize the service and restore persisted state.

        Args:
            store: Persistent key-value store (in-memory when omitted)
        """
        self.store = store or InMemoryKeyValueStore()
        self._agents: dict[str, Agent] = {}
        self._active: Optional[Agent] = None
        self._history: list[ActivationRecord] = []
        self._commands: dict[str, Callable[[str], CommandOutcome]] = {
            "/agent": self._handle_agent,
            "/switch": self._handle_switch,
            "/list": self._handle_list,
            "/create": self._handle_create,
            "/reset": self._handle_reset,
        }

        self._load_agents()
        self._load_active_agent()
        self._load_history()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _seed_built_ins(self) -> None:
        self._agents = {agent.id: agent for agent in BUILT_IN_AGENTS}

    def _load_agents(self) -> None:
        self._seed_built_ins()
        raw = self.store.get(CATALOG_KEY)
        if not raw:
            return
        try:
            records = _CATALOG_ADAPTER.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid saved agent catalog: {e.error_count()} error(s)")
            return
        for record in records.values():
            if record.id in BUILT_IN_IDS:
                continue
            self._agents[record.id] = record.to_agent()

    def _load_active_agent(self) -> None:
        agent_id = self.store.get(ACTIVE_KEY)
        if not agent_id:
            return
        agent = self._agents.get(agent_id)
        if agent is None:
            logger.info(f"Saved active agent '{agent_id}' no longer exists, clearing it")
            self.store.remove(ACTIVE_KEY)
            return
        self._active = agent

    def _load_history(self) -> None:
        raw = self.store.get(HISTORY_KEY)
        if not raw:
            return
        try:
            entries = _HISTORY_ADAPTER.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid saved agent history: {e.error_count()} error(s)")
            return
        self._history = [entry.to_record() for entry in entries][-HISTORY_LIMIT:]

    def _save_agents(self) -> None:
        custom = {agent.id: agent.to_dict() for agent in self._agents.values() if agent.custom}
        self.store.set(CATALOG_KEY, json.dumps(custom, ensure_ascii=False))

    def _save_active(self) -> None:
        if self._active is None:
            self.store.remove(ACTIVE_KEY)
        else:
            self.store.set(ACTIVE_KEY, self._active.id)

    def _save_history(self) -> None:
        self.store.set(HISTORY_KEY, json.dumps([record.to_dict() for record in self._history]))

    # ------------------------------------------------------------------
    # Interpreter
    # ------------------------------------------------------------------

    def interpret(self, raw_text: str) -> CommandOutcome:
        """Classify one line of user input. Never raises for bad commands.

        Args:
            raw_text: Input exactly as typed

        Returns:
            CommandOutcome; forwards_to_model tells the caller whether to
            send raw_text on to the AI manager
        """
        stripped = raw_text.strip()
        # first matching prefix in table order, the rest is the argument
        for command, handler in self._commands.items():
            if stripped.startswith(command):
                return handler(stripped[len(command):].strip())

        silent = self._detect_keyword_activation(raw_text)
        if silent is not None:
            return silent

        return CommandOutcome(
            type=OutcomeType.PASS_THROUGH,
            system_prompt=self.get_agent_prompt(),
            text=raw_text,
        )

    def _best_keyword_match(self, text: str) -> Optional[Agent]:
        """Agent with a strictly highest keyword count of at least two."""
        scores = [(agent, agent.keyword_matches(text)) for agent in self._agents.values()]
        if not scores:
            return None
        best_agent, best = max(scores, key=lambda item: item[1])
        if best < SILENT_ACTIVATION_THRESHOLD:
            return None
        if sum(1 for _, count in scores if count == best) > 1:
            return None
        return best_agent

    def _detect_keyword_activation(self, text: str) -> Optional[CommandOutcome]:
        agent = self._best_keyword_match(text)
        if agent is None:
            return None

        # silent activations move the pointer but are not explicit history entries
        self._active = agent
        self._save_active()
        logger.info(f"Agent silently activated: {agent.id}")
        return CommandOutcome(
            type=OutcomeType.SILENT_ACTIVATION,
            message=f"🤖 {agent.name} activated silently",
            agent=agent,
            system_prompt=agent.prompt,
            text=text,
        )

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    def _agent_help(self) -> str:
        lines = [f"{a.icon} {a.name} - /switch {a.id}" for a in self._agents.values()]
        return "📋 Available agents:\n" + "\n".join(lines)

    def _handle_agent(self, args: str) -> CommandOutcome:
        if not args:
            return CommandOutcome(
                type=OutcomeType.SHOW_HELP,
                message=self._agent_help(),
                agents=self.get_all_agents(),
            )

        agent = self.activate_agent(args)
        if agent is None:
            return CommandOutcome(type=OutcomeType.ERROR, message=f"❌ Agent '{args}' not found")
        return CommandOutcome(
            type=OutcomeType.AGENT_ACTIVATED,
            message=f"✨ {agent.name} activated",
            agent=agent,
            system_prompt=agent.prompt,
        )

    def _handle_switch(self, args: str) -> CommandOutcome:
        return self._handle_agent(args)

    def _handle_list(self, args: str) -> CommandOutcome:
        agents = self.get_all_agents()
        return CommandOutcome(
            type=OutcomeType.AGENT_LIST,
            message=f"🎯 {len(agents)} agents available",
            agents=agents,
        )

    def _handle_create(self, args: str) -> CommandOutcome:
        if not args:
            return CommandOutcome(
                type=OutcomeType.CREATE_HELP,
                message=f"💡 Usage: /create {CREATE_USAGE}",
            )

        parts = args.split(":")
        if len(parts) < 4:
            return CommandOutcome(
                type=OutcomeType.ERROR,
                message=f"❌ Invalid format. Use: {CREATE_USAGE}",
            )

        name, description, prompt, icon = (part.strip() for part in parts[:4])
        keywords = parts[4].split(",") if len(parts) > 4 else []
        agent_id = re.sub(r"\s+", "-", name.lower())
        if not agent_id:
            return CommandOutcome(type=OutcomeType.ERROR, message="❌ Agent name cannot be empty")
        if agent_id in BUILT_IN_IDS:
            return CommandOutcome(
                type=OutcomeType.ERROR,
                message=f"❌ '{agent_id}' is a built-in agent and cannot be replaced",
            )

        agent = Agent(
            id=agent_id,
            name=name,
            description=description,
            prompt=prompt,
            icon=icon or "🤖",
            color=DEFAULT_AGENT_COLOR,
            keywords=frozenset(keywords),
            custom=True,
            created_at=utc_now(),
        )
        self._add_custom(agent)
        return CommandOutcome(
            type=OutcomeType.AGENT_CREATED,
            message=f"✅ Agent '{name}' created",
            agent=agent,
        )

    def _handle_reset(self, args: str) -> CommandOutcome:
        self.deactivate_agent()
        return CommandOutcome(type=OutcomeType.RESET, message="🔄 Back to the default assistant")

    # ------------------------------------------------------------------
    # Catalog & activation
    # ------------------------------------------------------------------

    def _add_custom(self, agent: Agent) -> None:
        self._agents[agent.id] = agent
        self._save_agents()
        if self._active is not None and self._active.id == agent.id:
            self._active = agent
        logger.info(f"Custom agent saved: {agent.id}")

    def _set_active(self, agent: Agent, context: str = "manual-activation") -> None:
        self._active = agent
        self._history.append(ActivationRecord(agent_id=agent.id, context=context))
        if len(self._history) > HISTORY_LIMIT:
            self._history = self._history[-HISTORY_LIMIT:]
        self._save_active()
        self._save_history()
        logger.info(f"Agent activated: {agent.id}")

    @property
    def active_agent(self) -> Optional[Agent]:
        return self._active

    def get_active_agent(self) -> Optional[Agent]:
        return self._active

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def activate_agent(self, agent_id: str) -> Optional[Agent]:
        """Explicitly activate an agent, recording it in the history.

        Returns:
            The activated agent, or None if agent_id is unknown
        """
        agent = self._agents.get(agent_id)
        if agent is None:
            return None
        self._set_active(agent)
        return agent

    def deactivate_agent(self) -> bool:
        """Return to Idle (base system prompt only)."""
        self._active = None
        self._save_active()
        return True

    def create_custom_agent(self, name: str, prompt: str, color: str = CUSTOM_AGENT_COLOR) -> Agent:
        """Create a keyword-less custom agent with a generated id."""
        agent = Agent(
            id=f"custom-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}",
            name=name,
            description=f"Custom agent: {name}",
            prompt=prompt,
            color=color,
            custom=True,
            created_at=utc_now(),
        )
        self._add_custom(agent)
        return agent

    def delete_custom_agent(self, agent_id: str) -> bool:
        """Delete a custom agent. Built-ins and unknown ids return False.

        Deleting the active agent returns the service to Idle.
        """
        agent = self._agents.get(agent_id)
        if agent is None or agent.is_built_in:
            return False

        del self._agents[agent_id]
        self._save_agents()
        if self._active is not None and self._active.id == agent_id:
            self.deactivate_agent()
        logger.info(f"Custom agent deleted: {agent_id}")
        return True

    def get_agent_prompt(self) -> Optional[str]:
        return self._active.prompt if self._active else None

    def get_all_agents(self) -> list[Agent]:
        return list(self._agents.values())

    def get_agent_names(self) -> list[str]:
        return [agent.name for agent in self._agents.values()]

    def get_custom_agents(self) -> list[Agent]:
        return [agent for agent in self._agents.values() if agent.custom]

    def get_agent_history(self) -> list[ActivationRecord]:
        return list(self._history)

    # ------------------------------------------------------------------
    # Integration helpers
    # ------------------------------------------------------------------

    def should_process_with_agent(self, text: str) -> AgentDecision:
        """Interpret text and report whether the model should see it."""
        outcome = self.interpret(text)
        if not outcome.forwards_to_model:
            return AgentDecision(should_process=False, response=outcome)

        silent = outcome.agent if outcome.type == OutcomeType.SILENT_ACTIVATION else None
        return AgentDecision(
            should_process=True,
            response=outcome,
            agent_prompt=self.get_agent_prompt(),
            silent_agent=silent,
        )

    def suggest_agent(self, text: str) -> list[AgentSuggestion]:
        """Up to two agents whose keywords appear in text, most relevant first."""
        suggestions: list[AgentSuggestion] = []
        for agent in self._agents.values():
            relevance = agent.keyword_matches(text)
            if relevance > 0:
                suggestions.append(AgentSuggestion(
                    agent=agent,
                    relevance=relevance,
                    message=f"💡 {agent.name} might be able to help",
                ))
        suggestions.sort(key=lambda s: s.relevance, reverse=True)
        return suggestions[:MAX_SUGGESTIONS]

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def export_agent_data(self) -> dict[str, Any]:
        """Snapshot of the full catalog, history and active pointer."""
        return {
            "agents": {agent.id: agent.to_dict() for agent in self._agents.values()},
            "history": [record.to_dict() for record in self._history],
            "active_agent": self._active.id if self._active else None,
        }

    def import_agent_data(self, data: dict[str, Any]) -> None:
        """Restore a snapshot produced by export_agent_data().

        Sections absent from data are left untouched. Built-in entries in
        the catalog section are ignored; the custom agents replace the
        current ones.

        Raises:
            AgentDataError: If data does not validate
        """
        try:
            snapshot = AgentSnapshot.model_validate(data)
        except ValidationError as e:
            raise AgentDataError(
                f"Invalid agent data: {e.error_count()} validation error(s)", cause=e
            ) from e

        if snapshot.agents is not None:
            self._seed_built_ins()
            for record in snapshot.agents.values():
                if record.id not in BUILT_IN_IDS:
                    self._agents[record.id] = record.to_agent()
            self._save_agents()
            if self._active is not None:
                self._active = self._agents.get(self._active.id)
                self._save_active()

        if snapshot.history is not None:
            self._history = [entry.to_record() for entry in snapshot.history][-HISTORY_LIMIT:]
            self._save_history()

        if "active_agent" in snapshot.model_fields_set:
            agent = self._agents.get(snapshot.active_agent) if snapshot.active_agent else None
            if snapshot.active_agent and agent is None:
                logger.warning(f"Imported active agent '{snapshot.active_agent}' is not in the catalog")
            self._active = agent
            self._save_active()

        logger.info(f"Agent data imported: {len(self.get_custom_agents())} custom agent(s)")
