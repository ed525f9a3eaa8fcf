"""Per-run chat session: known agents, their logs, and the compose state."""

from __future__ import annotations

import logging

from .message_store import MessageStore
from .models import Agent
from .resources import AttachmentSlot, PreviewRegistry

LOGGER = logging.getLogger(__name__)


class ChatSession:
    """Hold everything the UI needs between sends.

    Each agent gets its own ``MessageStore`` for the lifetime of the session;
    nothing is persisted. The composer's ``AttachmentSlot`` is shared across
    agents because there is a single composer.
    """

    def __init__(self, api_key: str = "", registry: PreviewRegistry | None = None) -> None:
        self.api_key = api_key
        self.registry = registry or PreviewRegistry()
        self.attachments = AttachmentSlot(self.registry)
        self.agents: list[Agent] = []
        self.selected: Agent | None = None
        self._stores: dict[str, MessageStore] = {}
        self._closed = False

    def add_agent(self, reference_url: str) -> Agent | None:
        """Register a shape from its URL; selects it when nothing is selected."""
        if not reference_url.strip():
            return None
        agent = Agent.from_reference_url(reference_url)
        self.agents.append(agent)
        self._stores[agent.id] = MessageStore(self.registry)
        if self.selected is None:
            self.selected = agent
        LOGGER.info(
            "session.agent.added",
            extra={"event": "session.agent.added", "agent": agent.name},
        )
        return agent

    def select(self, agent_id: str) -> Agent | None:
        """Make the agent with ``agent_id`` the active conversation."""
        for agent in self.agents:
            if agent.id == agent_id:
                self.selected = agent
                return agent
        return None

    def store_for(self, agent: Agent) -> MessageStore:
        """Return the log of ``agent``, creating it if needed."""
        store = self._stores.get(agent.id)
        if store is None:
            store = MessageStore(self.registry)
            self._stores[agent.id] = store
        return store

    @property
    def active_store(self) -> MessageStore | None:
        return self.store_for(self.selected) if self.selected is not None else None

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key.strip()

    def close(self) -> None:
        """Release the composer preview and every handle held by the logs."""
        if self._closed:
            return
        self._closed = True
        self.attachments.close()
        for store in self._stores.values():
            store.close()
