"""Sidebar listing the shapes the user can chat with."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.message import Message
from textual.widgets import Button, OptionList, Static

from ..models import Agent


class AgentSidebar(Vertical):
    """Agent list plus buttons to add a shape and configure the API key."""

    class AgentSelected(Message):
        """Posted when the user picks an agent from the list."""

        def __init__(self, agent: Agent) -> None:
            super().__init__()
            self.agent = agent

    class AddAgentRequested(Message):
        """Posted when the user clicks the add-shape button."""

    class ApiKeyRequested(Message):
        """Posted when the user clicks the API key button."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._agents: list[Agent] = []

    def compose(self) -> ComposeResult:
        yield Static("Shapes", id="sidebar-title")
        yield OptionList(id="agent_list")
        yield Button("Add shape", id="add_agent_button", variant="primary")
        yield Button("API key", id="api_key_button", variant="default")

    @staticmethod
    def agent_label(agent: Agent, selected: bool = False) -> Text:
        marker = ">" if selected else " "
        return Text(f"{marker} [{agent.initial}] {agent.name}")

    def set_agents(self, agents: list[Agent], selected_id: str | None) -> None:
        """Replace the listed agents, marking the selected one."""
        self._agents = list(agents)
        option_list = self.query_one("#agent_list", OptionList)
        option_list.clear_options()
        option_list.add_options(
            [self.agent_label(agent, agent.id == selected_id) for agent in self._agents]
        )

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        index = event.option_index
        if 0 <= index < len(self._agents):
            self.post_message(self.AgentSelected(self._agents[index]))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "add_agent_button":
            event.stop()
            self.post_message(self.AddAgentRequested())
        elif event.button.id == "api_key_button":
            event.stop()
            self.post_message(self.ApiKeyRequested())
