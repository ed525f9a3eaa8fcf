"""Main Textual application for chatting with Shapes agents."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
import sys
from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult, ScreenStackError
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.widgets import Button, Footer, Header, Input, Static

from .config import load_config
from .exceptions import PersistenceError
from .logging_utils import configure_logging
from .models import Agent, Message
from .persistence import ApiKeyStore
from .pipeline import SendOutcome, SendPipeline
from .resources import validate_image_attachment
from .screens import add_agent_prompt, api_key_prompt, attach_image_prompt
from .session import ChatSession
from .task_manager import TaskManager
from .transport import ShapesTransport
from .widgets.conversation import ConversationView
from .widgets.input_box import InputBox
from .widgets.sidebar import AgentSidebar

LOGGER = logging.getLogger(__name__)

WELCOME_TEXT = (
    "Welcome to Shapes Chat\n\n"
    "Select a shape from the sidebar to start a conversation, "
    "or add one with its shapes.inc URL."
)
API_KEY_NOTICE = "Please configure your API key to start chatting."


class ShapesChatApp(App[None]):
    """Discord-style terminal chat with Shapes agents."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        height: 1fr;
    }

    AgentSidebar {
        width: 30;
        padding: 0 1;
        border-right: solid $panel;
        background: $surface;
    }

    #sidebar-title {
        text-style: bold;
        padding: 1 0;
    }

    #agent_list {
        height: 1fr;
    }

    AgentSidebar Button {
        width: 100%;
        margin-top: 1;
    }

    #chat-pane {
        width: 1fr;
    }

    #agent_header {
        height: auto;
        padding: 0 1;
        border-bottom: solid $panel;
    }

    #welcome {
        height: 1fr;
        content-align: center middle;
        color: $text-muted;
    }

    #conversation {
        height: 1fr;
        padding: 1;
    }

    #api_key_notice {
        background: $warning;
        color: $background;
        padding: 0 1;
    }

    InputBox {
        height: auto;
        padding: 0 1 1 1;
        border-top: solid $panel;
        background: $surface;
    }

    #input_row, #attachment_row {
        height: auto;
    }

    #attachment_row.hidden {
        display: none;
    }

    #attachment_label {
        width: 1fr;
        padding: 1 0 0 0;
    }

    #message_input {
        width: 1fr;
    }

    #attach_button, #send_button {
        margin-left: 1;
        min-width: 10;
    }

    .hidden {
        display: none;
    }

    MessageBubble {
        width: 85%;
        margin: 1 0;
        padding: 1 2;
        border: round $panel;
    }

    .message-user {
        background: $primary;
    }

    .message-agent {
        background: $surface;
    }
    """

    DEFAULT_ACTION_DESCRIPTIONS: dict[str, str] = {
        "send_message": "Send",
        "add_agent": "Add Shape",
        "configure_api_key": "API Key",
        "attach_image": "Attach",
        "remove_attachment": "Remove",
        "quit": "Quit",
    }

    def __init__(
        self,
        config: dict[str, dict[str, Any]] | None = None,
        api_key_store: ApiKeyStore | None = None,
        transport: ShapesTransport | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        configure_logging(self.config["logging"])
        LOGGER.info(
            "app.python",
            extra={
                "event": "app.python",
                "executable": sys.executable,
                "version": sys.version.split()[0],
            },
        )
        self.window_title = str(self.config["app"]["title"])
        shapes_cfg = self.config["shapes"]
        self.media_host = str(shapes_cfg["media_host"])
        self.api_key_store = api_key_store or ApiKeyStore(
            str(self.config["persistence"]["api_key_path"])
        )
        self.session = ChatSession(api_key=self.api_key_store.load())
        self.transport = transport or ShapesTransport(
            base_url=str(shapes_cfg["api_base_url"]),
            timeout=shapes_cfg.get("timeout_seconds"),
        )
        self.pipeline = SendPipeline(
            self.transport,
            notifier=self._notify_send_failure,
            namespace=str(shapes_cfg["model_namespace"]),
        )
        self._task_manager = TaskManager()
        self._unsubscribe: Callable[[], None] | None = None
        self._binding_specs = self._binding_specs_from_config(self.config)
        super().__init__()

    @classmethod
    def _binding_specs_from_config(
        cls, config: dict[str, dict[str, Any]]
    ) -> list[Binding]:
        keybinds = config.get("keybinds", {})
        bindings: list[Binding] = []
        for action_name, description in cls.DEFAULT_ACTION_DESCRIPTIONS.items():
            binding_key = keybinds.get(action_name)
            if isinstance(binding_key, str) and binding_key.strip():
                bindings.append(
                    Binding(
                        key=binding_key.strip(),
                        action=action_name,
                        description=description,
                        show=True,
                    )
                )
        return bindings

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="app-root"):
            yield AgentSidebar()
            with Vertical(id="chat-pane"):
                yield Static("", id="agent_header")
                yield Static(WELCOME_TEXT, id="welcome")
                yield ConversationView(
                    id="conversation",
                    media_host=self.media_host,
                    show_timestamps=bool(self.config["ui"]["show_timestamps"]),
                    user_color=str(self.config["ui"]["user_message_color"]),
                    agent_color=str(self.config["ui"]["agent_message_color"]),
                )
                yield Static(API_KEY_NOTICE, id="api_key_notice")
                yield InputBox()
        yield Footer()

    async def on_mount(self) -> None:
        self.title = self.window_title
        for binding in self._binding_specs:
            self.bind(
                binding.key,
                binding.action,
                description=binding.description,
                show=binding.show,
            )
        await self._show_selected_agent()

    # -- rendering ----------------------------------------------------------

    def _refresh_chrome(self) -> None:
        agent = self.session.selected
        sidebar = self.query_one(AgentSidebar)
        sidebar.set_agents(self.session.agents, agent.id if agent else None)

        header = self.query_one("#agent_header", Static)
        welcome = self.query_one("#welcome", Static)
        conversation = self.query_one(ConversationView)
        input_box = self.query_one(InputBox)
        if agent is None:
            header.display = False
            conversation.display = False
            input_box.display = False
            welcome.display = True
        else:
            header.update(
                Text(f"[{agent.initial}] {agent.name}  {agent.reference_url}")
            )
            header.display = True
            conversation.display = True
            input_box.display = True
            welcome.display = False
            self.query_one("#message_input", Input).placeholder = (
                f"Message {agent.name}..."
            )

        self.query_one("#api_key_notice", Static).display = not self.session.api_key
        busy = self.pipeline.busy or not self.session.api_key
        input_box.set_busy(busy)
        pending = self.session.attachments.pending
        input_box.show_attachment(pending.name if pending else None)

    async def _show_selected_agent(self) -> None:
        """Render the selected agent's log and follow its future changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        conversation = self.query_one(ConversationView)
        await conversation.clear_messages()
        agent = self.session.selected
        if agent is not None:
            conversation.agent_name = agent.name
            store = self.session.store_for(agent)
            for message in store.messages:
                conversation.add_message(message)
            self._unsubscribe = store.subscribe(self._on_store_changed)
        self._refresh_chrome()

    def _on_store_changed(self, action: str, message: Message) -> None:
        conversation = self.query_one(ConversationView)
        if action == "append":
            conversation.add_message(message)
        else:
            conversation.update_message(message)

    def _notify_send_failure(self, text: str) -> None:
        self.notify(text, title="Send failed", severity="error")

    # -- sending ------------------------------------------------------------

    async def action_send_message(self) -> None:
        """Start a send in the background; the composer stays disabled meanwhile."""
        if self.pipeline.busy:
            self.sub_title = "Busy. Wait for the current reply."
            return
        text = self.query_one("#message_input", Input).value
        task = asyncio.create_task(self._send(text), name="send")
        self._task_manager.add(task)

    async def _send(self, text: str) -> None:
        agent: Agent | None = self.session.selected
        store = self.session.store_for(agent) if agent is not None else None
        if store is None:
            return
        self.query_one(InputBox).set_busy(True)
        self.sub_title = "Waiting for response..."
        try:
            outcome = await self.pipeline.send(
                store,
                agent,
                self.session.api_key,
                text,
                self.session.attachments,
                on_composer_cleared=self._clear_composer,
            )
        finally:
            self._restore_composer()
        if outcome is SendOutcome.SUCCESS:
            self.sub_title = f"Reply from {agent.name}" if agent else ""

    def _restore_composer(self) -> None:
        """Re-enable the composer after a send; skipped once the UI is torn down."""
        if not self.is_running:
            return
        try:
            self.sub_title = ""
            self._refresh_chrome()
            if self.session.api_key:
                self.query_one("#message_input", Input).focus()
        except (NoMatches, ScreenStackError):
            LOGGER.debug(
                "app.composer.unavailable",
                extra={"event": "app.composer.unavailable"},
            )

    def _clear_composer(self) -> None:
        self.query_one("#message_input", Input).value = ""
        self.query_one(InputBox).show_attachment(None)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "message_input":
            event.stop()
            await self.action_send_message()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send_button":
            await self.action_send_message()

    # -- agents -------------------------------------------------------------

    async def action_add_agent(self) -> None:
        self.push_screen(add_agent_prompt(), callback=self._on_agent_url_dismissed)

    async def _on_agent_url_dismissed(self, url: str | None) -> None:
        if not url:
            return
        agent = self.session.add_agent(url)
        if agent is None:
            return
        if self.session.selected is agent:
            await self._show_selected_agent()
        else:
            self._refresh_chrome()

    async def on_agent_sidebar_add_agent_requested(
        self, _message: AgentSidebar.AddAgentRequested
    ) -> None:
        await self.action_add_agent()

    async def on_agent_sidebar_agent_selected(
        self, message: AgentSidebar.AgentSelected
    ) -> None:
        selected = self.session.selected
        if selected is not None and selected.id == message.agent.id:
            return
        self.session.select(message.agent.id)
        await self._show_selected_agent()

    # -- API key ------------------------------------------------------------

    async def action_configure_api_key(self) -> None:
        self.push_screen(
            api_key_prompt(self.session.api_key),
            callback=self._on_api_key_dismissed,
        )

    def _on_api_key_dismissed(self, value: str | None) -> None:
        if value is None:
            return
        self.session.set_api_key(value)
        try:
            if value:
                self.api_key_store.save(value)
            else:
                self.api_key_store.clear()
        except PersistenceError as exc:
            self.notify(f"Could not save API key: {exc}", severity="warning")
        self._refresh_chrome()

    async def on_agent_sidebar_api_key_requested(
        self, _message: AgentSidebar.ApiKeyRequested
    ) -> None:
        await self.action_configure_api_key()

    # -- attachments --------------------------------------------------------

    async def action_attach_image(self) -> None:
        if self.pipeline.busy or self.session.selected is None:
            return
        self.push_screen(attach_image_prompt(), callback=self._on_image_path_dismissed)

    def _on_image_path_dismissed(self, path: str | None) -> None:
        if not path:
            return
        ok, message, resolved = validate_image_attachment(
            path,
            max_bytes=int(self.config["attachments"]["max_image_bytes"]),
        )
        if not ok or resolved is None:
            LOGGER.warning(
                "app.attachment.rejected",
                extra={"event": "app.attachment.rejected", "reason": message},
            )
            self.notify(message, severity="warning")
            return
        self.session.attachments.acquire_preview(str(resolved))
        self._refresh_chrome()

    async def action_remove_attachment(self) -> None:
        self.session.attachments.release()
        self._refresh_chrome()

    async def on_input_box_attach_requested(
        self, _message: InputBox.AttachRequested
    ) -> None:
        await self.action_attach_image()

    async def on_input_box_remove_attachment_requested(
        self, _message: InputBox.RemoveAttachmentRequested
    ) -> None:
        await self.action_remove_attachment()

    # -- shutdown -----------------------------------------------------------

    async def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        try:
            await self._task_manager.cancel_all()
        finally:
            self.session.close()
            await self.transport.aclose()
