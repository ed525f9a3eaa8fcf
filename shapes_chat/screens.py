"""Modal prompts for adding shapes, entering the API key, and attaching images."""

from __future__ import annotations

from typing import Any

from textual.app import ComposeResult
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import Input, Static


class TextPromptScreen(ModalScreen[str | None]):
    """Modal screen to prompt for a single line of text.

    Dismisses with the stripped value on Enter and with None on Escape.
    """

    CSS = """
    TextPromptScreen {
        align: center middle;
    }

    #text-prompt-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #text-prompt-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #text-prompt-input {
        width: 100%;
        margin-bottom: 1;
    }
    """

    def __init__(
        self,
        title: str,
        placeholder: str = "",
        value: str = "",
        password: bool = False,
        help_text: str = "Enter to confirm | Esc to cancel",
    ) -> None:
        super().__init__()
        self._title = title
        self._placeholder = placeholder
        self._value = value
        self._password = password
        self._help_text = help_text

    def compose(self) -> ComposeResult:
        with Container(id="text-prompt-dialog"):
            yield Static(self._title, id="text-prompt-title")
            yield Input(
                value=self._value,
                placeholder=self._placeholder,
                password=self._password,
                id="text-prompt-input",
            )
            yield Static(self._help_text, id="text-prompt-help")

    def on_mount(self) -> None:
        self.query_one("#text-prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "text-prompt-input":
            return
        event.stop()
        self.dismiss(event.value.strip())

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)


def add_agent_prompt() -> TextPromptScreen:
    return TextPromptScreen(
        "Add a shape",
        placeholder="https://shapes.inc/<shape-name>",
    )


def api_key_prompt(current: str = "") -> TextPromptScreen:
    return TextPromptScreen(
        "Shapes API key",
        placeholder="Paste your API key",
        value=current,
        password=True,
        help_text="Stored locally | Enter to save | Esc to cancel",
    )


def attach_image_prompt() -> TextPromptScreen:
    return TextPromptScreen(
        "Attach image",
        placeholder="/path/to/image.png",
    )
