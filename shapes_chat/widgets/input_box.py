"""Composer row: message field, attachment controls, and send button."""

from __future__ import annotations

from rich.text import Text
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, Input, Static


class InputBox(Vertical):
    """Input region with message field, attach/remove buttons, and send button."""

    class AttachRequested(Message):
        """Posted when the user clicks the attach button."""

    class RemoveAttachmentRequested(Message):
        """Posted when the user clicks the remove-attachment button."""

    def compose(self):  # type: ignore[override]
        with Horizontal(id="attachment_row", classes="hidden"):
            yield Static("", id="attachment_label")
            yield Button("Remove", id="remove_attachment_button", variant="error")
        with Horizontal(id="input_row"):
            yield Input(placeholder="Message...", id="message_input")
            yield Button("Image", id="attach_button", variant="default")
            yield Button("Send", id="send_button", variant="success")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Forward attachment button clicks as messages."""
        if event.button.id == "attach_button":
            event.stop()
            self.post_message(self.AttachRequested())
        elif event.button.id == "remove_attachment_button":
            event.stop()
            self.post_message(self.RemoveAttachmentRequested())

    def show_attachment(self, name: str | None) -> None:
        """Show the pending attachment's name, or hide the row when None."""
        row = self.query_one("#attachment_row", Horizontal)
        if name:
            self.query_one("#attachment_label", Static).update(Text(f"Attached: {name}"))
            row.remove_class("hidden")
        else:
            row.add_class("hidden")

    def set_busy(self, busy: bool) -> None:
        """Disable the composer while a send is in flight."""
        for widget_id in ("#message_input", "#attach_button", "#send_button"):
            self.query_one(widget_id).disabled = busy
