"""Scrollable conversation view widget."""

from __future__ import annotations

from textual.containers import VerticalScroll

from ..classifier import DEFAULT_MEDIA_HOST
from ..models import Message, Sender
from .message import MessageBubble


class ConversationView(VerticalScroll):
    """A scrollable container that hosts message bubbles in log order."""

    def __init__(
        self,
        *args,
        media_host: str = DEFAULT_MEDIA_HOST,
        show_timestamps: bool = True,
        user_color: str | None = None,
        agent_color: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.media_host = media_host
        self.show_timestamps = show_timestamps
        self._colors = {Sender.USER: user_color, Sender.AGENT: agent_color}
        self.agent_name = "Agent"
        self._bubbles: dict[str, MessageBubble] = {}

    def add_message(self, message: Message) -> MessageBubble:
        """Create and mount a bubble for ``message`` at the end of the view."""
        bubble = MessageBubble(
            message,
            agent_name=self.agent_name,
            media_host=self.media_host,
            show_timestamp=self.show_timestamps,
        )
        bubble.add_class(f"message-{message.sender.value}")
        color = self._colors.get(message.sender)
        if color:
            bubble.styles.background = color
        self._bubbles[message.id] = bubble
        self.mount(bubble)
        self.call_after_refresh(self.scroll_end, animate=False)
        return bubble

    def update_message(self, message: Message) -> MessageBubble | None:
        """Rerender the bubble of a patched message, if it is shown."""
        bubble = self._bubbles.get(message.id)
        if bubble is not None:
            bubble.set_message(message)
        return bubble

    def bubble_for(self, message_id: str) -> MessageBubble | None:
        return self._bubbles.get(message_id)

    async def clear_messages(self) -> None:
        """Remove every bubble, e.g. when another agent is selected."""
        self._bubbles.clear()
        await self.remove_children()
