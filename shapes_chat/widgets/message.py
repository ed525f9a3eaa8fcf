"""Message bubble widget for conversation rendering."""

from __future__ import annotations

from typing import Any

from rich.markdown import Markdown
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Static

from ..classifier import DEFAULT_MEDIA_HOST, MediaKind, MediaMatch, classify_message
from ..models import Message, Sender

MEDIA_LABELS: dict[MediaKind, str] = {
    MediaKind.IMAGE: "Image",
    MediaKind.AUDIO: "Audio",
}


def media_line(match: MediaMatch) -> Text:
    """Render a clickable line for an embedded image or audio link."""
    label = MEDIA_LABELS.get(match.kind, "Link")
    url = match.url or ""
    line = Text(f"[{label}] ", style="bold")
    line.append(url, style=f"underline link {url}")
    return line


class MessageBubble(Vertical):
    """Render a single chat message with its attachment and media blocks."""

    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
    }
    MessageBubble > #header-block {
        padding: 0;
        color: $text-muted;
    }
    MessageBubble > #attachment-block {
        color: $text-muted;
        padding: 0 1;
        border-left: solid $accent;
    }
    MessageBubble > #content-block {
        height: auto;
    }
    MessageBubble > #media-block {
        padding: 0 1;
        border-left: solid $success;
    }
    """

    def __init__(
        self,
        message: Message,
        agent_name: str = "Agent",
        media_host: str = DEFAULT_MEDIA_HOST,
        show_timestamp: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.message = message
        self.agent_name = agent_name
        self.media_host = media_host
        self.show_timestamp = show_timestamp
        self.media = classify_message(message, media_host)
        self.add_class(f"role-{message.sender.value}")

        self._header_widget: Static | None = None
        self._attachment_widget: Static | None = None
        self._content_widget: Static | None = None
        self._media_widget: Static | None = None

    @property
    def role_prefix(self) -> str:
        """Return a human-friendly author label."""
        return "You" if self.message.sender is Sender.USER else self.agent_name

    def _compose_header(self) -> Text:
        header = Text(self.role_prefix, style="bold")
        if self.show_timestamp:
            stamp = self.message.timestamp.astimezone().strftime("%H:%M:%S")
            header.append(f"  {stamp}", style="dim italic")
        return header

    def compose(self) -> ComposeResult:
        """Compose header, attachment, prose, and media blocks."""
        self._header_widget = Static(self._compose_header(), id="header-block")
        self._attachment_widget = Static("", id="attachment-block")
        self._content_widget = Static("", id="content-block")
        self._media_widget = Static("", id="media-block")
        yield self._header_widget
        yield self._attachment_widget
        yield self._content_widget
        yield self._media_widget

    def on_mount(self) -> None:
        self._refresh_content()

    def _refresh_content(self) -> None:
        if (
            self._content_widget is None
            or self._media_widget is None
            or self._attachment_widget is None
        ):
            return

        ref = self.message.local_media_ref
        if ref is not None:
            name = ref.path.replace("\\", "/").rsplit("/", 1)[-1]
            self._attachment_widget.update(Text(f"Attached image: {name}"))
            self._attachment_widget.display = True
        else:
            self._attachment_widget.display = False

        text = self.media.remainder.rstrip()
        if not text:
            self._content_widget.display = False
        elif self.message.sender is Sender.USER:
            # User text is shown verbatim, links included.
            self._content_widget.update(Text(text))
            self._content_widget.display = True
        else:
            self._content_widget.update(Markdown(text))
            self._content_widget.display = True

        if self.media.has_media:
            self._media_widget.update(media_line(self.media))
            self._media_widget.display = True
        else:
            self._media_widget.display = False

    def set_message(self, message: Message) -> None:
        """Replace the rendered message (used after an in-place patch)."""
        self.message = message
        self.media = classify_message(message, self.media_host)
        self._refresh_content()
