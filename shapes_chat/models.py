"""Conversation records exchanged between the user and a shape agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import threading
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

if TYPE_CHECKING:
    from .resources import PreviewHandle

UNKNOWN_AGENT_NAME = "Unknown Bot"


class Sender(str, Enum):
    """Who authored a message in the conversation log."""

    USER = "user"
    AGENT = "agent"


class MessageIdFactory:
    """Issue time-based ids that never repeat within a process.

    Ids are millisecond timestamps; when two ids are requested inside the same
    millisecond the later one is bumped so the sequence stays strictly increasing.
    """

    def __init__(self, clock: Any = None) -> None:
        self._clock = clock or time.time
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)


new_message_id = MessageIdFactory()


@dataclass(frozen=True)
class Message:
    """A single entry in the conversation log."""

    id: str
    content: str
    sender: Sender
    timestamp: datetime
    local_media_ref: PreviewHandle | None = None

    @classmethod
    def create(
        cls,
        content: str,
        sender: Sender,
        local_media_ref: PreviewHandle | None = None,
    ) -> Message:
        """Build a message stamped with a fresh id and the current time.

        Media references are only kept on user messages.
        """
        return cls(
            id=new_message_id(),
            content=content,
            sender=sender,
            timestamp=datetime.now(UTC),
            local_media_ref=local_media_ref if sender is Sender.USER else None,
        )

    @property
    def is_user(self) -> bool:
        return self.sender is Sender.USER


@dataclass(frozen=True)
class Agent:
    """A remote chat persona identified by its reference URL."""

    id: str
    name: str
    reference_url: str

    @classmethod
    def from_reference_url(cls, url: str) -> Agent:
        """Derive an agent record from a user-supplied shape URL."""
        normalized = url.strip()
        segment = last_path_segment(normalized)
        name = segment.replace("-", " ", 1) if segment else UNKNOWN_AGENT_NAME
        return cls(id=new_message_id(), name=name, reference_url=normalized)

    @property
    def initial(self) -> str:
        return self.name[:1].upper() if self.name else "?"


def last_path_segment(url: str) -> str:
    """Return the last non-empty path segment of ``url`` or an empty string."""
    parsed = urlparse(url)
    path = parsed.path if parsed.scheme or parsed.netloc else url
    segments = [part for part in path.split("/") if part.strip()]
    return segments[-1].strip() if segments else ""


@dataclass
class PendingAttachment:
    """The single file selected in the composer, plus its transient preview."""

    path: str
    preview: PreviewHandle

    @property
    def name(self) -> str:
        return self.path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class SendRequest:
    """Exact payload handed to the transport; never stored."""

    model: str
    content: str | list[dict[str, Any]] = field(default="")

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body expected by the chat-completion endpoint."""
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": self.content}],
        }
