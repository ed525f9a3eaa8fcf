"""Ordered, append-only conversation log with observer notifications."""

from __future__ import annotations

from collections.abc import Callable
import dataclasses
import logging

from .exceptions import MessageNotFoundError
from .models import Message
from .resources import PreviewRegistry

LOGGER = logging.getLogger(__name__)

StoreListener = Callable[[str, Message], None]


class MessageStore:
    """Hold the messages exchanged with one agent for the current session.

    Messages are kept in append order; the log is never reordered or pruned.
    The store owns the preview handles referenced by its messages and revokes
    them when closed.
    """

    def __init__(self, registry: PreviewRegistry | None = None) -> None:
        self.registry = registry
        self._messages: list[Message] = []
        self._index: dict[str, int] = {}
        self._listeners: list[StoreListener] = []
        self._closed = False

    @property
    def messages(self) -> tuple[Message, ...]:
        """Return an immutable snapshot of the log."""
        return tuple(self._messages)

    @property
    def message_count(self) -> int:
        return len(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Message | None:
        position = self._index.get(message_id)
        return self._messages[position] if position is not None else None

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def append(self, message: Message) -> None:
        """Append ``message`` at the end of the log."""
        if message.id in self._index:
            raise ValueError(f"Duplicate message id {message.id!r}.")
        self._index[message.id] = len(self._messages)
        self._messages.append(message)
        self._notify("append", message)

    def patch(self, message_id: str, updater: Callable[[str], str]) -> Message:
        """Rewrite the content of an existing message in place.

        Only ``content`` changes; position, sender, timestamp and media
        reference are preserved.
        """
        position = self._index.get(message_id)
        if position is None:
            raise MessageNotFoundError(f"No message with id {message_id!r}.")
        current = self._messages[position]
        updated = dataclasses.replace(current, content=updater(current.content))
        self._messages[position] = updated
        self._notify("patch", updated)
        return updated

    def _notify(self, action: str, message: Message) -> None:
        for listener in list(self._listeners):
            try:
                listener(action, message)
            except Exception:  # noqa: BLE001 - a broken view must not corrupt the log.
                LOGGER.exception(
                    "store.listener.failed",
                    extra={"event": "store.listener.failed", "action": action},
                )

    def close(self) -> None:
        """Release every preview handle held by the log. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()
        if self.registry is None:
            return
        for message in self._messages:
            self.registry.revoke(message.local_media_ref)

