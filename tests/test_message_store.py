"""Tests for the append-only conversation log."""

from __future__ import annotations

import unittest

from shapes_chat.exceptions import MessageNotFoundError
from shapes_chat.message_store import MessageStore
from shapes_chat.models import Message, Sender
from shapes_chat.resources import PreviewRegistry


class MessageStoreTests(unittest.TestCase):
    """Validate ordering, patching, observers, and handle release."""

    def test_append_preserves_order(self) -> None:
        store = MessageStore()
        first = Message.create("one", Sender.USER)
        second = Message.create("two", Sender.AGENT)
        store.append(first)
        store.append(second)
        self.assertEqual([m.id for m in store.messages], [first.id, second.id])
        self.assertEqual(len(store), 2)
        self.assertEqual(store.message_count, 2)
        self.assertIs(store.get(second.id), second)
        self.assertIsNone(store.get("missing"))

    def test_duplicate_id_is_rejected(self) -> None:
        store = MessageStore()
        message = Message.create("one", Sender.USER)
        store.append(message)
        with self.assertRaises(ValueError):
            store.append(message)
        self.assertEqual(len(store), 1)

    def test_messages_snapshot_is_immutable(self) -> None:
        store = MessageStore()
        store.append(Message.create("one", Sender.USER))
        snapshot = store.messages
        self.assertIsInstance(snapshot, tuple)
        store.append(Message.create("two", Sender.AGENT))
        self.assertEqual(len(snapshot), 1)

    def test_patch_rewrites_content_in_place(self) -> None:
        registry = PreviewRegistry()
        handle = registry.create("/tmp/cat.png")
        store = MessageStore(registry)
        first = Message.create("hi", Sender.USER, local_media_ref=handle)
        second = Message.create("reply", Sender.AGENT)
        store.append(first)
        store.append(second)

        updated = store.patch(first.id, lambda content: content + " (edited)")

        self.assertEqual(updated.content, "hi (edited)")
        self.assertEqual(store.messages[0].id, first.id)
        self.assertEqual(store.messages[0].content, "hi (edited)")
        self.assertEqual(store.messages[0].timestamp, first.timestamp)
        self.assertIs(store.messages[0].local_media_ref, handle)
        self.assertEqual(store.messages[1], second)

    def test_patch_unknown_id_raises(self) -> None:
        store = MessageStore()
        with self.assertRaises(MessageNotFoundError):
            store.patch("nope", str.upper)

    def test_listeners_receive_append_and_patch(self) -> None:
        store = MessageStore()
        seen: list[tuple[str, str]] = []
        unsubscribe = store.subscribe(lambda action, msg: seen.append((action, msg.content)))

        message = Message.create("hi", Sender.USER)
        store.append(message)
        store.patch(message.id, lambda content: content.upper())
        unsubscribe()
        store.append(Message.create("late", Sender.AGENT))

        self.assertEqual(seen, [("append", "hi"), ("patch", "HI")])

    def test_failing_listener_does_not_break_append(self) -> None:
        store = MessageStore()

        def _broken(_action: str, _message: Message) -> None:
            raise RuntimeError("view gone")

        store.subscribe(_broken)
        with self.assertLogs("shapes_chat.message_store", level="ERROR"):
            store.append(Message.create("hi", Sender.USER))
        self.assertEqual(len(store), 1)

    def test_close_revokes_history_handles_once(self) -> None:
        registry = PreviewRegistry()
        handle = registry.create("/tmp/cat.png")
        store = MessageStore(registry)
        store.append(Message.create("hi", Sender.USER, local_media_ref=handle))
        store.append(Message.create("reply", Sender.AGENT))

        store.close()
        store.close()

        self.assertFalse(registry.is_live(handle))
        self.assertEqual(registry.live_count, 0)


if __name__ == "__main__":
    unittest.main()
