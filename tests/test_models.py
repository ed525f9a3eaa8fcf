"""Tests for message and agent records."""

from __future__ import annotations

import unittest

from shapes_chat.models import (
    UNKNOWN_AGENT_NAME,
    Agent,
    Message,
    MessageIdFactory,
    PendingAttachment,
    Sender,
    SendRequest,
    last_path_segment,
)
from shapes_chat.resources import PreviewRegistry


class MessageIdTests(unittest.TestCase):
    """Validate id uniqueness under a frozen clock."""

    def test_ids_strictly_increase_within_same_millisecond(self) -> None:
        factory = MessageIdFactory(clock=lambda: 1700000000.0)
        ids = [factory() for _ in range(5)]
        self.assertEqual(len(set(ids)), 5)
        self.assertEqual([int(i) for i in ids], sorted(int(i) for i in ids))
        self.assertEqual(ids[0], "1700000000000")

    def test_created_messages_have_unique_ids(self) -> None:
        ids = {Message.create("x", Sender.USER).id for _ in range(200)}
        self.assertEqual(len(ids), 200)


class MessageTests(unittest.TestCase):
    """Validate message construction."""

    def test_media_ref_only_kept_for_user_messages(self) -> None:
        handle = PreviewRegistry().create("/tmp/cat.png")
        user = Message.create("hi", Sender.USER, local_media_ref=handle)
        agent = Message.create("hi", Sender.AGENT, local_media_ref=handle)
        self.assertIs(user.local_media_ref, handle)
        self.assertIsNone(agent.local_media_ref)
        self.assertTrue(user.is_user)
        self.assertFalse(agent.is_user)
        self.assertIsNotNone(user.timestamp.tzinfo)


class AgentTests(unittest.TestCase):
    """Validate agent derivation from reference URLs."""

    def test_name_from_last_segment(self) -> None:
        agent = Agent.from_reference_url("  https://shapes.inc/bella-donna  ")
        self.assertEqual(agent.name, "bella donna")
        self.assertEqual(agent.reference_url, "https://shapes.inc/bella-donna")
        self.assertEqual(agent.initial, "B")

    def test_only_first_hyphen_is_replaced(self) -> None:
        agent = Agent.from_reference_url("https://shapes.inc/the-great-one")
        self.assertEqual(agent.name, "the great-one")

    def test_unknown_name_without_segment(self) -> None:
        agent = Agent.from_reference_url("https://shapes.inc/")
        self.assertEqual(agent.name, UNKNOWN_AGENT_NAME)

    def test_last_path_segment(self) -> None:
        self.assertEqual(last_path_segment("https://shapes.inc/a/b/"), "b")
        self.assertEqual(last_path_segment("https://shapes.inc"), "")
        self.assertEqual(last_path_segment(""), "")


class SmallRecordTests(unittest.TestCase):
    def test_pending_attachment_name(self) -> None:
        handle = PreviewRegistry().create("/tmp/pics/cat.png")
        self.assertEqual(PendingAttachment("/tmp/pics/cat.png", handle).name, "cat.png")

    def test_send_request_payload(self) -> None:
        request = SendRequest(model="shapesinc/x", content="hi")
        self.assertEqual(
            request.to_payload(),
            {"model": "shapesinc/x", "messages": [{"role": "user", "content": "hi"}]},
        )


if __name__ == "__main__":
    unittest.main()
