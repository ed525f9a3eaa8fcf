"""Tests for the send pipeline against a fake transport."""

from __future__ import annotations

import asyncio
from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

from shapes_chat.exceptions import ShapesConnectionError, ShapesTransportError
from shapes_chat.message_store import MessageStore
from shapes_chat.models import Agent, SendRequest, Sender
from shapes_chat.pipeline import (
    SendOutcome,
    SendPipeline,
    annotate_send_failure,
    describe_transport_failure,
)
from shapes_chat.resources import AttachmentSlot, PreviewRegistry
from shapes_chat.state import SendState


class _FakeTransport:
    """Records every request and answers with a canned reply or error."""

    def __init__(
        self,
        reply: str = "Hello from the shape",
        error: Exception | None = None,
    ) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, SendRequest]] = []
        self.gate: asyncio.Event | None = None
        self.events: list[str] | None = None

    async def send(self, api_key: str, request: SendRequest) -> str:
        self.calls.append((api_key, request))
        if self.events is not None:
            self.events.append("transport")
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


def _agent() -> Agent:
    return Agent(id="a1", name="bella donna", reference_url="https://shapes.inc/bella-donna")


class SendPipelineTests(unittest.IsolatedAsyncioTestCase):
    """Validate optimistic append, reconciliation, and busy gating."""

    def setUp(self) -> None:
        self.registry = PreviewRegistry()
        self.store = MessageStore(self.registry)
        self.slot = AttachmentSlot(self.registry)
        self.notes: list[str] = []

    def _pipeline(self, transport: _FakeTransport) -> SendPipeline:
        return SendPipeline(transport, notifier=self.notes.append)  # type: ignore[arg-type]

    async def test_success_appends_user_then_agent(self) -> None:
        transport = _FakeTransport(reply="Hi there!")
        pipeline = self._pipeline(transport)

        outcome = await pipeline.send(self.store, _agent(), "key", "hello", self.slot)

        self.assertIs(outcome, SendOutcome.SUCCESS)
        self.assertEqual(
            [(m.sender, m.content) for m in self.store.messages],
            [(Sender.USER, "hello"), (Sender.AGENT, "Hi there!")],
        )
        self.assertEqual(len(transport.calls), 1)
        api_key, request = transport.calls[0]
        self.assertEqual(api_key, "key")
        self.assertEqual(request.model, "shapesinc/bella-donna")
        self.assertEqual(request.content, "hello")
        self.assertFalse(pipeline.busy)
        self.assertEqual(self.notes, [])

    async def test_empty_input_is_rejected_without_side_effects(self) -> None:
        transport = _FakeTransport()
        pipeline = self._pipeline(transport)
        cleared: list[bool] = []

        for text in ("", "   \n\t"):
            outcome = await pipeline.send(
                self.store,
                _agent(),
                "key",
                text,
                self.slot,
                on_composer_cleared=lambda: cleared.append(True),
            )
            self.assertIs(outcome, SendOutcome.REJECTED)

        self.assertEqual(len(self.store), 0)
        self.assertEqual(transport.calls, [])
        self.assertEqual(cleared, [])
        self.assertIs(pipeline.state.state, SendState.IDLE)

    async def test_missing_agent_or_key_is_rejected(self) -> None:
        transport = _FakeTransport()
        pipeline = self._pipeline(transport)
        self.assertIs(
            await pipeline.send(self.store, None, "key", "hi", self.slot),
            SendOutcome.REJECTED,
        )
        self.assertIs(
            await pipeline.send(self.store, _agent(), "  ", "hi", self.slot),
            SendOutcome.REJECTED,
        )
        self.assertEqual(len(self.store), 0)
        self.assertEqual(transport.calls, [])

    def test_rejection_reason(self) -> None:
        agent = _agent()
        self.assertEqual(SendPipeline.rejection_reason(agent, "k", " ", None), "empty")
        self.assertEqual(SendPipeline.rejection_reason(None, "k", "hi", None), "no_agent")
        self.assertEqual(SendPipeline.rejection_reason(agent, "", "hi", None), "no_api_key")
        self.assertEqual(SendPipeline.rejection_reason(agent, "k", "hi", None), "")

    async def test_http_error_settles_one_agent_error_message(self) -> None:
        transport = _FakeTransport(
            error=ShapesTransportError(
                "API error: 401 Unauthorized", status_code=401, status_text="Unauthorized"
            )
        )
        pipeline = self._pipeline(transport)

        outcome = await pipeline.send(self.store, _agent(), "bad", "hello", self.slot)

        self.assertIs(outcome, SendOutcome.TRANSPORT_FAILED)
        self.assertEqual(len(transport.calls), 1)
        messages = self.store.messages
        self.assertEqual(len(messages), 2)
        self.assertEqual(messages[0].content, "hello")
        self.assertIs(messages[1].sender, Sender.AGENT)
        self.assertEqual(
            messages[1].content,
            describe_transport_failure(_agent(), "HTTP 401 Unauthorized"),
        )
        self.assertIn("401", messages[1].content)
        self.assertEqual(len(self.notes), 1)
        self.assertIn("bella donna", self.notes[0])
        self.assertFalse(pipeline.busy)

    async def test_network_error_settles_agent_error_message(self) -> None:
        transport = _FakeTransport(error=ShapesConnectionError("Connection refused"))
        pipeline = self._pipeline(transport)

        outcome = await pipeline.send(self.store, _agent(), "key", "hello", self.slot)

        self.assertIs(outcome, SendOutcome.TRANSPORT_FAILED)
        self.assertIn("Connection refused", self.store.messages[-1].content)
        self.assertEqual(len(self.store), 2)

    async def test_unexpected_error_still_settles(self) -> None:
        transport = _FakeTransport(error=ValueError("boom"))
        pipeline = self._pipeline(transport)

        with self.assertLogs("shapes_chat.pipeline", level="ERROR"):
            outcome = await pipeline.send(self.store, _agent(), "key", "hello", self.slot)

        self.assertIs(outcome, SendOutcome.TRANSPORT_FAILED)
        self.assertEqual(len(self.store), 2)
        self.assertIs(pipeline.state.state, SendState.IDLE)

    async def test_attachment_payload_and_history_handle(self) -> None:
        transport = _FakeTransport()
        pipeline = self._pipeline(transport)
        with tempfile.TemporaryDirectory() as temp_dir:
            image = Path(temp_dir) / "cat.png"
            image.write_bytes(b"\x89PNG")
            preview = self.slot.acquire_preview(str(image))

            outcome = await pipeline.send(self.store, _agent(), "key", "look", self.slot)

        self.assertIs(outcome, SendOutcome.SUCCESS)
        content = transport.calls[0][1].content
        self.assertIsInstance(content, list)
        self.assertEqual(content[0], {"type": "text", "text": "look"})
        self.assertEqual(content[1]["type"], "image_url")
        self.assertTrue(content[1]["image_url"]["url"].startswith("data:image/png;base64,"))

        user_message = self.store.messages[0]
        self.assertIsNotNone(user_message.local_media_ref)
        self.assertNotEqual(user_message.local_media_ref, preview)
        self.assertFalse(self.registry.is_live(preview))
        self.assertTrue(self.registry.is_live(user_message.local_media_ref))
        self.assertFalse(self.slot.has_attachment())

    async def test_image_only_send(self) -> None:
        transport = _FakeTransport()
        pipeline = self._pipeline(transport)
        with tempfile.TemporaryDirectory() as temp_dir:
            image = Path(temp_dir) / "cat.gif"
            image.write_bytes(b"GIF89a")
            self.slot.acquire_preview(str(image))
            outcome = await pipeline.send(self.store, _agent(), "key", "", self.slot)

        self.assertIs(outcome, SendOutcome.SUCCESS)
        content = transport.calls[0][1].content
        self.assertEqual(len(content), 1)
        self.assertEqual(content[0]["type"], "image_url")

    async def test_encode_failure_patches_user_message_and_skips_transport(self) -> None:
        transport = _FakeTransport()
        pipeline = self._pipeline(transport)
        with tempfile.TemporaryDirectory() as temp_dir:
            missing = Path(temp_dir) / "vanished.png"
            self.slot.acquire_preview(str(missing))

            outcome = await pipeline.send(self.store, _agent(), "key", "see this", self.slot)

        self.assertIs(outcome, SendOutcome.ENCODE_FAILED)
        self.assertEqual(transport.calls, [])
        self.assertEqual(len(self.store), 1)
        only = self.store.messages[0]
        self.assertIs(only.sender, Sender.USER)
        self.assertTrue(only.content.startswith("see this\n\n(Failed to send: "))
        self.assertEqual(len(self.notes), 1)
        self.assertTrue(self.notes[0].startswith("Failed to send: "))
        self.assertFalse(pipeline.busy)

    async def test_composer_cleared_after_append_before_transport(self) -> None:
        transport = _FakeTransport()
        events: list[str] = []
        transport.events = events
        pipeline = self._pipeline(transport)
        self.store.subscribe(lambda action, _msg: events.append(action))

        await pipeline.send(
            self.store,
            _agent(),
            "key",
            "hello",
            self.slot,
            on_composer_cleared=lambda: events.append("cleared"),
        )

        self.assertEqual(events, ["append", "cleared", "transport", "append"])

    async def test_second_send_while_busy_is_rejected(self) -> None:
        transport = _FakeTransport()
        transport.gate = asyncio.Event()
        pipeline = self._pipeline(transport)

        first = asyncio.create_task(
            pipeline.send(self.store, _agent(), "key", "first", self.slot)
        )
        while not transport.calls:
            await asyncio.sleep(0)
        self.assertTrue(pipeline.busy)
        self.assertIs(pipeline.state.state, SendState.AWAITING_RESPONSE)

        second = await pipeline.send(self.store, _agent(), "key", "second", self.slot)
        self.assertIs(second, SendOutcome.REJECTED)

        transport.gate.set()
        self.assertIs(await first, SendOutcome.SUCCESS)
        self.assertEqual(len(transport.calls), 1)
        self.assertEqual([m.content for m in self.store.messages], ["first", "Hello from the shape"])
        self.assertFalse(pipeline.busy)

    async def test_reply_lands_in_originating_store(self) -> None:
        transport = _FakeTransport(reply="pong")
        transport.gate = asyncio.Event()
        pipeline = self._pipeline(transport)
        other_store = MessageStore(self.registry)

        task = asyncio.create_task(
            pipeline.send(self.store, _agent(), "key", "ping", self.slot)
        )
        while not transport.calls:
            await asyncio.sleep(0)
        transport.gate.set()
        await task

        self.assertEqual([m.content for m in self.store.messages], ["ping", "pong"])
        self.assertEqual(len(other_store), 0)

    async def test_failing_notifier_does_not_block_settling(self) -> None:
        def _broken(_text: str) -> None:
            raise RuntimeError("toast failed")

        transport = _FakeTransport(error=ShapesConnectionError("down"))
        pipeline = SendPipeline(transport, notifier=_broken)  # type: ignore[arg-type]

        with self.assertLogs("shapes_chat.pipeline", level="ERROR"):
            outcome = await pipeline.send(self.store, _agent(), "key", "hi", self.slot)

        self.assertIs(outcome, SendOutcome.TRANSPORT_FAILED)
        self.assertFalse(pipeline.busy)


class EncodeFailureTests(unittest.IsolatedAsyncioTestCase):
    """Attachment problems always resolve the optimistic user message."""

    def setUp(self) -> None:
        self.registry = PreviewRegistry()
        self.store = MessageStore(self.registry)
        self.slot = AttachmentSlot(self.registry)

    async def test_unreadable_path_annotates_user_message(self) -> None:
        transport = _FakeTransport()
        pipeline = SendPipeline(transport)  # type: ignore[arg-type]
        self.slot.acquire_preview("/tmp/bad\0name.png")

        outcome = await pipeline.send(self.store, _agent(), "key", "hi", self.slot)

        self.assertIs(outcome, SendOutcome.ENCODE_FAILED)
        self.assertEqual(transport.calls, [])
        self.assertEqual(len(self.store), 1)
        self.assertTrue(self.store.messages[0].content.startswith("hi\n\n(Failed to send: "))
        self.assertFalse(pipeline.busy)

    async def test_unexpected_encode_error_annotates_user_message(self) -> None:
        async def _explode(_path: object) -> None:
            raise RuntimeError("codec crashed")

        transport = _FakeTransport()
        pipeline = SendPipeline(transport)  # type: ignore[arg-type]
        self.slot.acquire_preview("/tmp/cat.png")

        with patch("shapes_chat.pipeline.encode_attachment", _explode), self.assertLogs(
            "shapes_chat.pipeline", level="ERROR"
        ):
            outcome = await pipeline.send(self.store, _agent(), "key", "hi", self.slot)

        self.assertIs(outcome, SendOutcome.ENCODE_FAILED)
        self.assertEqual(transport.calls, [])
        self.assertEqual(
            self.store.messages[0].content, "hi\n\n(Failed to send: codec crashed)"
        )
        self.assertIs(pipeline.state.state, SendState.IDLE)

    async def test_request_build_error_annotates_user_message(self) -> None:
        def _broken_build(*_args: object) -> None:
            raise ValueError("bad payload")

        transport = _FakeTransport()
        pipeline = SendPipeline(transport)  # type: ignore[arg-type]

        with patch("shapes_chat.pipeline.build_request", _broken_build), self.assertLogs(
            "shapes_chat.pipeline", level="ERROR"
        ):
            outcome = await pipeline.send(self.store, _agent(), "key", "hi", self.slot)

        self.assertIs(outcome, SendOutcome.ENCODE_FAILED)
        self.assertEqual(transport.calls, [])
        self.assertEqual(
            self.store.messages[0].content, "hi\n\n(Failed to send: bad payload)"
        )


class FailureTextTests(unittest.TestCase):
    """Validate failure annotations."""

    def test_annotation_appends_note(self) -> None:
        self.assertEqual(
            annotate_send_failure("hello", "file missing"),
            "hello\n\n(Failed to send: file missing)",
        )

    def test_annotation_of_blank_content(self) -> None:
        self.assertEqual(
            annotate_send_failure("", "file missing"), "(Failed to send: file missing)"
        )

    def test_transport_failure_text(self) -> None:
        self.assertEqual(
            describe_transport_failure(_agent(), "HTTP 401 Unauthorized"),
            "Sorry, I couldn't reach bella donna: HTTP 401 Unauthorized",
        )


if __name__ == "__main__":
    unittest.main()
