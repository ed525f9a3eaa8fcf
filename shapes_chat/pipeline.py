"""Send pipeline: validate, append optimistically, encode, send, reconcile."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
import logging

from .exceptions import ShapesTransportError
from .message_store import MessageStore
from .models import Agent, Message, Sender
from .request_builder import (
    DEFAULT_MODEL_NAMESPACE,
    EncodeResult,
    build_request,
    encode_attachment,
)
from .resources import AttachmentSlot
from .state import SendState, StateManager
from .transport import ShapesTransport

LOGGER = logging.getLogger(__name__)

Notifier = Callable[[str], None]


class SendOutcome(str, Enum):
    """How a send attempt settled."""

    REJECTED = "rejected"
    SUCCESS = "success"
    ENCODE_FAILED = "encode_failed"
    TRANSPORT_FAILED = "transport_failed"


def annotate_send_failure(content: str, reason: str) -> str:
    """Append a failure note to a user message's content."""
    note = f"(Failed to send: {reason})"
    return f"{content}\n\n{note}" if content.strip() else note


def describe_transport_failure(agent: Agent, description: str) -> str:
    """Return the agent-side error message written into the log."""
    return f"Sorry, I couldn't reach {agent.name}: {description}"


class SendPipeline:
    """Turn composer input into at most one request and settle it into a log.

    One send runs at a time; ``busy`` stays true from acceptance until the
    attempt settles, and a send started while busy is rejected rather than
    queued. The agent and store passed to ``send`` are used for the whole
    attempt, so a reply always lands in the conversation it was sent from.
    """

    def __init__(
        self,
        transport: ShapesTransport,
        notifier: Notifier | None = None,
        namespace: str = DEFAULT_MODEL_NAMESPACE,
    ) -> None:
        self.transport = transport
        self.notifier = notifier
        self.namespace = namespace
        self.state = StateManager()

    @property
    def busy(self) -> bool:
        return self.state.state is not SendState.IDLE

    async def _transition(self, new_state: SendState) -> None:
        await self.state.transition_to(new_state)
        LOGGER.debug(
            "pipeline.state.transition",
            extra={"event": "pipeline.state.transition", "to_state": new_state.value},
        )

    @staticmethod
    def rejection_reason(
        agent: Agent | None,
        api_key: str,
        text: str,
        attachments: AttachmentSlot | None,
    ) -> str:
        """Return why a send must be refused, or an empty string."""
        has_attachment = attachments is not None and attachments.has_attachment()
        if not text.strip() and not has_attachment:
            return "empty"
        if agent is None:
            return "no_agent"
        if not api_key.strip():
            return "no_api_key"
        return ""

    async def send(
        self,
        store: MessageStore,
        agent: Agent | None,
        api_key: str,
        text: str,
        attachments: AttachmentSlot | None = None,
        on_composer_cleared: Callable[[], None] | None = None,
    ) -> SendOutcome:
        """Run one send attempt to completion and report how it settled."""
        if not await self.state.transition_if(SendState.IDLE, SendState.VALIDATING):
            LOGGER.info(
                "pipeline.send.rejected",
                extra={"event": "pipeline.send.rejected", "reason": "busy"},
            )
            return SendOutcome.REJECTED
        try:
            reason = self.rejection_reason(agent, api_key, text, attachments)
            if reason or agent is None:
                LOGGER.info(
                    "pipeline.send.rejected",
                    extra={"event": "pipeline.send.rejected", "reason": reason},
                )
                return SendOutcome.REJECTED
            return await self._run(
                store, agent, api_key, text, attachments, on_composer_cleared
            )
        finally:
            await self._transition(SendState.IDLE)

    async def _run(
        self,
        store: MessageStore,
        agent: Agent,
        api_key: str,
        text: str,
        attachments: AttachmentSlot | None,
        on_composer_cleared: Callable[[], None] | None,
    ) -> SendOutcome:
        handed_over = attachments.take_for_send() if attachments is not None else None
        file_path, history_handle = handed_over or (None, None)

        user_message = Message.create(text, Sender.USER, local_media_ref=history_handle)
        store.append(user_message)
        if on_composer_cleared is not None:
            on_composer_cleared()
        await self._transition(SendState.OPTIMISTICALLY_APPENDED)
        LOGGER.info(
            "pipeline.send.accepted",
            extra={
                "event": "pipeline.send.accepted",
                "agent": agent.name,
                "message_id": user_message.id,
                "has_attachment": file_path is not None,
            },
        )

        image_data_url: str | None = None
        if file_path is not None:
            await self._transition(SendState.ENCODING_ATTACHMENT)
            encoded = await self._encode(file_path)
            if not encoded.ok:
                return await self._settle_encode_failure(
                    store, user_message, encoded.error or "attachment could not be read"
                )
            image_data_url = encoded.data_url

        try:
            request = build_request(agent, text, image_data_url, self.namespace)
        except Exception as exc:  # noqa: BLE001 - the optimistic message must be resolved.
            LOGGER.exception(
                "pipeline.request.build_failed",
                extra={
                    "event": "pipeline.request.build_failed",
                    "error_type": type(exc).__name__,
                },
            )
            return await self._settle_encode_failure(
                store, user_message, str(exc) or type(exc).__name__
            )

        await self._transition(SendState.AWAITING_RESPONSE)
        try:
            reply = await self.transport.send(api_key, request)
        except ShapesTransportError as exc:
            return await self._settle_error(store, agent, exc.describe())
        except Exception as exc:  # noqa: BLE001 - every attempt must settle in the log.
            LOGGER.exception(
                "pipeline.send.unexpected_error",
                extra={
                    "event": "pipeline.send.unexpected_error",
                    "error_type": type(exc).__name__,
                },
            )
            return await self._settle_error(store, agent, str(exc) or type(exc).__name__)

        store.append(Message.create(reply, Sender.AGENT))
        await self._transition(SendState.SETTLED_SUCCESS)
        LOGGER.info(
            "pipeline.send.settled",
            extra={"event": "pipeline.send.settled", "outcome": "success"},
        )
        return SendOutcome.SUCCESS

    @staticmethod
    async def _encode(file_path: str) -> EncodeResult:
        try:
            return await encode_attachment(file_path)
        except Exception as exc:  # noqa: BLE001 - folded into the encode failure path.
            LOGGER.exception(
                "pipeline.attachment.unexpected_error",
                extra={
                    "event": "pipeline.attachment.unexpected_error",
                    "error_type": type(exc).__name__,
                },
            )
            return EncodeResult(error=str(exc) or type(exc).__name__)

    async def _settle_encode_failure(
        self, store: MessageStore, user_message: Message, reason: str
    ) -> SendOutcome:
        store.patch(
            user_message.id,
            lambda content: annotate_send_failure(content, reason),
        )
        self._notify(f"Failed to send: {reason}")
        await self._transition(SendState.SETTLED_ERROR)
        LOGGER.warning(
            "pipeline.send.settled",
            extra={
                "event": "pipeline.send.settled",
                "outcome": "encode_failed",
                "error": reason,
            },
        )
        return SendOutcome.ENCODE_FAILED

    async def _settle_error(
        self, store: MessageStore, agent: Agent, description: str
    ) -> SendOutcome:
        store.append(
            Message.create(describe_transport_failure(agent, description), Sender.AGENT)
        )
        self._notify(f"Failed to get a response from {agent.name}: {description}")
        await self._transition(SendState.SETTLED_ERROR)
        LOGGER.warning(
            "pipeline.send.settled",
            extra={
                "event": "pipeline.send.settled",
                "outcome": "error",
                "error": description,
            },
        )
        return SendOutcome.TRANSPORT_FAILED

    def _notify(self, text: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(text)
        except Exception:  # noqa: BLE001 - a failing toast must not break settling.
            LOGGER.exception(
                "pipeline.notify.failed", extra={"event": "pipeline.notify.failed"}
            )
