"""Single-attempt async client for the Shapes chat-completion endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .exceptions import ShapesConnectionError, ShapesTransportError
from .models import SendRequest

LOGGER = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.shapes.inc/v1"
FALLBACK_REPLY = "No response received."


class ShapesTransport:
    """POST a chat-completion request and return the agent's reply text.

    Every call is a single attempt; failures are raised, never retried.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def send(self, api_key: str, request: SendRequest) -> str:
        """Send ``request`` and return the first choice's message content."""
        LOGGER.info(
            "transport.request.start",
            extra={
                "event": "transport.request.start",
                "model": request.model,
                "multipart": isinstance(request.content, list),
            },
        )
        try:
            response = await self._client.post(
                self.endpoint,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
                json=request.to_payload(),
            )
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "transport.request.failed",
                extra={
                    "event": "transport.request.failed",
                    "model": request.model,
                    "error_type": type(exc).__name__,
                },
            )
            raise ShapesConnectionError(
                f"Unable to reach {self.base_url}: {str(exc) or type(exc).__name__}"
            ) from exc

        if not response.is_success:
            status_text = response.reason_phrase or ""
            LOGGER.warning(
                "transport.request.rejected",
                extra={
                    "event": "transport.request.rejected",
                    "model": request.model,
                    "status_code": response.status_code,
                },
            )
            raise ShapesTransportError(
                f"API error: {response.status_code} {status_text}".strip(),
                status_code=response.status_code,
                status_text=status_text,
            )

        reply = self.extract_reply(response)
        LOGGER.info(
            "transport.request.complete",
            extra={
                "event": "transport.request.complete",
                "model": request.model,
                "reply_chars": len(reply),
            },
        )
        return reply

    @staticmethod
    def extract_reply(response: httpx.Response) -> str:
        """Return ``choices[0].message.content`` or the fallback reply."""
        try:
            body: Any = response.json()
        except ValueError:
            return FALLBACK_REPLY
        if not isinstance(body, dict):
            return FALLBACK_REPLY
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            return FALLBACK_REPLY
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str) and content:
            return content
        return FALLBACK_REPLY

    async def aclose(self) -> None:
        """Close the underlying HTTP client when this transport created it."""
        if self._owns_client:
            await self._client.aclose()
