"""Outbound request construction for the Shapes chat-completion endpoint."""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
import logging
import mimetypes
from pathlib import Path
import re
from typing import Any

from .exceptions import AttachmentEncodeError
from .models import Agent, SendRequest, last_path_segment

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_NAMESPACE = "shapesinc"
_WHITESPACE_RUN = re.compile(r"\s+")


def derive_model_id(agent: Agent, namespace: str = DEFAULT_MODEL_NAMESPACE) -> str:
    """Return ``<namespace>/<slug>`` for ``agent``.

    The slug is the last path segment of the agent's reference URL, or the
    agent's name with whitespace turned into hyphens when the URL has none.
    """
    slug = last_path_segment(agent.reference_url)
    if not slug:
        slug = _WHITESPACE_RUN.sub("-", agent.name.strip())
    return f"{namespace}/{slug}"


@dataclass(frozen=True)
class EncodeResult:
    """Outcome of encoding an attachment: either a data URL or an error."""

    data_url: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.data_url is not None


def _guess_mime(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "application/octet-stream"


def _read_data_url(path: Path) -> str:
    try:
        data = path.read_bytes()
    except (OSError, ValueError) as exc:
        raise AttachmentEncodeError(f"Unable to read {path.name}: {exc}") from exc
    if not data:
        raise AttachmentEncodeError(f"{path.name} is empty.")
    b64 = base64.b64encode(data).decode("ascii")
    return f"data:{_guess_mime(path)};base64,{b64}"


async def encode_attachment(path: str | Path) -> EncodeResult:
    """Read ``path`` off the event loop and encode it as a base64 data URL."""
    target = Path(path)
    try:
        data_url = await asyncio.to_thread(_read_data_url, target)
    except AttachmentEncodeError as exc:
        LOGGER.warning(
            "request.attachment.encode_failed",
            extra={
                "event": "request.attachment.encode_failed",
                "file": target.name,
                "error": str(exc),
            },
        )
        return EncodeResult(error=str(exc))
    return EncodeResult(data_url=data_url)


def build_content_parts(text: str, image_data_url: str) -> list[dict[str, Any]]:
    """Return typed content parts; the text part always precedes the image."""
    parts: list[dict[str, Any]] = []
    if text.strip():
        parts.append({"type": "text", "text": text})
    parts.append({"type": "image_url", "image_url": {"url": image_data_url}})
    return parts


def build_request(
    agent: Agent,
    text: str,
    image_data_url: str | None = None,
    namespace: str = DEFAULT_MODEL_NAMESPACE,
) -> SendRequest:
    """Build the request for ``agent`` from composer text and an optional image."""
    model = derive_model_id(agent, namespace)
    if image_data_url is None:
        return SendRequest(model=model, content=text)
    return SendRequest(model=model, content=build_content_parts(text, image_data_url))
