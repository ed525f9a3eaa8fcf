"""Detect embedded media links in agent replies.

Only the trusted media host is recognised, and only over HTTPS. Image
extensions match case-insensitively while the audio extension is matched
case-sensitively (``.mp3`` but not ``.MP3``); the asymmetry is intentional and
covered by tests. Images are checked before audio.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
import re

from .models import Message, Sender

DEFAULT_MEDIA_HOST = "files.shapes.inc"
IMAGE_EXTENSIONS: tuple[str, ...] = ("png", "jpg", "jpeg", "gif")
AUDIO_EXTENSIONS: tuple[str, ...] = ("mp3",)


class MediaKind(str, Enum):
    """Kind of media embedded in a message."""

    IMAGE = "image"
    AUDIO = "audio"
    NONE = "none"


@dataclass(frozen=True)
class MediaMatch:
    """Result of classifying a text blob."""

    kind: MediaKind
    url: str | None
    remainder: str

    @property
    def has_media(self) -> bool:
        return self.kind is not MediaKind.NONE


@lru_cache(maxsize=8)
def _patterns(media_host: str) -> tuple[tuple[MediaKind, re.Pattern[str]], ...]:
    prefix = rf"https://{re.escape(media_host)}/\S+"
    # Case folding applies to the extension only; scheme and host are exact.
    image = re.compile(rf"{prefix}\.(?i:{'|'.join(IMAGE_EXTENSIONS)})")
    audio = re.compile(rf"{prefix}\.(?:{'|'.join(AUDIO_EXTENSIONS)})")
    return ((MediaKind.IMAGE, image), (MediaKind.AUDIO, audio))


def classify_media(text: str, media_host: str = DEFAULT_MEDIA_HOST) -> MediaMatch:
    """Return the first embedded media link in ``text`` and the surrounding prose."""
    for kind, pattern in _patterns(media_host):
        found = pattern.search(text)
        if found is None:
            continue
        url = found.group(0)
        remainder = text.replace(url, "", 1).strip()
        return MediaMatch(kind=kind, url=url, remainder=remainder)
    return MediaMatch(kind=MediaKind.NONE, url=None, remainder=text)


def classify_message(
    message: Message, media_host: str = DEFAULT_MEDIA_HOST
) -> MediaMatch:
    """Classify a stored message for rendering.

    User-typed links are never promoted to media widgets.
    """
    if message.sender is not Sender.AGENT:
        return MediaMatch(kind=MediaKind.NONE, url=None, remainder=message.content)
    return classify_media(message.content, media_host)
