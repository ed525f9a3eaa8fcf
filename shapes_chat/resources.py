"""Revocable preview handles for attached files.

A ``PreviewHandle`` stands in for a locally created object URL: it points at a
file on disk and stays resolvable until it is revoked. The composer owns at
most one live handle through ``AttachmentSlot``; when a message is sent the
slot clones a fresh handle for the conversation log and revokes its own, so
the log's copy is never invalidated by a later composer change.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from types import TracebackType
from uuid import uuid4

from .models import PendingAttachment

LOGGER = logging.getLogger(__name__)

PREVIEW_SCHEME = "preview://"

# Extensions accepted for image attachments.
IMAGE_ATTACHMENT_EXTENSIONS: frozenset[str] = frozenset(
    {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"}
)


@dataclass(frozen=True)
class PreviewHandle:
    """Opaque reference to a locally held preview resource."""

    url: str
    path: str

    def __str__(self) -> str:
        return self.url


class PreviewRegistry:
    """Issue and revoke preview handles, tracking which ones are still live."""

    def __init__(self) -> None:
        self._live: dict[str, PreviewHandle] = {}

    def create(self, path: str) -> PreviewHandle:
        """Create a new live handle for ``path``."""
        handle = PreviewHandle(url=f"{PREVIEW_SCHEME}{uuid4().hex}", path=path)
        self._live[handle.url] = handle
        LOGGER.debug(
            "preview.created",
            extra={"event": "preview.created", "url": handle.url},
        )
        return handle

    def revoke(self, handle: PreviewHandle | None) -> bool:
        """Release ``handle``; returns False when it was already released."""
        if handle is None:
            return False
        removed = self._live.pop(handle.url, None)
        if removed is None:
            return False
        LOGGER.debug(
            "preview.revoked",
            extra={"event": "preview.revoked", "url": handle.url},
        )
        return True

    def resolve(self, handle: PreviewHandle) -> Path | None:
        """Return the file behind a live handle, or None once revoked."""
        live = self._live.get(handle.url)
        return Path(live.path) if live is not None else None

    def is_live(self, handle: PreviewHandle) -> bool:
        return handle.url in self._live

    @property
    def live_count(self) -> int:
        return len(self._live)


class AttachmentSlot:
    """The compose session's single pending attachment.

    Use as a context manager to guarantee the transient preview is released on
    every exit path.
    """

    def __init__(self, registry: PreviewRegistry) -> None:
        self.registry = registry
        self._pending: PendingAttachment | None = None
        self._closed = False

    @property
    def pending(self) -> PendingAttachment | None:
        return self._pending

    def has_attachment(self) -> bool:
        return self._pending is not None

    def acquire_preview(self, path: str) -> PreviewHandle:
        """Attach ``path``, releasing any previously held preview first."""
        if self._closed:
            raise RuntimeError("Compose session is closed.")
        self.release()
        handle = self.registry.create(path)
        self._pending = PendingAttachment(path=path, preview=handle)
        return handle

    def release(self) -> None:
        """Drop the pending attachment and revoke its preview. Idempotent."""
        pending = self._pending
        self._pending = None
        if pending is not None:
            self.registry.revoke(pending.preview)

    def take_for_send(self) -> tuple[str, PreviewHandle] | None:
        """Hand the attachment over to history.

        Returns the file path and a newly created handle owned by the caller;
        the transient handle held for editing is revoked.
        """
        pending = self._pending
        if pending is None:
            return None
        history_handle = self.registry.create(pending.path)
        self.release()
        return pending.path, history_handle

    def close(self) -> None:
        """End the compose session."""
        self.release()
        self._closed = True

    def __enter__(self) -> AttachmentSlot:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def validate_image_attachment(
    path: str,
    *,
    max_bytes: int,
    allowed_extensions: frozenset[str] = IMAGE_ATTACHMENT_EXTENSIONS,
) -> tuple[bool, str, Path | None]:
    """Validate an image attachment path, type, and size.

    Returns a tuple of (success, error_message, resolved_path).
    """
    try:
        resolved = Path(path).expanduser().resolve()

        if not resolved.exists():
            return False, f"Image not found: {path}", None

        if not resolved.is_file():
            return False, f"Not a file: {path}", None

        if resolved.suffix.lower() not in allowed_extensions:
            exts = ", ".join(sorted(allowed_extensions))
            return False, f"Invalid image type. Allowed: {exts}", None

        if resolved.stat().st_size > max_bytes:
            max_mb = max_bytes / (1024 * 1024)
            return False, f"Image too large (max {max_mb:.1f}MB)", None

        return True, "", resolved
    except (OSError, ValueError) as exc:
        return False, f"Error validating image: {exc}", None
