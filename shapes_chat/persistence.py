"""On-disk storage for the Shapes API key."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .exceptions import PersistenceError, PersistenceFormatError

LOGGER = logging.getLogger(__name__)

API_KEY_STORAGE_KEY = "shapes-api-key"


class ApiKeyStore:
    """Remember the API key in a private JSON file keyed by a fixed name.

    The file is a flat JSON object so other client settings can share it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceFormatError(
                f"Credentials file {self.path} is unreadable: {exc}"
            ) from exc
        if not isinstance(payload, dict):
            raise PersistenceFormatError(f"Credentials file {self.path} is invalid.")
        return payload

    def _write(self, payload: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._enforce_permissions(self.path.parent, 0o700)
            self.path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
        except OSError as exc:
            raise PersistenceError(f"Unable to write {self.path}: {exc}") from exc
        self._enforce_permissions(self.path)

    def load(self) -> str:
        """Return the stored key, or an empty string when none is usable."""
        try:
            payload = self._read()
        except PersistenceFormatError as exc:
            LOGGER.warning(
                "persistence.api_key.unreadable",
                extra={"event": "persistence.api_key.unreadable", "reason": str(exc)},
            )
            return ""
        value = payload.get(API_KEY_STORAGE_KEY)
        return value.strip() if isinstance(value, str) else ""

    def save(self, api_key: str) -> None:
        """Persist ``api_key``, keeping any unrelated entries in the file."""
        try:
            payload = self._read()
        except PersistenceFormatError:
            payload = {}
        payload[API_KEY_STORAGE_KEY] = api_key.strip()
        self._write(payload)
        LOGGER.info(
            "persistence.api_key.saved",
            extra={"event": "persistence.api_key.saved", "path": str(self.path)},
        )

    def clear(self) -> None:
        """Forget the stored key."""
        try:
            payload = self._read()
        except PersistenceFormatError:
            payload = {}
        if payload.pop(API_KEY_STORAGE_KEY, None) is None and not self.path.exists():
            return
        self._write(payload)
