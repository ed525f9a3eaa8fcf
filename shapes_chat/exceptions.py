"""Domain exception hierarchy for the Shapes chat client."""

from __future__ import annotations


class ShapesChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class ShapesTransportError(ShapesChatError):
    """Raised when the chat-completion endpoint answers with a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        status_text: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text

    def describe(self) -> str:
        """Return a short human-readable description for the conversation log."""
        if self.status_code is None:
            return str(self)
        if self.status_text:
            return f"HTTP {self.status_code} {self.status_text}"
        return f"HTTP {self.status_code}"


class ShapesConnectionError(ShapesTransportError):
    """Raised when the Shapes API host cannot be reached."""


class AttachmentEncodeError(ShapesChatError):
    """Raised when an attached file cannot be read or encoded."""


class MessageNotFoundError(ShapesChatError):
    """Raised when patching a message id that is not in the log."""


class ConfigValidationError(ShapesChatError):
    """Raised when configuration cannot be validated safely."""


class PersistenceError(ShapesChatError):
    """Raised when the API key store cannot be read or written."""


class PersistenceFormatError(PersistenceError):
    """Raised when a persisted payload cannot be decoded safely."""
