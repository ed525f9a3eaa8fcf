"""Top-level package for shapes-chat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import ShapesChatApp
    from .classifier import MediaKind, MediaMatch, classify_media, classify_message
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        AttachmentEncodeError,
        ConfigValidationError,
        MessageNotFoundError,
        ShapesChatError,
        ShapesConnectionError,
        ShapesTransportError,
    )
    from .message_store import MessageStore
    from .models import Agent, Message, Sender, SendRequest
    from .pipeline import SendOutcome, SendPipeline
    from .resources import AttachmentSlot, PreviewHandle, PreviewRegistry
    from .state import SendState, StateManager
    from .transport import ShapesTransport

__all__ = [
    "Agent",
    "AttachmentEncodeError",
    "AttachmentSlot",
    "ConfigValidationError",
    "MediaKind",
    "MediaMatch",
    "Message",
    "MessageNotFoundError",
    "MessageStore",
    "PreviewHandle",
    "PreviewRegistry",
    "SendOutcome",
    "SendPipeline",
    "SendRequest",
    "SendState",
    "Sender",
    "ShapesChatApp",
    "ShapesChatError",
    "ShapesConnectionError",
    "ShapesTransport",
    "ShapesTransportError",
    "StateManager",
    "classify_media",
    "classify_message",
    "ensure_config_dir",
    "load_config",
]

# Symbol -> submodule. Resolved lazily so the core stays importable without
# the optional UI dependencies being loaded.
_EXPORTS: dict[str, str] = {
    "Agent": "models",
    "Message": "models",
    "Sender": "models",
    "SendRequest": "models",
    "AttachmentEncodeError": "exceptions",
    "ConfigValidationError": "exceptions",
    "MessageNotFoundError": "exceptions",
    "ShapesChatError": "exceptions",
    "ShapesConnectionError": "exceptions",
    "ShapesTransportError": "exceptions",
    "AttachmentSlot": "resources",
    "PreviewHandle": "resources",
    "PreviewRegistry": "resources",
    "MediaKind": "classifier",
    "MediaMatch": "classifier",
    "classify_media": "classifier",
    "classify_message": "classifier",
    "MessageStore": "message_store",
    "SendOutcome": "pipeline",
    "SendPipeline": "pipeline",
    "SendState": "state",
    "StateManager": "state",
    "ShapesTransport": "transport",
    "ensure_config_dir": "config",
    "load_config": "config",
    "ShapesChatApp": "app",
}


def __getattr__(name: str) -> Any:
    """Lazily import exported symbols."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    module = import_module(f".{module_name}", __name__)
    return getattr(module, name)
