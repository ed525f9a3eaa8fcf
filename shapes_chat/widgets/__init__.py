"""Widget exports for the shapes_chat UI."""

from .conversation import ConversationView
from .input_box import InputBox
from .message import MessageBubble
from .sidebar import AgentSidebar

__all__ = ["AgentSidebar", "ConversationView", "InputBox", "MessageBubble"]
