"""Models module - Pydantic data models"""

from .chat import DONE, ChatRequest, SSEFrame, StreamEvent
from .conversation import GREETING, ConversationState, Message, Role

__all__ = [
    # Relay models
    "DONE",
    "ChatRequest",
    "SSEFrame",
    "StreamEvent",
    # Client models
    "GREETING",
    "ConversationState",
    "Message",
    "Role",
]
