"""Services module - Business logic layer"""

from .assistant_client import AssistantClient, RunStream
from .chat_client import ChatSession, RelayTransport
from .config_manager import ConfigManager, RelaySettings
from .errors import ConfigurationError, RelayStreamError, RelayTransportError, UpstreamError
from .relay import extract_message_text, relay_run, try_parse_frame
from .sse_frames import FrameBuffer, parse_frame
from .thread_store import ThreadStore

__all__ = [
    "AssistantClient",
    "RunStream",
    "ChatSession",
    "RelayTransport",
    "ConfigManager",
    "RelaySettings",
    "ConfigurationError",
    "RelayStreamError",
    "RelayTransportError",
    "UpstreamError",
    "extract_message_text",
    "relay_run",
    "try_parse_frame",
    "FrameBuffer",
    "parse_frame",
    "ThreadStore",
]
