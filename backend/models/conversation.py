"""Client-side conversation models"""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field

GREETING = "Olá! Eu sou a Lu, sua assistente financeira. Como posso ajudar hoje?"


def _new_id() -> str:
    return uuid.uuid4().hex


class Role(str, Enum):
    """Author of a chat message"""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A chat message; assistant content grows as deltas arrive"""

    id: str = Field(default_factory=_new_id)
    role: Role
    content: str = ""


def _greeting() -> list[Message]:
    return [Message(role=Role.ASSISTANT, content=GREETING)]


class ConversationState(BaseModel):
    """Message list and active thread of one chat session"""

    messages: list[Message] = Field(default_factory=_greeting)
    thread_id: str | None = None
    draft: str = ""  # Pending input text
    loading: bool = False

    def append(self, role: Role, content: str = "") -> Message:
        message = Message(role=role, content=content)
        self.messages.append(message)
        return message

    def reset(self) -> None:
        """Start over with a single greeting and no thread"""
        self.messages = _greeting()
        self.thread_id = None
        self.draft = ""
        self.loading = False
