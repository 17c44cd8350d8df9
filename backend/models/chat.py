"""Chat relay data models"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Terminal sentinel of every relay stream
DONE = "[DONE]"


class ChatRequest(BaseModel):
    """Request for a streamed chat message"""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    thread_id: str | None = Field(default=None, alias="threadId")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value

    @field_validator("thread_id")
    @classmethod
    def empty_thread_is_absent(cls, value: str | None) -> str | None:
        return value or None


class StreamEvent(BaseModel):
    """Normalized SSE event sent from the relay to the client.

    Exactly one of ``thread_id``, ``delta`` or ``error`` is set, and the
    wire form is a single-key JSON object such as ``{"delta": "Olá"}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    thread_id: str | None = Field(default=None, alias="threadId")
    delta: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def exactly_one_field(self) -> "StreamEvent":
        present = [v for v in (self.thread_id, self.delta, self.error) if v is not None]
        if len(present) != 1:
            raise ValueError("StreamEvent needs exactly one of threadId, delta, error")
        return self

    def to_data(self) -> str:
        """Serialize as the `data:` payload of an SSE frame"""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class SSEFrame(BaseModel):
    """One wire-level SSE frame"""

    event: str | None = None
    data: str
