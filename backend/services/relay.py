"""
Stream Relay - Translate the upstream run stream into the normalized
threadId/delta/error/[DONE] vocabulary consumed by the chat client
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from enum import Enum
from typing import Any, AsyncIterator, Protocol

from pydantic import BaseModel

from models.chat import DONE, SSEFrame, StreamEvent
from services.errors import UpstreamError
from services.sse_frames import FrameBuffer

logger = logging.getLogger(__name__)

NO_TEXT_ERROR = "assistant returned no text"

OUTPUT_TEXT_DELTA = "response.output_text.delta"
MESSAGE_DELTA_TYPES = ("message.delta", "thread.message.delta")
COMPLETED_TYPES = ("response.completed", "message.completed")
RUN_FAILED = "thread.run.failed"


class RunSource(Protocol):
    thread_id: str

    def iter_chunks(self) -> AsyncIterator[bytes]: ...

    def close(self): ...


class MessageSource(Protocol):
    async def list_messages(self, thread_id: str, limit: int = 5) -> list[dict[str, Any]]: ...


class FrameKind(str, Enum):
    DELTAS = "deltas"
    COMPLETED = "completed"
    ERROR = "error"


class FrameResult(BaseModel):
    """What one upstream frame asks the relay to do"""

    kind: FrameKind
    deltas: list[str] = []
    error: str | None = None


# ========== Text Extraction ==========


def _part_text(part: Any) -> str:
    """Text of one content part, or '' when the part is not text-bearing"""
    if not isinstance(part, dict):
        return ""
    part_type = part.get("type")
    text = part.get("text")
    if part_type in ("output_text", "text"):
        if isinstance(text, dict) and isinstance(text.get("value"), str):
            return text["value"]
        if part_type == "text" and isinstance(text, str):
            return text
        return ""
    if part_type in ("input_text", "text_delta") and isinstance(text, str):
        return text
    return ""


def extract_message_text(message: dict[str, Any] | None) -> str:
    """Concatenate the text parts of a thread message, in order, trimmed"""
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, list):
        return "".join(_part_text(part) for part in content).strip()
    if isinstance(content, str):
        return content.strip()
    return ""


# ========== Frame Classification ==========


def try_parse_frame(frame: SSEFrame) -> FrameResult | None:
    """Classify one upstream frame.

    Shapes are tested in a fixed order and the first match wins:
    output-text delta, message delta, completion, error. Malformed JSON and
    unrecognized shapes return None and are treated as keep-alives.
    """
    try:
        data = json.loads(frame.data)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    event_name = frame.event or ""
    data_type = data.get("type")

    if data_type == OUTPUT_TEXT_DELTA and isinstance(data.get("delta"), str):
        return FrameResult(kind=FrameKind.DELTAS, deltas=[data["delta"]])

    delta = data.get("delta")
    if ("message.delta" in event_name or data_type in MESSAGE_DELTA_TYPES) and isinstance(delta, dict):
        content = delta.get("content")
        parts = content if isinstance(content, list) else []
        return FrameResult(
            kind=FrameKind.DELTAS,
            deltas=[text for text in (_part_text(part) for part in parts) if text],
        )

    if data_type in COMPLETED_TYPES or "completed" in event_name:
        return FrameResult(kind=FrameKind.COMPLETED)

    error = _error_message(event_name, data)
    if error:
        return FrameResult(kind=FrameKind.ERROR, error=error)

    return None


def _error_message(event_name: str, data: dict[str, Any]) -> str | None:
    if data.get("type") == "error" and isinstance(data.get("error"), dict):
        return data["error"].get("message") or None
    if event_name == "error" and isinstance(data.get("message"), str):
        return data["message"] or None
    if event_name == RUN_FAILED and isinstance(data.get("last_error"), dict):
        return data["last_error"].get("message") or None
    return None


# ========== Relay ==========


async def fetch_fallback(client: MessageSource, thread_id: str, limit: int = 5) -> StreamEvent:
    """Recover the reply from the thread when the stream produced no text"""
    try:
        messages = await client.list_messages(thread_id, limit)
    except UpstreamError as e:
        return StreamEvent(error=e.body or str(e))

    assistant = next(
        (m for m in messages if isinstance(m, dict) and m.get("role") == "assistant"),
        None,
    )
    text = extract_message_text(assistant)
    if text:
        return StreamEvent(delta=text)
    return StreamEvent(error=NO_TEXT_ERROR)


async def _upstream_frames(run: RunSource) -> AsyncIterator[SSEFrame]:
    """Frames of the run body up to the [DONE] sentinel or end of stream"""
    buffer = FrameBuffer()
    async for chunk in run.iter_chunks():
        for frame in buffer.feed(chunk):
            if frame.data == DONE:
                return
            yield frame
    for frame in buffer.flush():
        if frame.data == DONE:
            return
        yield frame


async def relay_run(run: RunSource, client: MessageSource, fallback_limit: int = 5) -> AsyncIterator[str]:
    """Yield normalized `data:` payloads for one run; always ends with [DONE]"""
    yield StreamEvent(thread_id=run.thread_id).to_data()

    emitted_text = failed = False
    try:
        async with aclosing(_upstream_frames(run)) as frames:
            async for frame in frames:
                result = try_parse_frame(frame)
                if result is None or result.kind is FrameKind.COMPLETED:
                    continue
                if result.kind is FrameKind.ERROR:
                    logger.warning("Upstream error on thread %s: %s", run.thread_id, result.error)
                    yield StreamEvent(error=result.error).to_data()
                    failed = True
                    break
                for text in result.deltas:
                    emitted_text = True
                    yield StreamEvent(delta=text).to_data()

        if not failed and not emitted_text:
            logger.info("No text streamed on thread %s, fetching latest messages", run.thread_id)
            event = await fetch_fallback(client, run.thread_id, fallback_limit)
            yield event.to_data()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.exception("Stream relay failed on thread %s", run.thread_id)
        yield StreamEvent(error=str(e) or "stream error").to_data()
    finally:
        run.close()

    logger.info("Stream finished on thread %s", run.thread_id)
    yield DONE
