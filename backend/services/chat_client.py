"""
Chat Client - Consume the relay stream and keep the conversation state
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import aiohttp

from models.chat import DONE, SSEFrame
from models.conversation import ConversationState, Message, Role
from services.errors import RelayStreamError, RelayTransportError
from services.sse_frames import FrameBuffer
from services.thread_store import ThreadStore

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Desculpe, ocorreu um erro ao processar sua mensagem."


class RelayTransport:
    """HTTP transport to the relay's stream endpoint"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        path: str = "/api/chat/stream",
        session: aiohttp.ClientSession | None = None,
    ):
        self.url = f"{base_url.rstrip('/')}{path}"
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # Replies can pause between deltas; only bound connection setup
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None, connect=30))
            self._owns_session = True
        return self._session

    async def aclose(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    @asynccontextmanager
    async def open(self, message: str, thread_id: str | None) -> AsyncIterator[AsyncIterator[bytes]]:
        """POST the message and yield the response body chunks"""
        payload = {"message": message, "threadId": thread_id}
        async with self.session.post(
            self.url, json=payload, headers={"Accept": "text/event-stream"}
        ) as response:
            if response.status != 200:
                raise RelayTransportError(f"Relay responded {response.status}: {await response.text()}")
            if response.content_length == 0:
                raise RelayTransportError("Relay response has no body")
            yield response.content.iter_any()


class _Exchange:
    """Bookkeeping for one in-flight request"""

    def __init__(self, generation: int, reply: Message, thread_id: str | None):
        self.generation = generation
        self.reply = reply
        self.thread_id = thread_id
        self.done = False


def decode_event(frame: SSEFrame) -> dict[str, Any] | None:
    """Parse a relay frame payload; None for malformed or non-object data"""
    try:
        data = json.loads(frame.data)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class ChatSession:
    """One chat tab: sends messages through the relay and applies the deltas.

    At most one exchange is in flight. ``new_conversation`` aborts it,
    forgets the thread and starts over from the greeting.
    """

    def __init__(
        self,
        transport: RelayTransport,
        store: ThreadStore | None = None,
        on_change: Callable[[ConversationState], None] | None = None,
    ):
        self.transport = transport
        self.store = store
        self.on_change = on_change
        self.state = ConversationState(thread_id=store.load() if store else None)
        self._task: asyncio.Task | None = None
        self._generation = 0

    def _changed(self):
        if self.on_change:
            self.on_change(self.state)

    def _is_current(self, exchange: _Exchange) -> bool:
        return exchange.generation == self._generation

    def start(self, text: str | None = None) -> asyncio.Task | None:
        """Schedule `send` as the session's in-flight task"""
        if self.state.loading:
            return None
        task = asyncio.create_task(self.send(text))
        self._task = task
        return task

    async def send(self, text: str | None = None) -> Message | None:
        """Send `text` (or the draft) and stream the reply into the state.

        Returns the assistant message, or None when nothing was sent or the
        exchange was aborted by `new_conversation`.
        """
        text = (self.state.draft if text is None else text).strip()
        if not text or self.state.loading:
            return None

        self._task = asyncio.current_task()
        self.state.append(Role.USER, text)
        reply = self.state.append(Role.ASSISTANT)
        self.state.draft = ""
        self.state.loading = True
        self._changed()

        exchange = _Exchange(self._generation, reply, self.state.thread_id)
        try:
            async with self.transport.open(text, self.state.thread_id) as chunks:
                buffer = FrameBuffer()
                async for chunk in chunks:
                    for frame in buffer.feed(chunk):
                        self._apply(frame, exchange)
                        if exchange.done:
                            break
                    if exchange.done:
                        break
                if not exchange.done:
                    for frame in buffer.flush():
                        self._apply(frame, exchange)
        except asyncio.CancelledError:
            if self._is_current(exchange):
                raise
            # Aborted by new_conversation: state was already reset
            task = asyncio.current_task()
            if task is not None and hasattr(task, "uncancel"):
                task.uncancel()
            return None
        except (RelayStreamError, RelayTransportError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            if not self._is_current(exchange):
                return None
            logger.error("Chat request failed: %s", e)
            if not reply.content:
                reply.content = GENERIC_FAILURE
        finally:
            if self._is_current(exchange):
                self.state.loading = False
                if exchange.thread_id and exchange.thread_id != self.state.thread_id:
                    self.state.thread_id = exchange.thread_id
                if self._task is asyncio.current_task():
                    self._task = None
                self._changed()

        return reply if self._is_current(exchange) else None

    def _apply(self, frame: SSEFrame, exchange: _Exchange):
        """Apply one relay frame to the conversation"""
        if exchange.done or not self._is_current(exchange):
            return
        if frame.data == DONE:
            exchange.done = True
            return

        event = decode_event(frame)
        if event is None:
            return

        thread_id = event.get("threadId")
        if isinstance(thread_id, str) and thread_id and not exchange.thread_id:
            exchange.thread_id = thread_id
            if self.store:
                self.store.save(thread_id)

        delta = event.get("delta")
        if isinstance(delta, str) and delta:
            exchange.reply.content += delta
            self._changed()

        if event.get("error"):
            raise RelayStreamError(str(event["error"]))

    def _abort(self) -> asyncio.Task | None:
        """Invalidate the in-flight exchange and cancel its task"""
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            return task
        return None

    def new_conversation(self):
        """Abort any in-flight exchange and start over with a fresh greeting"""
        self._abort()
        if self.store:
            self.store.clear()
        self.state.reset()
        self._changed()

    async def aclose(self):
        """Abort the in-flight exchange and close the transport"""
        task = self._abort()
        self.state.loading = False
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        await self.transport.aclose()
