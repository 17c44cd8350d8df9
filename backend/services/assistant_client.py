"""
Assistant Client - Thread/message/run calls against the Assistants v2 API
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import aiohttp

from services.config_manager import RelaySettings
from services.errors import UpstreamError

logger = logging.getLogger(__name__)


class RunStream:
    """Live SSE body of a streamed run, bound to its resolved thread"""

    def __init__(self, thread_id: str, response: aiohttp.ClientResponse):
        self.thread_id = thread_id
        self._response = response

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield raw body chunks as they arrive (no frame alignment)"""
        async for chunk in self._response.content.iter_any():
            yield chunk

    def close(self):
        self._response.close()


class AssistantClient:
    """Client for the upstream assistant service"""

    def __init__(self, settings: RelaySettings, session: aiohttp.ClientSession | None = None):
        self.settings = settings
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "AssistantClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    # ========== Session Helpers ==========

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def aclose(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "OpenAI-Beta": "assistants=v2",
        }
        if extra:
            headers.update(extra)
        return headers

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url}{path}"

    @asynccontextmanager
    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ):
        """Context manager for one API call that raises UpstreamError on non-2xx"""
        async with self.session.request(
            method, self._url(path), json=payload, params=params, headers=self._headers()
        ) as response:
            if response.status >= 300:
                error_text = await response.text()
                logger.error("Assistant API %s failed (%s): %s", operation, response.status, error_text)
                raise UpstreamError(response.status, error_text, operation)
            yield response

    async def _request_json(self, method: str, path: str, operation: str, **kwargs) -> dict[str, Any]:
        """Call the API and decode a JSON object body; anything else is an UpstreamError"""
        async with self._request(method, path, operation, **kwargs) as response:
            text = await response.text()
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                data = None
            if not isinstance(data, dict):
                logger.error("Assistant API %s returned a non-object body (%s): %.200s", operation, response.status, text)
                raise UpstreamError(response.status, text or "empty response body", operation)
            return data

    # ========== API Calls ==========

    async def create_thread(self) -> str:
        """Create an empty conversation thread and return its id"""
        data = await self._request_json("POST", "/threads", "create thread")
        thread_id = data.get("id")
        if not thread_id:
            raise UpstreamError(200, "thread response carried no id", "create thread")
        logger.info("Created thread %s", thread_id)
        return thread_id

    async def add_user_message(self, thread_id: str, text: str) -> dict[str, Any]:
        """Append a user-role message to the thread"""
        payload = {"role": "user", "content": [{"type": "text", "text": text}]}
        return await self._request_json(
            "POST", f"/threads/{thread_id}/messages", "add message", payload=payload
        )

    async def start_run(self, thread_id: str) -> aiohttp.ClientResponse:
        """Start a streamed run; the caller owns the returned response"""
        payload = {
            "assistant_id": self.settings.assistant_id,
            "stream": True,
            "response_format": {"type": "text"},
        }
        # No total deadline on the stream, only between reads
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self.settings.stream_read_timeout)
        response = await self.session.post(
            self._url(f"/threads/{thread_id}/runs"),
            json=payload,
            headers=self._headers({"Accept": "text/event-stream"}),
            timeout=timeout,
        )
        if response.status >= 300 or response.content_length == 0:
            error_text = await response.text()
            response.release()
            logger.error("Assistant API start run failed (%s): %s", response.status, error_text)
            raise UpstreamError(response.status, error_text or "Failed to start the run.", "start run")
        return response

    async def open_run(self, text: str, thread_id: str | None = None) -> RunStream:
        """Create the thread if needed, post the message and start a streamed run"""
        if not thread_id:
            thread_id = await self.create_thread()
        await self.add_user_message(thread_id, text)
        response = await self.start_run(thread_id)
        logger.info("Run stream opened on thread %s", thread_id)
        return RunStream(thread_id, response)

    async def list_messages(self, thread_id: str, limit: int = 5) -> list[dict[str, Any]]:
        """Newest-first page of thread messages"""
        data = await self._request_json(
            "GET",
            f"/threads/{thread_id}/messages",
            "list messages",
            params={"limit": str(limit), "order": "desc"},
        )
        messages = data.get("data")
        return messages if isinstance(messages, list) else []

    async def get_assistant(self) -> dict[str, Any]:
        """Fetch the configured assistant (used to validate settings)"""
        return await self._request_json(
            "GET", f"/assistants/{self.settings.assistant_id}", "get assistant"
        )
