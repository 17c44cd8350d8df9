"""Chat stream API endpoint"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import aiohttp
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse
from sse_starlette.sse import EventSourceResponse

from models.chat import ChatRequest
from services.assistant_client import AssistantClient
from services.config_manager import ConfigManager, RelaySettings
from services.errors import ConfigurationError, UpstreamError
from services.relay import relay_run

logger = logging.getLogger(__name__)

router = APIRouter()

ClientFactory = Callable[[RelaySettings], AssistantClient]


def get_settings() -> RelaySettings:
    """Current relay settings (file + environment)"""
    return ConfigManager.get_instance().get_settings()


def get_client_factory() -> ClientFactory:
    """Factory for the upstream client; overridden in tests"""
    return AssistantClient


@router.post("/stream")
async def chat_stream(
    request: ChatRequest,
    settings: RelaySettings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """Send a chat message and relay the assistant run as SSE"""
    try:
        settings.require()
    except ConfigurationError as e:
        logger.error("Relay misconfigured: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})

    client = client_factory(settings)
    try:
        run = await client.open_run(request.message, request.thread_id)
    except UpstreamError as e:
        await client.aclose()
        return PlainTextResponse(e.body or str(e), status_code=500)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        await client.aclose()
        logger.error("Assistant API unreachable: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e) or "upstream unreachable"})
    except BaseException:
        await client.aclose()
        raise

    async def event_generator():
        try:
            async for payload in relay_run(run, client, settings.fallback_limit):
                yield {"data": payload}
        finally:
            await client.aclose()

    return EventSourceResponse(
        event_generator(),
        sep="\n",
        headers={"Cache-Control": "no-cache, no-transform"},
    )
