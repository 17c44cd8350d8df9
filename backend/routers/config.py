"""Configuration API endpoints"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from routers.chat import ClientFactory, get_client_factory
from services.config_manager import ConfigManager
from services.errors import UpstreamError

router = APIRouter()


class ConfigUpdateRequest(BaseModel):
    """Request to update non-secret settings.

    The base URL is not accepted: it decides where the API key is sent, so it
    only comes from the config file or OPENAI_BASE_URL.
    """

    model_config = ConfigDict(extra="forbid")

    assistantId: str | None = None
    requestTimeout: float | None = None
    streamReadTimeout: float | None = None
    fallbackLimit: int | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    configured: bool
    missing: list[str]
    apiKey: str
    assistantId: str
    baseUrl: str
    requestTimeout: float
    streamReadTimeout: float
    fallbackLimit: int


class ValidateResponse(BaseModel):
    """Validation response"""

    valid: bool
    message: str


def mask_key(key: str) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


@router.get("", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration with the API key masked"""
    settings = ConfigManager.get_instance().get_settings()
    missing = settings.missing()

    return ConfigResponse(
        configured=not missing,
        missing=missing,
        apiKey=mask_key(settings.api_key),
        assistantId=settings.assistant_id,
        baseUrl=settings.base_url,
        requestTimeout=settings.request_timeout,
        streamReadTimeout=settings.stream_read_timeout,
        fallbackLimit=settings.fallback_limit,
    )


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Update configuration"""
    config_manager = ConfigManager.get_instance()
    updates = request.model_dump(exclude_none=True)
    config_manager.save_config(updates)

    return {"status": "success", "message": "Configuration updated", "updated": sorted(updates)}


@router.post("/validate", response_model=ValidateResponse)
async def validate_config(client_factory: ClientFactory = Depends(get_client_factory)) -> ValidateResponse:
    """Validate current configuration by fetching the assistant"""
    settings = ConfigManager.get_instance().get_settings()
    missing = settings.missing()
    if missing:
        return ValidateResponse(valid=False, message=f"Missing environment variables: {', '.join(missing)}")

    try:
        async with client_factory(settings) as client:
            assistant = await client.get_assistant()
    except UpstreamError as e:
        return ValidateResponse(valid=False, message=f"Assistant API error ({e.status}): {e.body}")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return ValidateResponse(valid=False, message=f"Connection failed: {e}")

    name = assistant.get("name") or settings.assistant_id
    return ValidateResponse(valid=True, message=f"Successfully connected to assistant {name}")
