"""
Lu Chat Relay - FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routers import chat, config
from services.config_manager import ConfigManager

logger = logging.getLogger("lu_chat")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    logger.info("Starting Lu chat relay...")
    settings = ConfigManager.get_instance().get_settings()
    missing = settings.missing()
    if missing:
        # Requests will fail with HTTP 500 until these are set
        logger.warning("Missing configuration: %s", ", ".join(missing))
    else:
        logger.info("Relaying to assistant %s at %s", settings.assistant_id, settings.base_url)

    yield
    logger.info("Shutting down Lu chat relay...")


app = FastAPI(
    title="Lu Chat Relay",
    description="SSE relay between the chat front-end and the assistant API",
    version="1.0.0",
    lifespan=lifespan,
)

# The chat page may be served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
app.include_router(config.router, prefix="/api/config", tags=["config"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "lu-chat-relay"}


def run():
    """Console entry point"""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="[%(name)s] %(levelname)s %(message)s")
    server = ConfigManager.get_instance().get("server", {})
    uvicorn.run(app, host=server.get("host", "0.0.0.0"), port=server.get("port", 8000))


if __name__ == "__main__":
    run()
