"""Research agent: FastAPI app streaming answers as Server-Sent Events.

Loads config.yaml (optional) and the environment on startup. Exposes
/chat for SSE streaming, plus operational endpoints for health, config
viewing, and hot-reload.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from research_agent.agents.workflow import build_research_graph
from research_agent.config import get_settings, load_settings, reload_settings
from research_agent.runtime import execute_chat
from research_agent.schemas import ChatRequest
from research_agent.search import SEARCH_PROVIDERS
from research_agent.tools import list_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings on startup."""
    settings = load_settings()
    logger.info(
        f"Research agent started (origins={settings.allowed_origins}, "
        f"search_api={settings.search_api}, "
        f"profile={settings.quirk_profile.value}, "
        f"tools={list_tools()})"
    )
    yield
    logger.info("Research agent shutting down")


# Load settings early so we can read allowed_origins for CORS middleware.
_boot_settings = load_settings()

app = FastAPI(title="Research Agent", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_boot_settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Chat endpoint
# ---------------------------------------------------------------------------


@app.post("/chat")
async def chat(request: ChatRequest):
    """Run the research agent over the transcript.

    Streams response as Server-Sent Events (SSE).
    """
    settings = get_settings()
    if request.model is not None and not request.model.enabled:
        raise HTTPException(status_code=422, detail=f"Model '{request.model.id}' is disabled")

    async def stream():
        async for event in execute_chat(settings, request):
            data = json.dumps(event.model_dump(), default=str)
            yield f"data: {data}\n\n"

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# ---------------------------------------------------------------------------
# Operational endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    """Liveness check."""
    settings = get_settings()
    return {
        "status": "healthy",
        "search_api": settings.search_api,
        "profile": settings.quirk_profile.value,
    }


@app.get("/config")
async def get_current_config():
    """Return current settings as JSON, credentials masked."""
    settings = get_settings()
    return {
        **settings.redacted(),
        "search_providers": sorted(SEARCH_PROVIDERS),
        "tools": list_tools(),
        "default_model": settings.default_model().model_dump(),
    }


@app.post("/reload")
async def reload():
    """Hot-reload config.yaml and the environment without a restart."""
    try:
        new_settings = reload_settings()
        build_research_graph.cache_clear()
        return {
            "status": "reloaded",
            "search_api": new_settings.search_api,
            "profile": new_settings.quirk_profile.value,
        }
    except Exception as e:
        logger.error(f"Reload failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Reload failed: {e}")
