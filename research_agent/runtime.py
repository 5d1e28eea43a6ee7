"""Runtime: bridges chat requests to the research workflow.

Converts the wire transcript, runs the workflow in a background task and
yields every sink event as it happens, finishing with a ``done`` event that
carries the answer and the updated transcript.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any

from research_agent.agents.workflow import TurnContext, run_research
from research_agent.messages import from_langchain, to_langchain
from research_agent.schemas import ChatRequest, StreamEvent
from research_agent.search import get_search_provider
from research_agent.streaming import StreamChannel

if TYPE_CHECKING:
    from research_agent.agents.state import ResearchState
    from research_agent.config import Settings

logger = logging.getLogger(__name__)

# How long a disconnected client's turn may take to wind down before it is cancelled.
ABORT_GRACE_SECONDS = 2.0


def _summary(final: ResearchState | None) -> dict[str, Any] | None:
    if final is None:
        return None
    return {
        "full_response": final.get("full_response", ""),
        "has_error": final.get("has_error", False),
        "finish_reason": final.get("finish_reason", ""),
        "messages": [m.model_dump() for m in from_langchain(final["messages"])],
    }


async def _drive(channel: StreamChannel, ctx: TurnContext, request: ChatRequest) -> None:
    """Run the workflow and publish its outcome. Always closes the channel."""
    final: ResearchState | None = None
    try:
        final = await run_research(to_langchain(request.messages), ctx)
    except Exception as e:
        logger.error(f"Research workflow error: {e}", exc_info=True)
        channel.emit(StreamEvent(type="error", payload=f"Execution error: {e}"))
    finally:
        ctx.ui_stream.done()
        channel.emit(StreamEvent(type="done", payload=_summary(final)))
        channel.close()


async def execute_chat(
    settings: Settings,
    request: ChatRequest,
    ctx_overrides: dict | None = None,
) -> AsyncGenerator[StreamEvent, None]:
    """Execute one chat request and yield its stream events in order.

    If the consumer stops early the running turn is aborted, then cancelled
    after ``ABORT_GRACE_SECONDS``.
    """
    model = request.model or settings.default_model()
    logger.info(f"Executing chat: model={model.provider_id}/{model.id}, messages={len(request.messages)}")

    fields: dict[str, Any] = {"search_provider": get_search_provider(settings)}
    fields.update(ctx_overrides or {})

    channel = StreamChannel()
    ctx = TurnContext(ui_stream=channel.create_ui(), settings=settings, model=model, **fields)
    task = asyncio.create_task(_drive(channel, ctx, request))

    try:
        async for event in channel.events():
            yield event
    finally:
        if not task.done():
            ctx.abort()
            try:
                await asyncio.wait_for(asyncio.shield(task), ABORT_GRACE_SECONDS)
            except TimeoutError:
                logger.warning("Chat run did not stop in time, cancelling")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
