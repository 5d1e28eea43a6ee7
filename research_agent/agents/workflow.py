"""Research workflow: wires the researcher into a LangGraph loop.

    START -> [researcher] -> conditional (route_after_turn)
      -> "researcher"  tool results still need an answer, or no answer yet
      -> "__done__"    -> END

Each pass is one researcher turn with a fresh raw-text sink; the UI stream
and the other per-request collaborators travel in
``config["configurable"]["turn_context"]`` so the compiled graph can be
shared across requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache, partial
from typing import TYPE_CHECKING

from langchain_core.messages import ToolMessage
from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from research_agent.agents.model import get_llm, stream_text
from research_agent.agents.researcher import Researcher
from research_agent.agents.state import ResearchState

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage
    from langgraph.graph.state import CompiledStateGraph

    from research_agent.agents.model import ModelFactory, StreamFn
    from research_agent.config import QuirkProfile, Settings
    from research_agent.schemas import ModelDescriptor
    from research_agent.search import SearchProvider
    from research_agent.streaming import StreamableUI

logger = logging.getLogger(__name__)

RESEARCHER_NODE = "researcher"


@dataclass
class TurnContext:
    """Per-request collaborators for every researcher turn."""

    ui_stream: StreamableUI
    settings: Settings
    model: ModelDescriptor
    search_provider: SearchProvider | None = None
    profile: QuirkProfile | None = None
    model_factory: ModelFactory = get_llm
    stream_fn: StreamFn = stream_text
    active: Researcher | None = field(default=None, repr=False)
    aborted: bool = False

    def abort(self) -> None:
        """Stop the running turn at its next delta and run no further turns."""
        self.aborted = True
        if self.active is not None:
            self.active.abort()


def _turn_context(config: RunnableConfig) -> TurnContext:
    ctx = (config.get("configurable") or {}).get("turn_context")
    if ctx is None:
        raise RuntimeError("turn_context missing from graph config")
    return ctx


async def researcher_node(state: ResearchState, config: RunnableConfig) -> dict:
    ctx = _turn_context(config)
    iteration = state.get("iterations", 0) + 1
    logger.info(f"Researcher turn {iteration} starting")

    researcher = Researcher(
        ctx.ui_stream,
        ctx.ui_stream.create_value("", name="text"),
        model=ctx.model,
        settings=ctx.settings,
        profile=ctx.profile,
        search_provider=ctx.search_provider,
        model_factory=ctx.model_factory,
        stream_fn=ctx.stream_fn,
    )
    ctx.active = researcher
    transcript = list(state["messages"])
    seen = len(transcript)
    try:
        result = await researcher.run(transcript)
    finally:
        ctx.active = None

    return {
        "messages": transcript[seen:],
        "full_response": result.full_response,
        "has_error": result.has_error,
        "finish_reason": result.finish_reason,
        "iterations": iteration,
    }


def route_after_turn(state: ResearchState, max_iterations: int, ctx_aborted: bool = False) -> str:
    """Decide whether another researcher turn is needed.

    Returns:
        "researcher"  - the last turn ended with tool results, or produced no
                        answer, and the iteration budget is not spent
        "__done__"    - otherwise, or as soon as a turn reports an error
    """
    if ctx_aborted or state.get("has_error"):
        return "__done__"

    messages = state.get("messages") or []
    pending_tool_results = bool(messages) and isinstance(messages[-1], ToolMessage)
    if not pending_tool_results and state.get("full_response"):
        return "__done__"

    iterations = state.get("iterations", 0)
    if iterations >= max_iterations:
        logger.warning(f"Stopping after {iterations} researcher turns without a final answer")
        return "__done__"
    return RESEARCHER_NODE


def _route(state: ResearchState, config: RunnableConfig, max_iterations: int) -> str:
    return route_after_turn(state, max_iterations, _turn_context(config).aborted)


@lru_cache(maxsize=8)
def build_research_graph(max_iterations: int) -> CompiledStateGraph:
    """Build and compile the research loop."""
    graph = StateGraph(ResearchState)
    graph.add_node(RESEARCHER_NODE, researcher_node)
    graph.set_entry_point(RESEARCHER_NODE)
    graph.add_conditional_edges(
        RESEARCHER_NODE,
        partial(_route, max_iterations=max_iterations),
        {RESEARCHER_NODE: RESEARCHER_NODE, "__done__": END},
    )
    logger.info(f"Built research graph (max_iterations={max_iterations})")
    return graph.compile()


async def run_research(messages: list[BaseMessage], ctx: TurnContext) -> ResearchState:
    """Run researcher turns until an answer is ready; returns the final state."""
    max_iterations = ctx.settings.max_iterations
    graph = build_research_graph(max_iterations)
    initial: ResearchState = {
        "messages": messages,
        "full_response": "",
        "has_error": False,
        "finish_reason": "",
        "iterations": 0,
    }
    return await graph.ainvoke(
        initial,
        config={
            "configurable": {"turn_context": ctx},
            "recursion_limit": max_iterations * 2 + 5,
        },
    )
