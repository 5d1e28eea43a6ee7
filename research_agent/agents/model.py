"""Model invocation boundary.

Turns a LangChain chat model into a lazy stream of delta events: text as it
arrives, then the tool calls the model requested, then each tool's result
(the boundary runs the tools itself). Also home to the chat model factory
and the history rewrite for providers without tool-result messages.
"""

from __future__ import annotations

import inspect
import json
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage, ToolMessage
from langchain_openai import ChatOpenAI

from research_agent.agents.deltas import (
    DeltaEvent,
    ErrorDelta,
    FinishEvent,
    TextDelta,
    ToolCallDelta,
    ToolResultDelta,
)
from research_agent.messages import extract_text

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel
    from langchain_core.messages import AIMessageChunk
    from langchain_core.tools import BaseTool

    from research_agent.config import Settings
    from research_agent.schemas import ModelDescriptor

logger = logging.getLogger(__name__)

OnFinish = Callable[[FinishEvent], Awaitable[None] | None]

# provider stop reasons -> finish reason tokens
_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "stop": "stop",
    "max_tokens": "length",
    "length": "length",
    "tool_use": "tool-calls",
    "tool_calls": "tool-calls",
}


# ---------------------------------------------------------------------------
# LLM factory
# ---------------------------------------------------------------------------


def get_llm(
    descriptor: ModelDescriptor,
    settings: Settings,
    use_sub_model: bool = False,
) -> BaseChatModel:
    """Create the chat model for ``descriptor``.

    Ollama is reached through its OpenAI-compatible endpoint. With
    ``use_sub_model`` the descriptor's tool_call_model (or OLLAMA_SUB_MODEL)
    replaces the main model.
    """
    model = descriptor.id
    if use_sub_model:
        model = descriptor.tool_call_model or settings.ollama_sub_model or model

    match descriptor.provider_id:
        case "anthropic":
            if not settings.anthropic_api_key:
                raise RuntimeError("ANTHROPIC_API_KEY environment variable is not set")
            return ChatAnthropic(
                model=model,
                max_tokens=settings.max_tokens,
                api_key=settings.anthropic_api_key,
            )
        case "ollama":
            if not settings.ollama_base_url:
                raise RuntimeError("OLLAMA_BASE_URL environment variable is not set")
            return ChatOpenAI(
                model=model,
                max_tokens=settings.max_tokens,
                base_url=settings.ollama_base_url.rstrip("/") + "/v1",
                api_key="ollama",
            )
        case _:
            if not settings.openai_api_key:
                raise RuntimeError("OPENAI_API_KEY environment variable is not set")
            return ChatOpenAI(
                model=model,
                max_tokens=settings.max_tokens,
                api_key=settings.openai_api_key,
                base_url=settings.openai_api_base,
            )


# ---------------------------------------------------------------------------
# History rewrite for tool-limited providers
# ---------------------------------------------------------------------------


def _tool_result_text(msg: ToolMessage) -> str:
    content = msg.content if isinstance(msg.content, str) else json.dumps(msg.content, default=str)
    return f"Tool call result ({msg.name or 'tool'}): {content}"


def transform_tool_messages(messages: Sequence[BaseMessage]) -> list[BaseMessage]:
    """Fold tool traffic into assistant text.

    Tool results become assistant messages and tool-call requests are
    described inline, so providers without a tool role still see what
    was searched and what came back. The input list is not modified.
    """
    transformed: list[BaseMessage] = []
    for msg in messages:
        if isinstance(msg, ToolMessage):
            transformed.append(AIMessage(content=_tool_result_text(msg)))
        elif isinstance(msg, AIMessage) and msg.tool_calls:
            calls = "\n".join(
                f"Tool call ({tc['name']}): {json.dumps(tc['args'], default=str)}"
                for tc in msg.tool_calls
            )
            text = extract_text(msg.content)
            transformed.append(AIMessage(content=f"{text}\n{calls}" if text else calls))
        else:
            transformed.append(msg)
    return transformed


# ---------------------------------------------------------------------------
# Delta stream
# ---------------------------------------------------------------------------


def _finish_reason(message: AIMessageChunk | None, had_tool_calls: bool) -> str:
    if had_tool_calls:
        return "tool-calls"
    if message is None:
        return "stop"
    meta = message.response_metadata or {}
    raw = meta.get("stop_reason") or meta.get("finish_reason") or meta.get("done_reason") or "stop"
    return _STOP_REASONS.get(raw, raw)


class DeltaStream:
    """Single-use async iterator over one model response.

    ``on_finish`` fires exactly once if the stream runs to completion and
    never if the consumer stops early and calls ``aclose``.
    """

    def __init__(
        self,
        model: BaseChatModel,
        system: str,
        messages: Sequence[BaseMessage],
        tools: Sequence[BaseTool],
        on_finish: OnFinish | None,
    ) -> None:
        self._model = model
        self._system = system
        self._messages = list(messages)
        self._tools = list(tools)
        self._on_finish = on_finish
        self._iterator: AsyncIterator[DeltaEvent] | None = None
        self._finished = False

    def __aiter__(self) -> AsyncIterator[DeltaEvent]:
        if self._iterator is not None:
            raise RuntimeError("Delta stream has already been consumed")
        self._iterator = self._run()
        return self._iterator

    async def aclose(self) -> None:
        if self._iterator is not None:
            await self._iterator.aclose()

    async def _finish(self, text: str, finish_reason: str) -> None:
        if self._finished:
            return
        self._finished = True
        if self._on_finish is None:
            return
        outcome = self._on_finish(FinishEvent(text=text, finish_reason=finish_reason))
        if inspect.isawaitable(outcome):
            await outcome

    async def _run(self) -> AsyncIterator[DeltaEvent]:
        llm = self._model.bind_tools(self._tools) if self._tools else self._model
        prompt = [SystemMessage(content=self._system), *self._messages]

        text_parts: list[str] = []
        gathered: AIMessageChunk | None = None
        try:
            async for chunk in llm.astream(prompt):
                gathered = chunk if gathered is None else gathered + chunk
                piece = extract_text(chunk.content)
                if piece:
                    text_parts.append(piece)
                    yield TextDelta(piece)
        except Exception as e:
            logger.error(f"Model stream failed: {e}", exc_info=True)
            yield ErrorDelta(e)
            await self._finish("".join(text_parts), "error")
            return

        tool_calls = list(getattr(gathered, "tool_calls", None) or [])
        for tc in tool_calls:
            tc["id"] = tc.get("id") or f"call_{uuid.uuid4().hex[:12]}"
            yield ToolCallDelta(call_id=tc["id"], tool_name=tc["name"], args=tc["args"])

        tools_by_name = {t.name: t for t in self._tools}
        for tc in tool_calls:
            tool = tools_by_name.get(tc["name"])
            if tool is None:
                yield ErrorDelta(f"Model called unknown tool '{tc['name']}'")
                continue
            try:
                result = await tool.ainvoke(tc["args"])
            except Exception as e:
                logger.error(f"Tool '{tc['name']}' failed: {e}", exc_info=True)
                yield ErrorDelta(e)
                continue
            yield ToolResultDelta(call_id=tc["id"], tool_name=tc["name"], args=tc["args"], result=result)

        await self._finish("".join(text_parts), _finish_reason(gathered, bool(tool_calls)))


class StreamTextResult:
    def __init__(self, full_stream: DeltaStream) -> None:
        self.full_stream = full_stream


def stream_text(
    *,
    model: BaseChatModel,
    system: str,
    messages: Sequence[BaseMessage],
    tools: Sequence[BaseTool] = (),
    on_finish: OnFinish | None = None,
) -> StreamTextResult:
    """Start a streamed completion. Nothing runs until ``full_stream`` is iterated."""
    return StreamTextResult(DeltaStream(model, system, messages, tools, on_finish))


StreamFn = Callable[..., StreamTextResult]
ModelFactory = Callable[..., "BaseChatModel"]

__all__ = [
    "DeltaStream",
    "ModelFactory",
    "StreamFn",
    "StreamTextResult",
    "get_llm",
    "stream_text",
    "transform_tool_messages",
]