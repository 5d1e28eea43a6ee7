"""Researcher: one streamed turn of the research agent.

Invokes the model with the search tools bound, routes streamed text to the
answer or raw-text sink depending on the provider's quirks, buffers tool
traffic and appends the turn to the transcript. Both sinks are closed on
every exit path.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage

from research_agent.agents.deltas import (
    ErrorDelta,
    FinishEvent,
    TextDelta,
    ToolCallDelta,
    ToolResultDelta,
)
from research_agent.agents.model import get_llm, stream_text, transform_tool_messages
from research_agent.agents.prompts import researcher_system_prompt
from research_agent.config import QuirkProfile
from research_agent.messages import tool_message
from research_agent.search import get_search_provider
from research_agent.streaming import UINode
from research_agent.tools import ToolContext, get_tools

if TYPE_CHECKING:
    from research_agent.agents.model import ModelFactory, StreamFn
    from research_agent.config import Settings
    from research_agent.schemas import ModelDescriptor
    from research_agent.search import SearchProvider
    from research_agent.streaming import Sink, StreamableUI

logger = logging.getLogger(__name__)

ERROR_SUFFIX = "\nError occurred while executing the tool"


class StreamState(Enum):
    INITIAL = "initial"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class GuardedSink:
    """A sink behind its own state machine.

    Writes reach the sink only while ACTIVE. ``close`` moves ACTIVE to
    CLOSING, calls ``done()`` once and always lands in CLOSED; closing a
    sink that is not ACTIVE is a no-op. Sink failures are logged, never
    raised, so one broken sink cannot keep another from closing.
    """

    def __init__(self, name: str, sink: Sink) -> None:
        self.name = name
        self.sink = sink
        self.state = StreamState.INITIAL

    def open(self) -> None:
        if self.state is StreamState.INITIAL:
            self.state = StreamState.ACTIVE

    def write(self, value: Any) -> bool:
        if self.state is not StreamState.ACTIVE:
            logger.debug(f"Dropping write to '{self.name}' sink in state {self.state.value}")
            return False
        try:
            self.sink.update(value)
        except Exception as e:
            logger.error(f"Error updating '{self.name}' sink: {e}")
            return False
        return True

    async def close(self) -> None:
        if self.state is not StreamState.ACTIVE:
            if self.state is StreamState.INITIAL:
                self.state = StreamState.CLOSED
            return
        self.state = StreamState.CLOSING
        try:
            outcome = self.sink.done()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Error closing '{self.name}' sink: {e}")
        finally:
            self.state = StreamState.CLOSED


@dataclass
class TurnResult:
    full_response: str
    has_error: bool
    finish_reason: str
    tool_responses: list[ToolMessage] = field(default_factory=list)


class Researcher:
    """Runs exactly one turn; create a new instance per turn."""

    def __init__(
        self,
        ui_stream: StreamableUI,
        text_stream: Sink,
        *,
        model: ModelDescriptor,
        settings: Settings,
        profile: QuirkProfile | None = None,
        search_provider: SearchProvider | None = None,
        model_factory: ModelFactory = get_llm,
        stream_fn: StreamFn = stream_text,
    ) -> None:
        self.ui_stream = ui_stream
        self.model = model
        self.settings = settings
        self.profile = profile or settings.quirk_profile
        self.search_provider = search_provider or get_search_provider(settings)
        self._model_factory = model_factory
        self._stream_fn = stream_fn

        answer_stream = ui_stream.create_value("", name="answer")
        self.answer_stream_id = answer_stream.id
        self._answer = GuardedSink("answer", answer_stream)
        self._text = GuardedSink("text", text_stream)

        self.state = StreamState.INITIAL
        self.full_response = ""
        self.has_error = False
        self.finish_reason = ""

    @property
    def sinks(self) -> tuple[GuardedSink, GuardedSink]:
        return self._answer, self._text

    def abort(self) -> None:
        """Stop consuming the model stream at the next delta."""
        if self.state is StreamState.ACTIVE:
            logger.info("Researcher turn aborted")
            self.state = StreamState.CLOSING

    def _start(self) -> None:
        self.state = StreamState.ACTIVE
        self._answer.open()
        self._text.open()

    async def _close(self) -> None:
        if self.state is StreamState.CLOSED:
            return
        self.state = StreamState.CLOSING
        await self._answer.close()
        await self._text.close()
        self.state = StreamState.CLOSED

    def _report_error(self, message: str) -> None:
        """Show a degraded tool's notice in both sinks.

        The turn is not flagged: the empty result still goes back to the
        model so the next turn can answer from it.
        """
        logger.warning(f"Tool reported an error: {message}")
        self.full_response = f"{self.full_response}\n{message}" if self.full_response else message
        self._write_both()

    def _on_finish(self, event: FinishEvent) -> None:
        self.finish_reason = event.finish_reason
        logger.info(f"Model finished: reason={event.finish_reason}, chars={len(event.text)}")

    def _write_both(self) -> None:
        self._text.write(self.full_response)
        self._answer.write(self.full_response)

    async def run(self, messages: list[BaseMessage]) -> TurnResult:
        """Run the turn and append its assistant (and tool) messages to ``messages``."""
        has_tool_result = any(isinstance(m, ToolMessage) for m in messages)
        tool_limited = self.profile is QuirkProfile.TOOL_LIMITED
        processed = transform_tool_messages(messages) if tool_limited else list(messages)
        use_sub_model = tool_limited and has_tool_result
        # Anthropic-style: the answer section only follows a tool result.
        stream_to_text = self.profile is QuirkProfile.UI_DEFERRED and not has_tool_result

        tool_calls: list[ToolCallDelta] = []
        tool_results: list[ToolResultDelta] = []
        tool_responses: list[ToolMessage] = []

        self._start()
        try:
            llm = self._model_factory(self.model, self.settings, use_sub_model=use_sub_model)
            tools = get_tools(
                ToolContext(
                    ui_stream=self.ui_stream,
                    settings=self.settings,
                    search_provider=self.search_provider,
                    report_error=self._report_error,
                )
            )
            result = self._stream_fn(
                model=llm,
                system=researcher_system_prompt(),
                messages=processed,
                tools=tools,
                on_finish=self._on_finish,
            )

            if not stream_to_text:
                self.ui_stream.append(UINode.answer_section(self.answer_stream_id))

            stream = result.full_stream
            try:
                async for delta in stream:
                    if self.state is not StreamState.ACTIVE:
                        break

                    match delta:
                        case TextDelta(text=text):
                            if not text:
                                continue
                            self.full_response += text
                            target = self._text if stream_to_text else self._answer
                            target.write(self.full_response)
                        case ToolCallDelta():
                            tool_calls.append(delta)
                        case ToolResultDelta(result=payload):
                            if not payload:
                                self.has_error = True
                            tool_results.append(delta)
                        case ErrorDelta(error=error):
                            logger.error(f"Error: {error}")
                            self.has_error = True
                            self.full_response += ERROR_SUFFIX
                            self._write_both()
            finally:
                await stream.aclose()

            messages.append(
                AIMessage(
                    content=self.full_response,
                    tool_calls=[
                        {"name": tc.tool_name, "args": tc.args, "id": tc.call_id}
                        for tc in tool_calls
                    ],
                )
            )
            tool_responses = [tool_message(tr.call_id, tr.tool_name, tr.result) for tr in tool_results]
            messages.extend(tool_responses)

        except Exception as e:
            logger.error(f"Researcher turn failed: {e}", exc_info=True)
            self.has_error = True
            self.full_response = f"Error: {e}"
            self._write_both()
        finally:
            await self._close()

        return TurnResult(
            full_response=self.full_response,
            has_error=self.has_error,
            finish_reason=self.finish_reason,
            tool_responses=tool_responses,
        )
