"""Shared fixtures and fakes for the research agent tests.

Provides:
- Settings built without touching the process environment
- A stream channel with a UI stream, plus a helper to drain its events
- A recording sink and a scripted search provider
- Scripted delta streams and a fake chat model standing in for a live model
- A fake page loader for the crawler
"""

from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from research_agent.agents.deltas import DeltaEvent, FinishEvent
from research_agent.config import Settings, build_settings
from research_agent.schemas import ModelDescriptor, StreamEvent
from research_agent.search import SearchProvider, SearchResultItem, SearchResults
from research_agent.streaming import StreamableUI, StreamChannel

# ============================================================================
# FAKES
# ============================================================================


class RecordingSink:
    """A text sink that remembers every update and close."""

    def __init__(self, fail_on_done: bool = False) -> None:
        self.updates: list[Any] = []
        self.done_calls = 0
        self.fail_on_done = fail_on_done

    def update(self, value: Any) -> None:
        self.updates.append(value)

    def done(self) -> None:
        self.done_calls += 1
        if self.fail_on_done:
            raise RuntimeError("sink exploded")


class FakeSearchProvider(SearchProvider):
    """Returns a canned result set, or raises ``error`` when set."""

    name = "fake"

    def __init__(self, results: SearchResults | None = None, error: Exception | None = None) -> None:
        super().__init__(build_settings(environ={}))
        self.results = results
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def search(
        self,
        query: str,
        max_results: int = 10,
        search_depth: str = "basic",
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
    ) -> SearchResults:
        self.calls.append(
            {
                "query": query,
                "max_results": max_results,
                "search_depth": search_depth,
                "include_domains": include_domains,
                "exclude_domains": exclude_domains,
            }
        )
        if self.error is not None:
            raise self.error
        return self.results or SearchResults(
            results=[SearchResultItem(title="Cats", url="https://cats.example.com", content="Meow")],
            images=[],
            query=query,
            number_of_results=1,
        )


class FakeChatModel:
    """Duck-typed chat model; each ``astream`` call plays the next turn's chunks.

    ``error`` is raised after the last chunk of every turn when set.
    """

    def __init__(self, *turns: list[Any], error: Exception | None = None) -> None:
        self.turns = list(turns)
        self.error = error
        self.bound_tools = None
        self.prompts: list[list[Any]] = []

    def bind_tools(self, tools):
        self.bound_tools = list(tools)
        return self

    async def astream(self, messages):
        self.prompts.append(messages)
        chunks = self.turns.pop(0) if self.turns else []
        for chunk in chunks:
            yield chunk
        if self.error is not None:
            raise self.error


class FakeLoader:
    """Page loader serving canned HTML; URLs in ``failing`` raise on load."""

    def __init__(
        self,
        pages: dict[str, str],
        failing: set[str] | None = None,
        fail_on_enter: bool = False,
        fail_on_exit: bool = False,
    ):
        self.pages = pages
        self.failing = failing or set()
        self.fail_on_enter = fail_on_enter
        self.fail_on_exit = fail_on_exit
        self.loaded: list[str] = []
        self.exited = False

    async def __aenter__(self):
        if self.fail_on_enter:
            raise RuntimeError("chromium missing")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True
        if self.fail_on_exit:
            raise RuntimeError("browser close failed")

    async def load(self, url: str) -> tuple[str, str]:
        self.loaded.append(url)
        if url in self.failing:
            raise RuntimeError(f"navigation failed: {url}")
        return f"Title of {url}", self.pages[url]


class ScriptedStream:
    """Stand-in for ``stream_text``: plays back one delta script per call.

    Records every call's keyword arguments and fires ``on_finish`` after a
    script is played to the end.
    """

    def __init__(self, *scripts: list[DeltaEvent], finish_reason: str = "stop") -> None:
        self.scripts = list(scripts)
        self.calls: list[dict[str, Any]] = []
        self.finish_reason = finish_reason
        self.closed = 0

    def __call__(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        script = self.scripts.pop(0) if self.scripts else []
        on_finish: Callable[[FinishEvent], Any] | None = kwargs.get("on_finish")
        owner = self

        async def full_stream() -> AsyncIterator[DeltaEvent]:
            try:
                for delta in script:
                    yield delta
                if on_finish is not None:
                    on_finish(FinishEvent(text="", finish_reason=owner.finish_reason))
            finally:
                owner.closed += 1

        result = MagicMock()
        result.full_stream = full_stream()
        return result


async def collect(channel: StreamChannel) -> list[StreamEvent]:
    """Close ``channel`` and return every event it carried."""
    channel.close()
    return [event async for event in channel.events()]


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    """Default settings: OpenAI-style model, Tavily search, no credentials."""
    return build_settings(environ={})


@pytest.fixture
def channel() -> StreamChannel:
    return StreamChannel()


@pytest.fixture
def ui_stream(channel: StreamChannel) -> StreamableUI:
    return channel.create_ui()


@pytest.fixture
def model() -> ModelDescriptor:
    return ModelDescriptor(id="gpt-4o", name="GPT-4o", provider="OpenAI", provider_id="openai")


@pytest.fixture
def fake_provider() -> FakeSearchProvider:
    return FakeSearchProvider()
