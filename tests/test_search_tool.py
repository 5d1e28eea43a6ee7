"""Tests for the search tool.

Tests cover:
- Query padding
- UI side effects on success and failure
- Fallback to an empty result set when a backend fails
"""

import httpx
import pytest

from conftest import FakeSearchProvider, collect
from research_agent.search import SearchAPIError, SearchOptions, SearchTimeoutError, TavilySearch
from research_agent.tools import ToolContext, get_tools, list_tools
from research_agent.tools.search import MIN_QUERY_LENGTH, execute_search, pad_query


@pytest.fixture
def errors() -> list[str]:
    return []


def _context(ui_stream, settings, provider, errors) -> ToolContext:
    return ToolContext(ui_stream=ui_stream, settings=settings, search_provider=provider, report_error=errors.append)


# ============================================================================
# QUERY PADDING TESTS
# ============================================================================


class TestPadQuery:
    def test_short_query_is_right_padded(self) -> None:
        assert pad_query("cats") == "cats "
        assert len(pad_query("a")) == MIN_QUERY_LENGTH

    def test_long_query_is_unchanged(self) -> None:
        assert pad_query("siamese cats") == "siamese cats"


# ============================================================================
# EXECUTE SEARCH TESTS
# ============================================================================


class TestExecuteSearch:
    """Test execute_search against scripted providers."""

    @pytest.mark.asyncio
    async def test_success_passes_options_and_streams_results(self, channel, ui_stream, settings, errors) -> None:
        """Test the padded query reaches the provider and the results value is closed with JSON."""
        provider = FakeSearchProvider()
        options = SearchOptions(query="cats", max_results=3, search_depth="advanced", include_domains=["a.com", "a.com"])

        result = await execute_search(options, _context(ui_stream, settings, provider, errors))
        events = await collect(channel)

        assert provider.calls == [
            {
                "query": "cats ",
                "max_results": 3,
                "search_depth": "advanced",
                "include_domains": ["a.com"],
                "exclude_domains": [],
            }
        ]
        assert result.results[0].url == "https://cats.example.com"
        assert errors == []

        section = ui_stream.nodes[-1]
        assert section.kind == "search_section"
        assert section.props["include_domains"] == ["a.com"]
        done = [e for e in events if e.stream == section.props["result_stream"] and e.action == "done"]
        assert len(done) == 1
        assert done[0].payload == result.model_dump_json()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            SearchAPIError("Tavily API error: 500 Internal Server Error", status_code=500),
            SearchTimeoutError("SearXNG API request timed out after 30s"),
        ],
    )
    async def test_backend_failure_returns_empty_results(self, channel, ui_stream, settings, errors, error) -> None:
        """Test a failing backend yields an empty, well-formed result set."""
        provider = FakeSearchProvider(error=error)

        result = await execute_search(SearchOptions(query="cats"), _context(ui_stream, settings, provider, errors))
        events = await collect(channel)

        assert result.results == []
        assert result.images == []
        assert result.query == "cats "
        assert result.number_of_results == 0
        assert errors == ['An error occurred while searching for "cats ".']
        assert ui_stream.nodes[-1] is None
        done = [e for e in events if e.type == "done" and e.stream and e.stream.startswith("search_results")]
        assert len(done) == 1
        assert done[0].payload is None

    @pytest.mark.asyncio
    async def test_missing_credential_falls_back(self, ui_stream, settings, errors) -> None:
        """Test Tavily without an API key degrades instead of raising."""
        provider = TavilySearch(settings, transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))

        result = await execute_search(SearchOptions(query="cats"), _context(ui_stream, settings, provider, errors))

        assert result.results == []
        assert len(errors) == 1


# ============================================================================
# TOOL REGISTRY TESTS
# ============================================================================


class TestToolRegistry:
    def test_search_and_retrieve_registered(self) -> None:
        assert set(list_tools()) >= {"search", "retrieve"}

    def test_unknown_tool_raises(self, ui_stream, settings, fake_provider) -> None:
        with pytest.raises(ValueError, match="Unknown tool"):
            get_tools(ToolContext(ui_stream=ui_stream, settings=settings, search_provider=fake_provider), ["nope"])

    @pytest.mark.asyncio
    async def test_search_tool_returns_plain_dict(self, ui_stream, settings, fake_provider) -> None:
        """Test the LangChain tool validates args and returns a JSON-able payload."""
        (search,) = get_tools(ToolContext(ui_stream=ui_stream, settings=settings, search_provider=fake_provider), ["search"])

        payload = await search.ainvoke({"query": "cats", "max_results": 2})

        assert search.name == "search"
        assert payload["query"] == "cats "
        assert payload["results"][0]["title"] == "Cats"
        assert fake_provider.calls[0]["max_results"] == 2
