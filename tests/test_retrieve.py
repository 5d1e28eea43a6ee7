"""Tests for the retrieve tool."""

import httpx
import pytest

from research_agent.tools import ToolContext
from research_agent.tools.retrieve import execute_retrieve

PAGE = "<html><head><title> Cat Facts </title></head><body><h1>Cats</h1><p>Cats sleep a lot.</p></body></html>"


@pytest.fixture
def context(ui_stream, settings, fake_provider) -> ToolContext:
    return ToolContext(ui_stream=ui_stream, settings=settings, search_provider=fake_provider)


class TestExecuteRetrieve:
    """Test fetching a user-supplied URL."""

    @pytest.mark.asyncio
    async def test_returns_single_result(self, context, ui_stream) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, html=PAGE))

        result = await execute_retrieve("https://cats.example.com/facts", context, transport=transport)

        assert result.number_of_results == 1
        item = result.results[0]
        assert item.title == "Cat Facts"
        assert item.url == "https://cats.example.com/facts"
        assert item.content == "Cats\nCats sleep a lot."
        assert ui_stream.nodes[-1].kind == "retrieve_section"

    @pytest.mark.asyncio
    async def test_http_error_returns_none(self, context, ui_stream) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(404))

        assert await execute_retrieve("https://cats.example.com/missing", context, transport=transport) is None
        assert ui_stream.nodes[-1] is None

    @pytest.mark.asyncio
    async def test_non_http_url_rejected(self, context) -> None:
        assert await execute_retrieve("file:///etc/passwd", context) is None

    @pytest.mark.asyncio
    async def test_page_without_text_returns_none(self, context) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, html="<html><body><div>x</div></body></html>"))

        assert await execute_retrieve("https://cats.example.com", context, transport=transport) is None

    @pytest.mark.asyncio
    async def test_untitled_page_uses_url_as_title(self, context) -> None:
        html = "<html><body><h1>Dogs</h1><p>Dogs bark.</p></body></html>"
        transport = httpx.MockTransport(lambda request: httpx.Response(200, html=html))

        result = await execute_retrieve("https://dogs.example.com", context, transport=transport)

        assert result.results[0].title == "https://dogs.example.com"
        assert result.results[0].content == "Dogs\nDogs bark."
