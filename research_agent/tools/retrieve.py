"""Retrieve tool: read one user-supplied URL.

Fetches the page over HTTP (no browser) and returns it as a single search
result so the model can cite it like any other source.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from bs4 import BeautifulSoup
from langchain_core.tools import tool
from pydantic import BaseModel, Field

from research_agent.search import SearchResultItem, SearchResults
from research_agent.search.crawler import extract_text
from research_agent.streaming import UINode
from research_agent.tools import ToolContext, register

if TYPE_CHECKING:
    from langchain_core.tools import BaseTool

logger = logging.getLogger(__name__)

_MAX_TEXT = 8_000  # chars returned to the model
_TIMEOUT = 15.0


class RetrieveToolInput(BaseModel):
    url: str = Field(description="The url to retrieve")


async def fetch_page(url: str, transport: httpx.AsyncBaseTransport | None = None) -> tuple[str, str]:
    """Returns (title, text). Raises on HTTP or network failure."""
    async with httpx.AsyncClient(transport=transport, follow_redirects=True, timeout=_TIMEOUT) as client:
        resp = await client.get(url, headers={"User-Agent": "research-agent/1.0"})
        resp.raise_for_status()

    soup = BeautifulSoup(resp.text, "html.parser")
    title = soup.title.string.strip() if soup.title and soup.title.string else ""
    return title or url, extract_text(soup)


async def execute_retrieve(
    url: str,
    context: ToolContext,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SearchResults | None:
    """Fetch ``url``; ``None`` means the page could not be read."""
    if not url.startswith(("http://", "https://")):
        logger.warning(f"retrieve called with a non-http URL: {url!r}")
        context.ui_stream.update(None)
        return None

    try:
        title, text = await fetch_page(url, transport)
    except Exception as e:
        logger.warning(f"retrieve failed for {url!r}: {e}")
        context.ui_stream.update(None)
        return None

    if not text.strip():
        logger.warning(f"No text content found in {url!r}")
        context.ui_stream.update(None)
        return None

    content = text[:_MAX_TEXT] + ("..." if len(text) > _MAX_TEXT else "")
    results = SearchResults(
        results=[SearchResultItem(title=title, url=url, content=content)],
        images=[],
        query=url,
        number_of_results=1,
    )
    context.ui_stream.update(UINode.retrieve_section(results.model_dump()))
    return results


@register("retrieve")
def make_retrieve_tool(context: ToolContext) -> BaseTool:
    @tool("retrieve", args_schema=RetrieveToolInput)
    async def retrieve(url: str) -> dict[str, Any] | None:
        """Retrieve content from the web. Only use this for URLs the user provided."""
        results = await execute_retrieve(url, context)
        return results.model_dump() if results is not None else None

    return retrieve
