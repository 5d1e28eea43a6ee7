"""Web search tool.

Wraps the configured search provider for the model: validates the call,
streams a search section to the UI and always returns a well-formed
``SearchResults`` payload, even when the backend fails.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from langchain_core.tools import tool
from pydantic import BaseModel, Field

from research_agent.search import SearchOptions, SearchResults
from research_agent.streaming import UINode
from research_agent.tools import ToolContext, register

if TYPE_CHECKING:
    from langchain_core.tools import BaseTool

logger = logging.getLogger(__name__)

# Some backends (Tavily) reject queries shorter than this.
MIN_QUERY_LENGTH = 5


class SearchToolInput(BaseModel):
    query: str = Field(description="The query to search for")
    max_results: int = Field(
        default=10,
        ge=1,
        description="The maximum number of results to return",
    )
    search_depth: Literal["basic", "advanced"] = Field(
        default="basic",
        description="The depth of the search. Use advanced to crawl result pages for more content",
    )
    include_domains: list[str] = Field(
        default_factory=list,
        description="A list of domains to specifically include in the search results",
    )
    exclude_domains: list[str] = Field(
        default_factory=list,
        description="A list of domains to specifically exclude from the search results",
    )


def pad_query(query: str) -> str:
    """Right-pad with spaces up to ``MIN_QUERY_LENGTH``."""
    return query.ljust(MIN_QUERY_LENGTH)


async def execute_search(options: SearchOptions, context: ToolContext) -> SearchResults:
    """Run one search. Never raises on backend failure."""
    stream_results = context.ui_stream.create_value(name="search_results")
    context.ui_stream.update(UINode.search_section(stream_results.id, options.include_domains))

    filled_query = pad_query(options.query)
    provider = context.search_provider
    logger.info(f"Using search API: {provider.name}")

    try:
        result = await provider.search(
            filled_query,
            options.max_results,
            options.search_depth,
            options.include_domains,
            options.exclude_domains,
        )
    except Exception as e:
        logger.error(f"Search API error ({provider.name}) for {filled_query!r}: {e}", exc_info=True)
        context.report_error(f'An error occurred while searching for "{filled_query}".')
        context.ui_stream.update(None)
        stream_results.done()
        return SearchResults.empty(filled_query)

    stream_results.done(result.model_dump_json())
    return result


@register("search")
def make_search_tool(context: ToolContext) -> BaseTool:
    @tool("search", args_schema=SearchToolInput)
    async def search(
        query: str,
        max_results: int = 10,
        search_depth: Literal["basic", "advanced"] = "basic",
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
    ) -> dict[str, Any]:
        """Search the web for information."""
        options = SearchOptions(
            query=query,
            max_results=max_results,
            search_depth=search_depth,
            include_domains=include_domains or [],
            exclude_domains=exclude_domains or [],
        )
        result = await execute_search(options, context)
        return result.model_dump()

    return search
