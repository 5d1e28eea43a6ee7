"""Exa neural search via the exa-py SDK.

Requires: EXA_API_KEY.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from exa_py import Exa

from research_agent.search.base import SearchProvider
from research_agent.search.errors import SearchConfigError
from research_agent.search.models import SearchDepth, SearchResultItem, SearchResults

if TYPE_CHECKING:
    import httpx

    from research_agent.config import Settings

logger = logging.getLogger(__name__)


def _hit_content(hit: Any) -> str:
    highlights = getattr(hit, "highlights", None)
    if highlights:
        return " ... ".join(highlights)
    return getattr(hit, "text", None) or ""


class ExaSearch(SearchProvider):
    """Exa has no image results and ignores ``search_depth``."""

    name = "exa"

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        client_factory: Callable[[str], Any] = Exa,
    ) -> None:
        super().__init__(settings, transport)
        self._client_factory = client_factory

    async def search(
        self,
        query: str,
        max_results: int = 10,
        search_depth: SearchDepth = "basic",
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
    ) -> SearchResults:
        api_key = self.settings.exa_api_key
        if not api_key:
            raise SearchConfigError("EXA_API_KEY is not set in the environment variables")

        exa = self._client_factory(api_key)
        # The SDK client is synchronous; keep it off the event loop.
        response = await asyncio.to_thread(
            exa.search_and_contents,
            query,
            highlights=True,
            num_results=max_results,
            include_domains=include_domains or None,
            exclude_domains=exclude_domains or None,
        )

        results = [
            SearchResultItem(
                title=getattr(hit, "title", None) or "",
                url=hit.url,
                content=_hit_content(hit),
            )
            for hit in response.results
        ]
        logger.info(f"Exa returned {len(results)} results for {query!r}")
        return SearchResults(
            results=results,
            images=[],
            query=query,
            number_of_results=len(results),
        )
