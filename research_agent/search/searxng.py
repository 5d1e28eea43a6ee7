"""SearXNG metasearch over its JSON GET API, with optional page crawling.

Requires: SEARXNG_API_URL (base URL of a SearXNG instance with the json
format enabled).
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

import httpx

from research_agent.search.base import SearchProvider
from research_agent.search.crawler import PAGE_DELIMITER, PageCrawler
from research_agent.search.errors import SearchAPIError, SearchConfigError, SearchTimeoutError
from research_agent.search.models import SearchDepth, SearchResultItem, SearchResults

if TYPE_CHECKING:
    from research_agent.config import Settings

logger = logging.getLogger(__name__)

RESULTS_PER_PAGE = 10

_DEPTH_PARAMS: dict[str, dict[str, str]] = {
    "basic": {
        "time_range": "year",
        "safesearch": "1",
        "engines": "google,bing",
    },
    "advanced": {
        "time_range": "",
        "safesearch": "0",
        "engines": "google,bing,duckduckgo,wikipedia",
    },
}


def build_params(query: str, max_results: int, search_depth: SearchDepth) -> dict[str, str]:
    """Query string for ``GET /search``."""
    return {
        "q": query,
        "format": "json",
        "categories": "general,images",
        **_DEPTH_PARAMS[search_depth],
        "pageno": str(math.ceil(max_results / RESULTS_PER_PAGE)),
    }


def absolutize_image(api_url: str, img_src: str) -> str:
    if img_src.startswith(("http://", "https://")):
        return img_src
    return urljoin(api_url if api_url.endswith("/") else api_url + "/", img_src)


class SearXNGSearch(SearchProvider):
    name = "searxng"

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        crawler_factory: Callable[[int], PageCrawler] = PageCrawler.for_results,
    ) -> None:
        super().__init__(settings, transport)
        self._crawler_factory = crawler_factory

    async def _fetch(self, api_url: str, params: dict[str, str]) -> dict[str, Any]:
        timeout = self.settings.searxng_timeout
        try:
            async with asyncio.timeout(timeout):
                async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
                    response = await client.get(
                        f"{api_url}/search",
                        params=params,
                        headers={"Accept": "application/json"},
                    )
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error("SearXNG API request timed out")
            raise SearchTimeoutError(f"SearXNG API request timed out after {timeout:g}s") from e

        if response.is_error:
            logger.error(f"SearXNG API error ({response.status_code}): {response.text}")
            raise SearchAPIError(
                f"SearXNG API error: {response.status_code} {response.reason_phrase} - {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise SearchAPIError(f"SearXNG API returned invalid JSON: {e}") from e

    async def _augment(self, hits: list[dict[str, Any]], max_results: int) -> None:
        """Append crawled page text to each hit's content, in place."""
        crawler = self._crawler_factory(max_results)
        outcomes = await crawler.crawl([hit["url"] for hit in hits])

        for hit, outcome in zip(hits, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Error crawling {hit['url']}: {outcome}")
                continue
            if not outcome:
                continue
            additional = PAGE_DELIMITER.join(page.formatted_content for page in outcome)
            hit["content"] = (hit.get("content") or "") + "\n\nAdditional content:\n" + additional

    async def search(
        self,
        query: str,
        max_results: int = 10,
        search_depth: SearchDepth = "basic",
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
    ) -> SearchResults:
        api_url = self.settings.searxng_api_url
        if not api_url:
            raise SearchConfigError("SEARXNG_API_URL is not set in the environment variables")
        api_url = api_url.rstrip("/")

        if include_domains or exclude_domains:
            logger.debug("SearXNG does not support domain filters, ignoring them")

        data = await self._fetch(api_url, build_params(query, max_results, search_depth))
        hits = data.get("results") or []

        general = [h for h in hits if not h.get("img_src") and h.get("url")][:max_results]
        if search_depth == "advanced" and general:
            await self._augment(general, max_results)

        images = [
            absolutize_image(api_url, h["img_src"])
            for h in hits
            if h.get("img_src")
        ][:max_results]

        return SearchResults(
            results=[
                SearchResultItem(
                    title=h.get("title") or "",
                    url=h["url"],
                    content=h.get("content") or "",
                )
                for h in general
            ],
            images=images,
            query=data.get("query") or query,
            number_of_results=data.get("number_of_results", len(general)),
        )
