"""Tavily search over its JSON REST API.

Requires: TAVILY_API_KEY.
"""

from __future__ import annotations

import logging

import httpx

from research_agent.search.base import SearchProvider, sanitize_url
from research_agent.search.errors import SearchAPIError, SearchConfigError
from research_agent.search.models import (
    SearchDepth,
    SearchResultImage,
    SearchResultItem,
    SearchResults,
)

logger = logging.getLogger(__name__)

TAVILY_API_URL = "https://api.tavily.com/search"

# Tavily returns noticeably worse results below five hits.
_MIN_RESULTS = 5
_INCLUDE_IMAGE_DESCRIPTIONS = True
_REQUEST_TIMEOUT = 30.0


def _process_images(images: list, with_descriptions: bool) -> list[str | SearchResultImage]:
    """Normalize Tavily's image list.

    With descriptions on, only images that actually carry a non-empty
    description are kept. Otherwise the list holds bare URLs.
    """
    if not with_descriptions:
        return [sanitize_url(img) for img in images if isinstance(img, str) and img]

    processed: list[str | SearchResultImage] = []
    for img in images:
        if not isinstance(img, dict):
            continue
        description = img.get("description")
        url = img.get("url")
        if not url or not description:
            continue
        processed.append(SearchResultImage(url=sanitize_url(url), description=description))
    return processed


class TavilySearch(SearchProvider):
    name = "tavily"

    async def search(
        self,
        query: str,
        max_results: int = 10,
        search_depth: SearchDepth = "basic",
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
    ) -> SearchResults:
        api_key = self.settings.tavily_api_key
        if not api_key:
            raise SearchConfigError("TAVILY_API_KEY is not set in the environment variables")

        payload = {
            "api_key": api_key,
            "query": query,
            "max_results": max(max_results, _MIN_RESULTS),
            "search_depth": search_depth,
            "include_images": True,
            "include_image_descriptions": _INCLUDE_IMAGE_DESCRIPTIONS,
            "include_answers": True,
            "include_domains": include_domains or [],
            "exclude_domains": exclude_domains or [],
        }

        async with httpx.AsyncClient(transport=self._transport, timeout=_REQUEST_TIMEOUT) as client:
            response = await client.post(
                TAVILY_API_URL,
                json=payload,
                headers={"Content-Type": "application/json"},
            )

        if response.is_error:
            raise SearchAPIError(
                f"Tavily API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SearchAPIError(f"Tavily API returned invalid JSON: {e}") from e

        results = [
            SearchResultItem(
                title=r.get("title") or "",
                url=r.get("url") or "",
                content=r.get("content") or "",
            )
            for r in data.get("results") or []
        ]
        images = _process_images(data.get("images") or [], _INCLUDE_IMAGE_DESCRIPTIONS)

        logger.info(f"Tavily returned {len(results)} results and {len(images)} images for {query!r}")
        return SearchResults(
            results=results,
            images=images,
            query=data.get("query") or query,
            number_of_results=data.get("number_of_results", len(results)),
        )
