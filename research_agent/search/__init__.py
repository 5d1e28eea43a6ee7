"""Search provider registry.

One logical ``search`` operation, three backends. The active provider is
chosen by the ``SEARCH_API`` setting and resolved once per turn.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from research_agent.search.base import SearchProvider
from research_agent.search.errors import (
    SearchAPIError,
    SearchConfigError,
    SearchError,
    SearchTimeoutError,
)
from research_agent.search.exa import ExaSearch
from research_agent.search.models import (
    SearchOptions,
    SearchResultImage,
    SearchResultItem,
    SearchResults,
)
from research_agent.search.searxng import SearXNGSearch
from research_agent.search.tavily import TavilySearch

if TYPE_CHECKING:
    from research_agent.config import Settings

SEARCH_PROVIDERS: dict[str, type[SearchProvider]] = {
    TavilySearch.name: TavilySearch,
    ExaSearch.name: ExaSearch,
    SearXNGSearch.name: SearXNGSearch,
}

DEFAULT_PROVIDER = TavilySearch.name


def get_search_provider(settings: Settings, name: str | None = None) -> SearchProvider:
    """Instantiate the provider named by ``name`` or ``settings.search_api``.

    Raises ``ValueError`` for an unknown provider key.
    """
    key = name or settings.search_api or DEFAULT_PROVIDER
    if key not in SEARCH_PROVIDERS:
        raise ValueError(
            f"Unknown search provider '{key}'. "
            f"Available: {sorted(SEARCH_PROVIDERS.keys())}"
        )
    return SEARCH_PROVIDERS[key](settings)


__all__ = [
    "DEFAULT_PROVIDER",
    "SEARCH_PROVIDERS",
    "ExaSearch",
    "SearXNGSearch",
    "SearchAPIError",
    "SearchConfigError",
    "SearchError",
    "SearchOptions",
    "SearchProvider",
    "SearchResultImage",
    "SearchResultItem",
    "SearchResults",
    "SearchTimeoutError",
    "TavilySearch",
    "get_search_provider",
]
