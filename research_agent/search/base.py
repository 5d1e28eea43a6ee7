"""Provider interface and URL helpers shared by the adapters."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    import httpx

    from research_agent.config import Settings
    from research_agent.search.models import SearchDepth, SearchResults

_WHITESPACE = re.compile(r"\s+")


def sanitize_url(url: str) -> str:
    """Percent-encode runs of whitespace so image URLs stay clickable."""
    return _WHITESPACE.sub("%20", url.strip())


class SearchProvider(ABC):
    """A web search backend.

    Subclasses translate the common call signature into their own wire
    protocol and normalize the response into ``SearchResults``. They raise
    ``SearchError`` subclasses on failure and never swallow errors.
    """

    name: ClassVar[str]

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        # Tests inject httpx.MockTransport here.
        self._transport = transport

    @abstractmethod
    async def search(
        self,
        query: str,
        max_results: int = 10,
        search_depth: SearchDepth = "basic",
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
    ) -> SearchResults:
        ...
