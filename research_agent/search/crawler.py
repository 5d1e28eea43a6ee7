"""Crawl augmenter: renders result pages and extracts readable text.

Used by the SearXNG provider in ``advanced`` depth. Pages are rendered with
Playwright (pip install playwright && playwright install chromium) and
parsed with BeautifulSoup.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from types import TracebackType
from typing import Protocol

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 1000
REQUESTS_PER_RESULT = 3
PAGE_DELIMITER = "\n\n---\n\n"

_TEXT_SELECTORS = "p, h1, h2, h3, h4, h5, h6, li"
_DEFAULT_CONCURRENCY = 4
_PAGE_TIMEOUT_MS = 30_000


@dataclass
class CrawledPage:
    title: str
    url: str
    formatted_content: str


class PageLoader(Protocol):
    """Async context manager that renders a URL into ``(title, html)``."""

    async def __aenter__(self) -> PageLoader: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    async def load(self, url: str) -> tuple[str, str]: ...


class PlaywrightPageLoader:
    """Shares one headless chromium across all loads of a crawl."""

    def __init__(self, timeout_ms: int = _PAGE_TIMEOUT_MS) -> None:
        self._timeout_ms = timeout_ms
        self._playwright = None
        self._browser = None

    async def __aenter__(self) -> PlaywrightPageLoader:
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=True)
        except Exception:
            await self._playwright.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()

    async def load(self, url: str) -> tuple[str, str]:
        page = await self._browser.new_page()
        try:
            await page.goto(url, timeout=self._timeout_ms, wait_until="domcontentloaded")
            return await page.title(), await page.content()
        finally:
            await page.close()


def extract_text(html: str | BeautifulSoup) -> str:
    """Text of paragraph, heading and list elements in document order.

    Accepts markup or an already parsed document; script and style tags are
    removed from a parsed document in place.
    """
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    root = soup.body or soup
    parts = (el.get_text().strip() for el in root.select(_TEXT_SELECTORS))
    return "\n".join(p for p in parts if p)


def format_page(title: str, url: str, text: str) -> str:
    return f"Title: {title}\nURL: {url}\nContent:\n{text[:MAX_CONTENT_CHARS]}".strip()


class PageCrawler:
    """Crawls a batch of URLs under a shared page-load budget.

    ``crawl`` never raises: each URL maps either to its crawled pages or to
    the exception that stopped it, so one bad page leaves the others intact.
    """

    def __init__(
        self,
        max_requests: int,
        loader_factory: Callable[[], PageLoader] = PlaywrightPageLoader,
        concurrency: int = _DEFAULT_CONCURRENCY,
    ) -> None:
        self.max_requests = max_requests
        self._loader_factory = loader_factory
        self._semaphore = asyncio.Semaphore(concurrency)
        self._requests_made = 0

    @classmethod
    def for_results(cls, max_results: int, **kwargs) -> PageCrawler:
        return cls(max_requests=max_results * REQUESTS_PER_RESULT, **kwargs)

    @property
    def requests_made(self) -> int:
        return self._requests_made

    def _take_budget(self) -> bool:
        if self._requests_made >= self.max_requests:
            return False
        self._requests_made += 1
        return True

    async def _crawl_one(self, loader: PageLoader, url: str) -> list[CrawledPage]:
        if not self._take_budget():
            logger.warning(f"Crawl budget of {self.max_requests} requests exhausted, skipping {url}")
            return []
        async with self._semaphore:
            title, html = await loader.load(url)
        return [CrawledPage(title=title, url=url, formatted_content=format_page(title, url, extract_text(html)))]

    async def crawl(self, urls: Sequence[str]) -> list[list[CrawledPage] | BaseException]:
        if not urls:
            return []
        outcomes: list[list[CrawledPage] | BaseException] | None = None
        try:
            async with self._loader_factory() as loader:
                outcomes = await asyncio.gather(
                    *(self._crawl_one(loader, url) for url in urls),
                    return_exceptions=True,
                )
        except Exception as e:
            if outcomes is not None:
                logger.warning(f"Crawler failed to shut down cleanly: {e}")
                return outcomes
            logger.error(f"Crawler failed to start: {e}", exc_info=True)
            return [e for _ in urls]
        return outcomes
