"""Async HTTP fetching for sitemaps and pages."""

import logging
from typing import Optional

import httpx

from sitekb.core.config import settings
from sitekb.core.errors import FetchError

logger = logging.getLogger(__name__)


class PageFetcher:
    """Thin wrapper over ``httpx.AsyncClient`` that raises ``FetchError``.

    Every request is attempted exactly once; callers decide what a failure
    means for them.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "SiteKB-Bot/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    async def fetch_text(self, url: str) -> str:
        """GET a URL and return its decoded body."""
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"HTTP error for {url}: {e.response.status_code}")
            raise FetchError(url, f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.warning(f"Request error for {url}: {e}")
            raise FetchError(url, str(e) or e.__class__.__name__) from e

        return response.text

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def create_fetcher(transport: Optional[httpx.AsyncBaseTransport] = None) -> PageFetcher:
    """Create a configured fetcher."""
    return PageFetcher(
        timeout=settings.request_timeout,
        user_agent=settings.user_agent,
        transport=transport,
    )
