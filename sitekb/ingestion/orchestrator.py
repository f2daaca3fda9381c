"""Batch orchestration of a site crawl."""

import asyncio
import logging
from typing import Callable, Optional

from sitekb.core.constants import DEFAULT_BATCH_SIZE
from sitekb.core.errors import SiteKBError
from sitekb.core.utils import normalize_site_url
from sitekb.ingestion.chunker import chunk_urls
from sitekb.ingestion.crawler import PageFetcher
from sitekb.ingestion.models import Batch, Corpus, PageOutcome, PageResult
from sitekb.ingestion.parse_html import segment_html
from sitekb.ingestion.sitemap import crawl

logger = logging.getLogger(__name__)

BatchCallback = Callable[[Batch, list[PageOutcome]], None]


class BatchOrchestrator:
    """Crawls a site batch by batch and collects the pages that succeed.

    Batches run one after another. Inside a batch every URL is fetched and
    segmented concurrently, and the batch only completes once every URL has
    either succeeded or failed. A failed page is dropped from the corpus;
    only a sitemap failure aborts the crawl.
    """

    def __init__(self, fetcher: PageFetcher, batch_size: int = DEFAULT_BATCH_SIZE):
        self.fetcher = fetcher
        self.batch_size = batch_size

    async def process_single_url(self, url: str) -> PageResult:
        """Fetch one page and split it into sections."""
        html = await self.fetcher.fetch_text(url)
        sections = segment_html(html, url)
        logger.debug(f"Segmented {url}: {len(sections)} sections")
        return PageResult(url=url, sections=sections)

    async def _outcome(self, url: str) -> PageOutcome:
        try:
            page = await self.process_single_url(url)
        except SiteKBError as e:
            return PageOutcome.failure(url, str(e))
        return PageOutcome.success(page)

    async def process_batch(self, batch: Batch) -> list[PageOutcome]:
        """Process every URL of a batch concurrently and wait for all of them."""
        results = await asyncio.gather(
            *(self._outcome(url) for url in batch.urls),
            return_exceptions=True,
        )

        outcomes = []
        for url, result in zip(batch.urls, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Unexpected error processing {url}: {result}")
                result = PageOutcome.failure(url, f"{result.__class__.__name__}: {result}")
            outcomes.append(result)

        return outcomes

    async def run_crawl(self, site_url: str, on_batch: Optional[BatchCallback] = None) -> Corpus:
        """Crawl a site and return the corpus of its successfully processed pages."""
        site_url = normalize_site_url(site_url)
        urls = await crawl(site_url, self.fetcher)
        batches = chunk_urls(urls, self.batch_size)

        logger.info(f"Processing {len(batches)} batches for {site_url}")

        corpus = Corpus(site_url=site_url)
        for batch in batches:
            outcomes = await self.process_batch(batch)

            for outcome in outcomes:
                if outcome.ok:
                    corpus.pages.append(outcome.page)
                else:
                    logger.warning(f"Dropping {outcome.url}: {outcome.error}")
                    corpus.failed_urls.append(outcome.url)

            logger.info(
                f"Batch {batch.index}: {sum(o.ok for o in outcomes)}/{len(batch.urls)} pages processed"
            )
            if on_batch is not None:
                on_batch(batch, outcomes)

        logger.info(f"Processed {corpus.page_count} pages ({len(corpus.failed_urls)} failed) for {site_url}")
        return corpus
