"""Entry points: process a site, preview a page, delete a knowledge base, ask."""

import logging
from typing import Optional

from pydantic import BaseModel

from sitekb.core.config import settings
from sitekb.core.utils import normalize_site_url
from sitekb.generation.conversation import ConversationService
from sitekb.generation.models import ThreadMessage
from sitekb.generation.qa import QASessionManager
from sitekb.ingestion.crawler import PageFetcher
from sitekb.ingestion.models import Corpus, PageResult
from sitekb.ingestion.orchestrator import BatchCallback, BatchOrchestrator
from sitekb.knowledge.publisher import CorpusPublisher
from sitekb.knowledge.registry import SiteLocks, SiteRegistry
from sitekb.knowledge.service import KnowledgeBaseService

logger = logging.getLogger(__name__)


class SiteProcessResult(BaseModel):
    """Summary of a processed site."""

    site_url: str
    knowledge_base_id: str
    pages: int
    failed_urls: list[str]


class SiteJobs:
    """Wires the crawl pipeline, publisher, and QA manager together."""

    def __init__(
        self,
        fetcher: PageFetcher,
        knowledge_bases: KnowledgeBaseService,
        conversations: ConversationService,
        registry: SiteRegistry,
        batch_size: int = settings.batch_size,
        message_limit: int = settings.message_limit,
        run_timeout: Optional[float] = settings.run_timeout_seconds,
    ):
        self.fetcher = fetcher
        self.knowledge_bases = knowledge_bases
        self.registry = registry
        self.locks = SiteLocks()
        self.orchestrator = BatchOrchestrator(fetcher, batch_size=batch_size)
        self.publisher = CorpusPublisher(knowledge_bases, registry)
        self.qa = QASessionManager(registry, conversations, message_limit=message_limit, run_timeout=run_timeout)

    async def process_site(self, site_url: str, on_batch: Optional[BatchCallback] = None) -> SiteProcessResult:
        """Crawl a site and publish its corpus, one run per site at a time."""
        site_url = normalize_site_url(site_url)
        lock = self.locks.for_site(site_url)
        if lock.locked():
            logger.info(f"Waiting for running crawl of {site_url}")

        async with lock:
            corpus: Corpus = await self.orchestrator.run_crawl(site_url, on_batch=on_batch)
            knowledge_base_id = await self.publisher.publish(site_url, corpus)

        return SiteProcessResult(
            site_url=site_url,
            knowledge_base_id=knowledge_base_id,
            pages=corpus.page_count,
            failed_urls=corpus.failed_urls,
        )

    async def process_single_url(self, url: str) -> PageResult:
        """Fetch and segment one page without publishing it."""
        return await self.orchestrator.process_single_url(url)

    async def delete_knowledge_base(self, knowledge_base_id: str, forget_site: Optional[str] = None) -> list[str]:
        """Delete a knowledge base.

        Registry entries are kept unless ``forget_site`` names the site whose
        entry should go with it. That entry is only removed while it still
        maps to ``knowledge_base_id``. Returns the sites still pointing at the
        deleted id.
        """
        await self.knowledge_bases.delete_knowledge_base(knowledge_base_id)

        if forget_site is not None:
            current = self.registry.lookup(forget_site)
            if current == knowledge_base_id:
                self.registry.forget(forget_site)
            else:
                logger.warning(
                    f"Not forgetting {normalize_site_url(forget_site)}: "
                    f"it maps to {current}, not {knowledge_base_id}"
                )

        remaining = self.registry.sites_for(knowledge_base_id)
        if remaining:
            logger.warning(f"Registry still maps {remaining} to deleted knowledge base {knowledge_base_id}")
        return remaining

    async def ask_question(
        self, content: str, site_url: str, thread_id: Optional[str] = None
    ) -> list[ThreadMessage]:
        """Ask about a previously processed site."""
        return await self.qa.ask(site_url, content, thread_id)

    def lookup_site(self, site_url: str) -> Optional[str]:
        return self.registry.lookup(site_url)

    async def close(self) -> None:
        await self.fetcher.close()


def create_jobs() -> SiteJobs:
    """Build jobs from settings, backed by OpenAI and the on-disk registry."""
    from sitekb.generation.conversation import get_conversation_service
    from sitekb.ingestion.crawler import create_fetcher
    from sitekb.ingestion.storage import get_store
    from sitekb.knowledge.service import get_knowledge_base_service

    return SiteJobs(
        fetcher=create_fetcher(),
        knowledge_bases=get_knowledge_base_service(),
        conversations=get_conversation_service(),
        registry=SiteRegistry(get_store(), namespace=settings.registry_namespace),
    )
