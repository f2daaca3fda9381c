"""Corpus upload and create-or-update of a site's knowledge base."""

import logging

from sitekb.core.config import settings
from sitekb.core.constants import KNOWLEDGE_BASE_NAME_TEMPLATE
from sitekb.core.utils import normalize_site_url
from sitekb.ingestion.models import Corpus
from sitekb.knowledge.registry import SiteRegistry
from sitekb.knowledge.service import KnowledgeBaseService

logger = logging.getLogger(__name__)


class CorpusPublisher:
    """Publishes a crawl corpus into the site's single knowledge base."""

    def __init__(self, service: KnowledgeBaseService, registry: SiteRegistry):
        self.service = service
        self.registry = registry

    async def publish(self, site_url: str, corpus: Corpus) -> str:
        """Upload the corpus and point the site's knowledge base at it.

        The first publish of a site creates its knowledge base and records it
        in the registry. Later publishes replace the documents of that same
        knowledge base and return the unchanged id.
        """
        site_url = normalize_site_url(site_url)
        file_id = await self.service.upload_document(corpus.render())

        knowledge_base_id = self.registry.lookup(site_url)
        if knowledge_base_id is None:
            knowledge_base_id = await self.service.create_knowledge_base(
                name=KNOWLEDGE_BASE_NAME_TEMPLATE.format(site_url=site_url),
                description=settings.assistant_description,
                instructions=settings.assistant_instructions_template.format(site_url=site_url),
                file_ids=[file_id],
            )
            self.registry.register(site_url, knowledge_base_id)
            logger.info(f"Created knowledge base {knowledge_base_id} for {site_url}")
        else:
            await self.service.update_knowledge_base(knowledge_base_id, [file_id])
            logger.info(f"Refreshed knowledge base {knowledge_base_id} for {site_url}")

        return knowledge_base_id
