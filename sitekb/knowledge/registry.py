"""Site registry: which knowledge base belongs to which site."""

import asyncio
import logging
from typing import Optional

from sitekb.core.utils import normalize_site_url
from sitekb.ingestion.storage import KeyValueStore

logger = logging.getLogger(__name__)


class SiteRegistry:
    """Maps a site root URL to its knowledge-base identifier.

    Entries are stored as ``{"id": <knowledge base id>}`` under a single
    namespace of the injected store. Site URLs are normalized before use so
    trailing slashes do not create a second entry.
    """

    def __init__(self, store: KeyValueStore, namespace: str = "knowledge-bases"):
        self.store = store
        self.namespace = namespace

    def lookup(self, site_url: str) -> Optional[str]:
        entry = self.store.get(self.namespace, normalize_site_url(site_url))
        if not entry:
            return None
        return entry["id"]

    def register(self, site_url: str, knowledge_base_id: str) -> None:
        site_url = normalize_site_url(site_url)
        self.store.set(self.namespace, site_url, {"id": knowledge_base_id})
        logger.info(f"Registered knowledge base {knowledge_base_id} for {site_url}")

    def forget(self, site_url: str) -> bool:
        site_url = normalize_site_url(site_url)
        removed = self.store.delete(self.namespace, site_url)
        if removed:
            logger.info(f"Removed registry entry for {site_url}")
        return removed

    def sites_for(self, knowledge_base_id: str) -> list[str]:
        """Sites currently pointing at a knowledge base."""
        return [
            site_url
            for site_url, entry in self.store.items(self.namespace).items()
            if entry and entry.get("id") == knowledge_base_id
        ]


class SiteLocks:
    """One asyncio lock per site, so two crawls of a site never interleave."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def for_site(self, site_url: str) -> asyncio.Lock:
        key = normalize_site_url(site_url)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock
