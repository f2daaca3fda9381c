"""Sitemap parsing and URL discovery."""

import logging
from xml.etree import ElementTree as ET

from sitekb.core.errors import MalformedSitemapError
from sitekb.core.utils import sitemap_url_for
from sitekb.ingestion.crawler import PageFetcher

logger = logging.getLogger(__name__)


def _local_name(tag: str) -> str:
    """Tag name without its ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1]


def parse_sitemap(xml_text: str, sitemap_url: str = "<sitemap>") -> list[str]:
    """Extract every ``urlset/url/loc`` entry, preserving sitemap order."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise MalformedSitemapError(sitemap_url, f"invalid XML: {e}") from e

    if _local_name(root.tag) != "urlset":
        raise MalformedSitemapError(sitemap_url, f"expected <urlset> root, found <{_local_name(root.tag)}>")

    urls = []
    for position, url_elem in enumerate(child for child in root if _local_name(child.tag) == "url"):
        loc = next((child for child in url_elem if _local_name(child.tag) == "loc"), None)
        if loc is None or not (loc.text or "").strip():
            raise MalformedSitemapError(sitemap_url, f"<url> entry {position} has no <loc>")
        urls.append(loc.text.strip())

    return urls


async def crawl(site_url: str, fetcher: PageFetcher) -> list[str]:
    """Fetch ``{site_url}/sitemap.xml`` and return its page URLs in order.

    Raises ``FetchError`` when the sitemap cannot be retrieved and
    ``MalformedSitemapError`` when it does not have the expected shape.
    """
    sitemap_url = sitemap_url_for(site_url)
    logger.info(f"Fetching sitemap: {sitemap_url}")

    xml_text = await fetcher.fetch_text(sitemap_url)
    urls = parse_sitemap(xml_text, sitemap_url)

    logger.info(f"Found {len(urls)} URLs in {sitemap_url}")
    return urls
