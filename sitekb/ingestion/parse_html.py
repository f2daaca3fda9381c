"""HTML parsing and section extraction."""

import logging
from typing import Optional

from bs4 import BeautifulSoup, Tag

from sitekb.core.constants import HEADING_TAGS, MAX_TRAVERSAL_STEPS, STRIPPED_TAGS
from sitekb.core.errors import SegmentationError
from sitekb.ingestion.models import Section

logger = logging.getLogger(__name__)


def parse_document(html: str) -> BeautifulSoup:
    """Parse HTML and drop every script and style node."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(STRIPPED_TAGS):
        tag.decompose()
    return soup


def elements_between(start: Tag, end: Optional[Tag]) -> list[Tag]:
    """Collect the elements that follow ``start`` up to, not including, ``end``.

    The walk moves to the next element sibling. When a level runs out of
    siblings it climbs to the parent (which is not collected) and carries on
    from the parent's next sibling. It stops on reaching ``end`` or when there
    is no parent left to climb to. ``end`` of ``None`` means "until the tree
    runs out".
    """
    collected = []
    anchor = start

    for _ in range(MAX_TRAVERSAL_STEPS):
        cursor = anchor.find_next_sibling()

        if cursor is None:
            parent = anchor.parent
            if parent is None or parent is end:
                break
            anchor = parent
            continue

        # Identity, not equality: bs4 compares tags by markup
        if cursor is end:
            break

        collected.append(cursor)
        anchor = cursor
    else:
        logger.warning(f"Traversal from <{start.name}> stopped after {MAX_TRAVERSAL_STEPS} steps")

    return collected


def segment(soup: BeautifulSoup) -> list[Section]:
    """Split a parsed document into one section per heading, in document order."""
    headings = soup.find_all(HEADING_TAGS)
    if not headings:
        return []

    # Bounds the last section: whatever follows the last heading's container
    last_parent = headings[-1].parent
    tail = last_parent.find_next_sibling() if last_parent is not None else None

    sections = []
    for i, heading in enumerate(headings):
        boundary = headings[i + 1] if i + 1 < len(headings) else tail
        elements = elements_between(heading, boundary)
        sections.append(
            Section(
                title=heading.get_text(),
                content="\n".join(el.get_text() for el in elements),
            )
        )

    return sections


def segment_html(html: str, url: str = "<page>") -> list[Section]:
    """Parse raw HTML and return its sections."""
    try:
        soup = parse_document(html)
        return segment(soup)
    except Exception as e:
        logger.error(f"Error segmenting {url}: {e}")
        raise SegmentationError(url, str(e)) from e
