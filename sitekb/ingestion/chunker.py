"""Partitioning of sitemap URLs into fixed-size batches."""

from sitekb.core.constants import DEFAULT_BATCH_SIZE
from sitekb.ingestion.models import Batch


def chunk_urls(urls: list[str], size: int = DEFAULT_BATCH_SIZE) -> list[Batch]:
    """Split URLs into consecutive batches of at most ``size``.

    Each batch is indexed by the position of its first URL in the input, so
    the indexes are 0, size, 2*size, ...
    """
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")

    return [Batch(index=start, urls=urls[start : start + size]) for start in range(0, len(urls), size)]
