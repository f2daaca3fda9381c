"""FastAPI dependencies."""

from functools import lru_cache

from sitekb.services.jobs import SiteJobs, create_jobs


@lru_cache
def get_jobs() -> SiteJobs:
    """Shared jobs instance, built on first use."""
    return create_jobs()
