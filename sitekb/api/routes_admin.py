"""Admin API routes."""

import logging
from typing import Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status

from sitekb.api.deps import get_jobs
from sitekb.core.errors import FetchError, MalformedSitemapError, SiteKBError, UploadError
from sitekb.core.schemas import (
    DeleteKnowledgeBaseResponse,
    ProcessSiteAccepted,
    ProcessSiteRequest,
    SiteLookupResponse,
)
from sitekb.core.security import verify_api_key
from sitekb.core.utils import normalize_site_url
from sitekb.services.jobs import SiteJobs, SiteProcessResult

logger = logging.getLogger(__name__)
router = APIRouter()


async def _process_site_in_background(jobs: SiteJobs, site_url: str) -> None:
    try:
        result = await jobs.process_site(site_url)
        logger.info(f"Background crawl of {site_url} finished: {result.pages} pages -> {result.knowledge_base_id}")
    except SiteKBError as e:
        logger.error(f"Background crawl of {site_url} failed: {e}")


@router.post("/sites", response_model=Union[SiteProcessResult, ProcessSiteAccepted])
async def process_site(
    request: ProcessSiteRequest,
    background_tasks: BackgroundTasks,
    wait: bool = False,
    x_api_key: str = Header(..., alias="X-API-Key"),
    jobs: SiteJobs = Depends(get_jobs),
):
    """Crawl a site and publish it to its knowledge base."""
    try:
        # Verify API key
        await verify_api_key(x_api_key)

        site_url = normalize_site_url(str(request.url))
        if not wait:
            background_tasks.add_task(_process_site_in_background, jobs, site_url)
            logger.info(f"Crawl of {site_url} queued")
            return ProcessSiteAccepted(site_url=site_url)

        return await jobs.process_site(site_url)

    except HTTPException:
        raise
    except (FetchError, MalformedSitemapError, UploadError) as e:
        logger.warning(f"Crawl failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except Exception as e:
        logger.error(f"Error processing site: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.delete("/knowledge-bases/{knowledge_base_id}", response_model=DeleteKnowledgeBaseResponse)
async def delete_knowledge_base(
    knowledge_base_id: str,
    forget_site: Optional[str] = None,
    x_api_key: str = Header(..., alias="X-API-Key"),
    jobs: SiteJobs = Depends(get_jobs),
):
    """Delete a knowledge base, optionally clearing a site's registry entry."""
    try:
        await verify_api_key(x_api_key)

        remaining = await jobs.delete_knowledge_base(knowledge_base_id, forget_site=forget_site)
        return DeleteKnowledgeBaseResponse(knowledge_base_id=knowledge_base_id, remaining_sites=remaining)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting knowledge base: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.get("/sites/lookup", response_model=SiteLookupResponse)
async def lookup_site(
    url: str,
    x_api_key: str = Header(..., alias="X-API-Key"),
    jobs: SiteJobs = Depends(get_jobs),
):
    """Knowledge base registered for a site."""
    await verify_api_key(x_api_key)

    site_url = normalize_site_url(url)
    knowledge_base_id = jobs.lookup_site(site_url)
    if knowledge_base_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No knowledge base found for {site_url}")
    return SiteLookupResponse(site_url=site_url, knowledge_base_id=knowledge_base_id)
