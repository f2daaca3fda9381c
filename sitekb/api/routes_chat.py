"""Chat API routes."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from slowapi.util import get_remote_address

from sitekb.api.deps import get_jobs
from sitekb.core.errors import FetchError, RunFailedError, SegmentationError, UnknownSiteError
from sitekb.core.schemas import AskRequest, AskResponse, PageRequest
from sitekb.core.security import ensure_public_url, verify_api_key
from sitekb.core.utils import truncate_text
from sitekb.ingestion.models import PageResult
from sitekb.services.jobs import SiteJobs

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/ask", response_model=AskResponse)
async def ask(
    request: AskRequest,
    request_obj: Request,
    jobs: SiteJobs = Depends(get_jobs),
):
    """Ask a question about a processed site."""
    try:
        client_ip = get_remote_address(request_obj)
        logger.info(f"Ask request from {client_ip}: {truncate_text(request.content, 120)}")

        messages = await jobs.ask_question(
            content=request.content,
            site_url=str(request.site_url),
            thread_id=request.thread_id,
        )
        thread_id = messages[0].thread_id if messages else request.thread_id or ""

        return AskResponse(thread_id=thread_id, messages=messages)

    except UnknownSiteError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RunFailedError as e:
        logger.warning(f"Run failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"status": e.status, "last_error": e.last_error},
        )
    except Exception as e:
        logger.error(f"Error in ask endpoint: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.post("/pages", response_model=PageResult)
async def process_page(
    request: PageRequest,
    x_api_key: str = Header(..., alias="X-API-Key"),
    jobs: SiteJobs = Depends(get_jobs),
):
    """Fetch one page and return its sections."""
    try:
        await verify_api_key(x_api_key)
        url = ensure_public_url(str(request.url))

        return await jobs.process_single_url(url)

    except HTTPException:
        raise
    except (FetchError, SegmentationError) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except Exception as e:
        logger.error(f"Error processing page: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
