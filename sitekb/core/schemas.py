"""Pydantic schemas for API requests and responses."""

from typing import Optional

from pydantic import BaseModel, Field, HttpUrl

from sitekb.generation.models import ThreadMessage


class AskRequest(BaseModel):
    """Question about a processed site."""

    site_url: HttpUrl
    content: str = Field(..., description="User question", min_length=1, max_length=4000)
    thread_id: Optional[str] = Field(None, description="Existing thread to continue")


class AskResponse(BaseModel):
    """Latest messages of the thread, newest first."""

    thread_id: str
    messages: list[ThreadMessage]


class PageRequest(BaseModel):
    """Single page to fetch and segment."""

    url: HttpUrl


class ProcessSiteRequest(BaseModel):
    """Site to crawl and publish."""

    url: HttpUrl


class ProcessSiteAccepted(BaseModel):
    """Crawl scheduled in the background."""

    status: str = "accepted"
    site_url: str


class DeleteKnowledgeBaseResponse(BaseModel):
    """Outcome of a knowledge-base deletion."""

    knowledge_base_id: str
    deleted: bool = True
    remaining_sites: list[str] = Field(
        default_factory=list, description="Registry entries still pointing at the deleted id"
    )


class SiteLookupResponse(BaseModel):
    """Registry entry of a site."""

    site_url: str
    knowledge_base_id: Optional[str] = None
