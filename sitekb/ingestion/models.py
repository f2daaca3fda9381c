"""Data models for ingestion pipeline."""

from typing import Optional

from pydantic import BaseModel, Field

from sitekb.core.constants import PAGE_JOINER, PAGE_SEPARATOR


class Section(BaseModel):
    """Title-delimited unit of a page."""

    title: str
    content: str = ""


class PageResult(BaseModel):
    """Sections extracted from one successfully processed URL."""

    url: str
    sections: list[Section] = Field(default_factory=list)

    def render(self) -> str:
        """Serialize the page with its source header."""
        body = "\n".join(f"{section.title}\n{section.content}" for section in self.sections)
        return f"{PAGE_SEPARATOR}\nurl: {self.url}\n\n{body}\n{PAGE_SEPARATOR}"


class PageOutcome(BaseModel):
    """Outcome of processing one URL: either a page or the reason it failed."""

    url: str
    ok: bool
    page: Optional[PageResult] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, page: PageResult) -> "PageOutcome":
        return cls(url=page.url, ok=True, page=page)

    @classmethod
    def failure(cls, url: str, error: str) -> "PageOutcome":
        return cls(url=url, ok=False, error=error)


class Batch(BaseModel):
    """Group of URLs processed together behind one completion barrier."""

    index: int
    urls: list[str]


class Corpus(BaseModel):
    """All successfully segmented pages of one crawl run, in crawl order."""

    site_url: str
    pages: list[PageResult] = Field(default_factory=list)
    failed_urls: list[str] = Field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def render(self) -> str:
        """Serialize every page into one flat document."""
        return PAGE_JOINER.join(page.render() for page in self.pages)
