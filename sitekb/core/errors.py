"""Error taxonomy for the crawl and question-answering pipeline."""

from typing import Any, Optional


class SiteKBError(Exception):
    """Base class for all pipeline errors."""


class FetchError(SiteKBError):
    """Network failure or non-success HTTP status."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {reason}")


class MalformedSitemapError(SiteKBError):
    """Sitemap XML does not have the urlset/url/loc shape."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Malformed sitemap at {url}: {reason}")


class SegmentationError(SiteKBError):
    """A page could not be parsed into sections."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not segment {url}: {reason}")


class UnknownSiteError(SiteKBError):
    """Query against a site that was never successfully published."""

    def __init__(self, site_url: str):
        self.site_url = site_url
        super().__init__(f"No knowledge base found for {site_url}")


class RunFailedError(SiteKBError):
    """An inference run ended in a status other than completed."""

    def __init__(self, status: str, last_error: Any = None, run_id: Optional[str] = None):
        self.status = status
        self.last_error = last_error
        self.run_id = run_id
        super().__init__(f"Run finished with status {status}: {last_error}")


class UploadError(SiteKBError):
    """Corpus upload failed or did not finish processing in time."""

    def __init__(self, reason: str, file_id: Optional[str] = None):
        self.reason = reason
        self.file_id = file_id
        super().__init__(f"Upload failed: {reason}")
