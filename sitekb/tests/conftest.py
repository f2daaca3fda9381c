"""Shared fixtures: in-memory services and a mock HTTP transport."""

import asyncio
import itertools
from typing import Optional

import httpx
import pytest

from sitekb.core.errors import UploadError
from sitekb.generation.conversation import ConversationService
from sitekb.generation.models import RunInfo, RunStatus, ThreadMessage
from sitekb.ingestion.crawler import PageFetcher
from sitekb.ingestion.storage import InMemoryKeyValueStore
from sitekb.knowledge.registry import SiteRegistry
from sitekb.knowledge.service import KnowledgeBaseService
from sitekb.services.jobs import SiteJobs

CONNECT_ERROR = object()

SITEMAP_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'
)


def sitemap_xml(urls: list[str]) -> str:
    return SITEMAP_TEMPLATE.format(entries="".join(f"<url><loc>{url}</loc></url>" for url in urls))


def page_html(*headings: str) -> str:
    body = "".join(f"<h2>{heading}</h2><p>About {heading}</p>" for heading in headings)
    return f"<html><head><title>t</title></head><body><main>{body}</main></body></html>"


def make_transport(routes: dict) -> httpx.MockTransport:
    """Transport answering from ``{url: body | (status, body) | CONNECT_ERROR}``."""

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if route is CONNECT_ERROR:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(route, tuple):
            status_code, body = route
            return httpx.Response(status_code, text=body)
        return httpx.Response(200, text=route)

    return httpx.MockTransport(handler)


class FakeKnowledgeBaseService(KnowledgeBaseService):
    def __init__(self):
        self.uploads: list[str] = []
        self.created: list[dict] = []
        self.updated: list[tuple[str, list[str]]] = []
        self.deleted: list[str] = []
        self.fail_upload = False
        self._ids = itertools.count(1)

    async def upload_document(self, text: str) -> str:
        await asyncio.sleep(0)
        if self.fail_upload:
            raise UploadError("processing failed")
        self.uploads.append(text)
        return f"file-{len(self.uploads)}"

    async def create_knowledge_base(self, name, description, instructions, file_ids) -> str:
        await asyncio.sleep(0)
        knowledge_base_id = f"kb-{next(self._ids)}"
        self.created.append(
            {
                "id": knowledge_base_id,
                "name": name,
                "description": description,
                "instructions": instructions,
                "file_ids": file_ids,
            }
        )
        return knowledge_base_id

    async def update_knowledge_base(self, knowledge_base_id, file_ids) -> None:
        await asyncio.sleep(0)
        self.updated.append((knowledge_base_id, file_ids))

    async def delete_knowledge_base(self, knowledge_base_id) -> None:
        self.deleted.append(knowledge_base_id)


class FakeConversationService(ConversationService):
    def __init__(self):
        self.threads: dict[str, list[ThreadMessage]] = {}
        self.calls: list[str] = []
        self.run_status = RunStatus.COMPLETED
        self.last_error: Optional[dict] = None
        self.run_delay = 0.0
        self.runs: list[tuple[str, str]] = []
        self._ids = itertools.count(1)
        self._clock = itertools.count(1_700_000_000)

    def _add(self, thread_id: str, role: str, content: str) -> ThreadMessage:
        message = ThreadMessage(
            id=f"msg-{next(self._ids)}",
            thread_id=thread_id,
            role=role,
            content=content,
            created_at=next(self._clock),
        )
        self.threads[thread_id].append(message)
        return message

    async def create_thread(self) -> str:
        self.calls.append("create_thread")
        thread_id = f"thread-{next(self._ids)}"
        self.threads[thread_id] = []
        return thread_id

    async def get_thread(self, thread_id: str) -> str:
        self.calls.append("get_thread")
        if thread_id not in self.threads:
            raise KeyError(thread_id)
        return thread_id

    async def append_message(self, thread_id: str, content: str, role: str) -> str:
        self.calls.append("append_message")
        return self._add(thread_id, role, content).id

    async def start_run(self, thread_id, knowledge_base_id, on_status=None) -> RunInfo:
        self.calls.append("start_run")
        self.runs.append((thread_id, knowledge_base_id))
        for status in (RunStatus.QUEUED, RunStatus.IN_PROGRESS):
            if on_status is not None:
                on_status(status)
        if self.run_delay:
            await asyncio.sleep(self.run_delay)
        if self.run_status == RunStatus.COMPLETED:
            question = self.threads[thread_id][-1].content
            self._add(thread_id, "assistant", f"Answer to: {question}")
        if on_status is not None:
            on_status(self.run_status)
        return RunInfo(
            id=f"run-{next(self._ids)}",
            thread_id=thread_id,
            status=self.run_status,
            last_error=self.last_error,
        )

    async def list_messages(self, thread_id, limit=10, order="desc") -> list[ThreadMessage]:
        self.calls.append("list_messages")
        messages = sorted(self.threads[thread_id], key=lambda m: m.created_at, reverse=order == "desc")
        return messages[:limit]


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def registry(store):
    return SiteRegistry(store)


@pytest.fixture
def kb_service():
    return FakeKnowledgeBaseService()


@pytest.fixture
def conversations():
    return FakeConversationService()


@pytest.fixture
def make_jobs(kb_service, conversations, registry):
    """Factory for jobs whose HTTP traffic is served from ``routes``."""

    def factory(routes: dict, batch_size: int = 25, run_timeout: Optional[float] = None) -> SiteJobs:
        return SiteJobs(
            fetcher=PageFetcher(transport=make_transport(routes)),
            knowledge_bases=kb_service,
            conversations=conversations,
            registry=registry,
            batch_size=batch_size,
            message_limit=10,
            run_timeout=run_timeout,
        )

    return factory
