"""Tests for publishing a corpus into a site's knowledge base."""

import asyncio

import pytest

from conftest import page_html, sitemap_xml
from sitekb.core.errors import UploadError
from sitekb.ingestion.models import Corpus, PageResult, Section
from sitekb.knowledge.publisher import CorpusPublisher

SITE = "https://docs.example.com"


def _corpus(*titles):
    page = PageResult(url=f"{SITE}/page", sections=[Section(title=t, content="text") for t in titles])
    return Corpus(site_url=SITE, pages=[page])


@pytest.mark.asyncio
async def test_first_publish_creates_knowledge_base(kb_service, registry):
    """An unseen site gets a new knowledge base seeded with the upload."""
    publisher = CorpusPublisher(kb_service, registry)

    knowledge_base_id = await publisher.publish(SITE, _corpus("Intro"))

    assert registry.lookup(SITE) == knowledge_base_id
    assert len(kb_service.created) == 1
    created = kb_service.created[0]
    assert created["file_ids"] == ["file-1"]
    assert created["name"] == f"assistant for {SITE}"
    assert SITE in created["instructions"]
    assert kb_service.updated == []


@pytest.mark.asyncio
async def test_second_publish_updates_same_knowledge_base(kb_service, registry):
    """Publishing a site twice keeps its id and replaces the documents."""
    publisher = CorpusPublisher(kb_service, registry)

    first = await publisher.publish(SITE, _corpus("Old"))
    second = await publisher.publish(f"{SITE}/", _corpus("New"))

    assert first == second
    assert len(kb_service.created) == 1
    assert kb_service.updated == [(first, ["file-2"])]
    assert "New" in kb_service.uploads[1]


@pytest.mark.asyncio
async def test_upload_failure_leaves_registry_untouched(kb_service, registry):
    """No knowledge base is created when the upload fails."""
    kb_service.fail_upload = True

    with pytest.raises(UploadError):
        await CorpusPublisher(kb_service, registry).publish(SITE, _corpus("Intro"))

    assert registry.lookup(SITE) is None
    assert kb_service.created == []


@pytest.mark.asyncio
async def test_concurrent_crawls_of_one_site_create_once(make_jobs, kb_service, registry):
    """Two simultaneous crawls of a site never create two knowledge bases."""
    routes = {
        f"{SITE}/sitemap.xml": sitemap_xml([f"{SITE}/a"]),
        f"{SITE}/a": page_html("A"),
    }
    jobs = make_jobs(routes)

    try:
        first, second = await asyncio.gather(jobs.process_site(SITE), jobs.process_site(SITE))
    finally:
        await jobs.close()

    assert first.knowledge_base_id == second.knowledge_base_id
    assert len(kb_service.created) == 1
    assert len(kb_service.updated) == 1
    assert registry.lookup(SITE) == first.knowledge_base_id


@pytest.mark.asyncio
async def test_different_sites_get_different_knowledge_bases(make_jobs, kb_service):
    """Each site has its own knowledge base."""
    other = "https://api.example.com"
    routes = {
        f"{SITE}/sitemap.xml": sitemap_xml([f"{SITE}/a"]),
        f"{SITE}/a": page_html("A"),
        f"{other}/sitemap.xml": sitemap_xml([f"{other}/b"]),
        f"{other}/b": page_html("B"),
    }
    jobs = make_jobs(routes)

    try:
        first, second = await asyncio.gather(jobs.process_site(SITE), jobs.process_site(other))
    finally:
        await jobs.close()

    assert first.knowledge_base_id != second.knowledge_base_id
    assert len(kb_service.created) == 2


@pytest.mark.asyncio
async def test_deleting_another_knowledge_base_keeps_site_entry(make_jobs, kb_service, registry):
    """forget_site only drops the entry that points at the deleted knowledge base."""
    routes = {
        f"{SITE}/sitemap.xml": sitemap_xml([f"{SITE}/a"]),
        f"{SITE}/a": page_html("A"),
    }
    registry.register(SITE, "kb-live")
    jobs = make_jobs(routes)

    try:
        remaining = await jobs.delete_knowledge_base("kb-unrelated", forget_site=SITE)
        result = await jobs.process_site(SITE)
    finally:
        await jobs.close()

    assert remaining == []
    assert registry.lookup(SITE) == "kb-live"
    assert result.knowledge_base_id == "kb-live"
    assert kb_service.created == []
    assert [kb for kb, _ in kb_service.updated] == ["kb-live"]
