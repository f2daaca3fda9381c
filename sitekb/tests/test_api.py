"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from conftest import page_html, sitemap_xml
from sitekb.api.deps import get_jobs
from sitekb.api.main import app
from sitekb.core.config import settings
from sitekb.generation.models import RunStatus

SITE = "https://docs.example.com"
ROUTES = {
    f"{SITE}/sitemap.xml": sitemap_xml([f"{SITE}/guide", f"{SITE}/blank"]),
    f"{SITE}/guide": page_html("Install", "Configure"),
    f"{SITE}/blank": "<html><body><p>nothing</p></body></html>",
}


@pytest.fixture
def client(make_jobs):
    jobs = make_jobs(ROUTES)
    app.dependency_overrides[get_jobs] = lambda: jobs
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-API-Key": settings.api_key}


def test_health(client):
    """Health check endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_ask_unknown_site_is_404(client, conversations):
    """Questions about unprocessed sites are rejected."""
    response = client.post("/v1/ask", json={"site_url": SITE, "content": "What is X?"})

    assert response.status_code == 404
    assert conversations.calls == []


def test_process_site_then_ask(client, admin_headers, kb_service):
    """A processed site can be questioned."""
    response = client.post("/admin/sites?wait=true", json={"url": f"{SITE}/"}, headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["site_url"] == SITE
    assert body["pages"] == 2
    assert body["failed_urls"] == []
    assert body["knowledge_base_id"] == kb_service.created[0]["id"]

    response = client.post("/v1/ask", json={"site_url": SITE, "content": "What is X?"})

    assert response.status_code == 200
    body = response.json()
    assert body["thread_id"]
    assert [m["role"] for m in body["messages"]] == ["assistant", "user"]


def test_process_site_in_background(client, admin_headers, kb_service):
    """Without wait the crawl is scheduled and the site registered afterwards."""
    response = client.post("/admin/sites", json={"url": SITE}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "accepted"

    response = client.get("/admin/sites/lookup", params={"url": SITE}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["knowledge_base_id"] == kb_service.created[0]["id"]


def test_admin_requires_api_key(client):
    """Admin routes reject missing or wrong keys."""
    assert client.post("/admin/sites", json={"url": SITE}).status_code == 422
    assert client.post("/admin/sites", json={"url": SITE}, headers={"X-API-Key": "wrong"}).status_code == 401


def test_lookup_unknown_site(client, admin_headers):
    """Lookup of an unregistered site is 404."""
    response = client.get("/admin/sites/lookup", params={"url": SITE}, headers=admin_headers)

    assert response.status_code == 404


def test_delete_knowledge_base(client, admin_headers, registry, kb_service):
    """Deleting keeps the registry entry unless asked to forget the site."""
    registry.register(SITE, "kb-7")

    response = client.delete("/admin/knowledge-bases/kb-7", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["remaining_sites"] == [SITE]
    assert kb_service.deleted == ["kb-7"]

    response = client.delete(
        "/admin/knowledge-bases/kb-7", params={"forget_site": SITE}, headers=admin_headers
    )

    assert response.json()["remaining_sites"] == []
    assert registry.lookup(SITE) is None


def test_delete_does_not_forget_a_site_mapped_elsewhere(client, admin_headers, registry):
    """forget_site leaves the entry alone when it points at another knowledge base."""
    registry.register(SITE, "kb-live")

    response = client.delete(
        "/admin/knowledge-bases/kb-unrelated", params={"forget_site": SITE}, headers=admin_headers
    )

    assert response.status_code == 200
    assert registry.lookup(SITE) == "kb-live"


def test_process_page(client, admin_headers):
    """A single page is segmented without publishing."""
    response = client.post("/v1/pages", json={"url": f"{SITE}/guide"}, headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["url"] == f"{SITE}/guide"
    assert [s["title"] for s in body["sections"]] == ["Install", "Configure"]


def test_process_page_fetch_error(client, admin_headers):
    """Unreachable pages are a bad gateway."""
    response = client.post("/v1/pages", json={"url": f"{SITE}/missing"}, headers=admin_headers)

    assert response.status_code == 502


def test_process_page_requires_api_key(client):
    """Page previews reject missing or wrong keys."""
    assert client.post("/v1/pages", json={"url": f"{SITE}/guide"}).status_code == 422
    response = client.post("/v1/pages", json={"url": f"{SITE}/guide"}, headers={"X-API-Key": "wrong"})
    assert response.status_code == 401


@pytest.mark.parametrize(
    "url",
    [
        "http://169.254.169.254/latest",
        "http://127.0.0.1:8000/admin",
        "http://10.0.0.5/",
        "http://localhost/",
        "http://[::1]/",
    ],
)
def test_process_page_rejects_internal_addresses(client, admin_headers, url):
    """Page previews never fetch loopback, private or link-local hosts."""
    response = client.post("/v1/pages", json={"url": url}, headers=admin_headers)

    assert response.status_code == 400


def test_ask_matches_site_registered_with_mixed_case_host(client, registry):
    """Host case does not change which knowledge base a question reaches."""
    registry.register("https://Docs.Example.com", "kb-1")

    response = client.post("/v1/ask", json={"site_url": "https://Docs.Example.com", "content": "What is X?"})

    assert response.status_code == 200


def test_failed_run_is_bad_gateway(client, registry, conversations):
    """Run failures carry their status back to the caller."""
    registry.register(SITE, "kb-1")
    conversations.run_status = RunStatus.CANCELLED

    response = client.post("/v1/ask", json={"site_url": SITE, "content": "What is X?"})

    assert response.status_code == 502
    assert response.json()["detail"]["status"] == "cancelled"
