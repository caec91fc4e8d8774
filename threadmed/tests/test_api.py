"""
Tests for the HTTP API, with the sync engine wired to a fake Zotero client.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from threadmed.api.dependencies import get_library_store, get_sync_engine
from threadmed.api.sync import generate_progress_events
from threadmed.db.library_store import USER_ID_KEY
from threadmed.main import app
from threadmed.models.sync import ConnectionInfo
from threadmed.services.sync_engine import SyncEngine
from threadmed.tests.fakes import make_item, make_pdf_attachment


@pytest.fixture
def engine(isolated_settings, library_store, secrets, fake_client):
    library_store.set_meta(USER_ID_KEY, "12345")
    return SyncEngine(
        store=library_store,
        secrets=secrets,
        pdf_dir=isolated_settings / "pdfs",
        client_factory=fake_client.factory,
    )


@pytest.fixture
def client(engine, library_store):
    """Test client with the shared services replaced."""
    app.dependency_overrides[get_sync_engine] = lambda: engine
    app.dependency_overrides[get_library_store] = lambda: library_store
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestServiceEndpoints:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_version(self, client):
        data = client.get("/api/version").json()
        assert "api_version" in data
        assert data["service"] == "ThreadMed Sync API"

    def test_config(self, client, isolated_settings):
        response = client.get("/api/config")
        assert response.status_code == 200

        data = response.json()
        assert data["zotero_api_url"] == "https://api.zotero.org"
        assert data["page_size"] == 100
        assert data["pdf_dir"] == str(isolated_settings / "pdfs")


class TestZoteroEndpoints:

    def test_status(self, client):
        data = client.get("/api/zotero/status").json()

        assert data["connected"] is True
        assert data["userId"] == "12345"
        assert data["libraryVersion"] is None
        assert "test-api-key" not in str(data)

    def test_connect(self, client, fake_client, secrets):
        fake_client.connection = ConnectionInfo(valid=True, total_items=17)

        response = client.post("/api/zotero/connect", json={"api_key": "fresh-key", "user_id": "999"})

        assert response.status_code == 200
        assert response.json() == {"valid": True, "totalItems": 17, "error": None}
        assert secrets.retrieve() == "fresh-key"

    def test_connect_invalid_user_id(self, client, secrets):
        response = client.post("/api/zotero/connect", json={"api_key": "k", "user_id": "me"})

        assert response.status_code == 200
        assert response.json()["valid"] is False
        assert secrets.retrieve() == "test-api-key"

    def test_disconnect(self, client):
        response = client.post("/api/zotero/disconnect")

        assert response.json() == {"status": "disconnected"}
        assert client.get("/api/zotero/status").json()["connected"] is False

    def test_sync(self, client, fake_client):
        fake_client.items = [make_item("A", 3), make_item("B", 8)]
        fake_client.children = {"A": [make_pdf_attachment("ATT1", "A")]}
        fake_client.files = {"ATT1": b"%PDF-1.4"}

        response = client.post("/api/zotero/sync")

        assert response.status_code == 200
        assert response.json() == {
            "imported": 2,
            "updated": 0,
            "pdfsDownloaded": 1,
            "errors": [],
            "libraryVersion": 8,
        }

    def test_sync_not_connected(self, client, secrets):
        secrets.clear()

        response = client.post("/api/zotero/sync")

        assert response.status_code == 200
        assert response.json()["errors"] == ["Not connected to Zotero"]

    def test_sync_conflict_while_running(self, client, engine):
        engine._begin()
        try:
            response = client.post("/api/zotero/sync")
        finally:
            engine._end()

        assert response.status_code == 409
        assert response.json()["detail"] == "Sync already in progress"


class TestPaperEndpoints:

    def _sync(self, client, fake_client):
        fake_client.items = [
            make_item("A", 1, title="Neural crest migration"),
            make_item("B", 2, title="Cardiac development"),
        ]
        client.post("/api/zotero/sync")

    def test_list_papers(self, client, fake_client):
        self._sync(client, fake_client)

        papers = client.get("/api/papers").json()

        assert {p["title"] for p in papers} == {"Neural crest migration", "Cardiac development"}
        assert papers[0]["authors"] == ["Smith, John"]

    def test_get_paper(self, client, fake_client, library_store):
        self._sync(client, fake_client)
        paper_id = library_store.get_paper_id_by_key("A")

        response = client.get(f"/api/papers/{paper_id}")

        assert response.status_code == 200
        assert response.json()["zotero_key"] == "A"

    def test_get_missing_paper(self, client):
        assert client.get("/api/papers/does-not-exist").status_code == 404

    def test_search(self, client, fake_client):
        self._sync(client, fake_client)

        hits = client.get("/api/papers/search", params={"q": "cardiac"}).json()

        assert [hit["title"] for hit in hits] == ["Cardiac development"]

    def test_search_invalid_query(self, client):
        response = client.get("/api/papers/search", params={"q": '"unbalanced'})

        assert response.status_code == 400
        assert "Invalid search query" in response.json()["detail"]


class TestProgressStream:

    @pytest.mark.asyncio
    async def test_events_until_complete(self, engine, fake_client):
        fake_client.items = [make_item("A", 1)]

        async def collect():
            return [event async for event in generate_progress_events(engine)]

        collector = asyncio.create_task(collect())
        await asyncio.sleep(0)

        await engine.sync_library()
        events = await asyncio.wait_for(collector, timeout=5)

        assert all(event.startswith("data: ") and event.endswith("\n\n") for event in events)
        assert '"phase":"metadata"' in events[0]
        assert '"paperTitle":"Paper A"' in events[1]
        assert '"phase":"complete"' in events[-1]
        assert engine._listeners == []

    @pytest.mark.asyncio
    async def test_stream_ends_on_error(self, engine, fake_client):
        fake_client.fetch_error = RuntimeError("connection reset")

        async def collect():
            return [event async for event in generate_progress_events(engine)]

        collector = asyncio.create_task(collect())
        await asyncio.sleep(0)

        await engine.sync_library()
        events = await asyncio.wait_for(collector, timeout=5)

        assert '"phase":"error"' in events[-1]
        assert "connection reset" in events[-1]
