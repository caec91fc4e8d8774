"""
Pytest configuration and shared fixtures.

Loads .env.test (if present) before any settings are created and provides
fixtures for a temporary library store and fake Zotero collaborators.
"""

import os
import pytest
from pathlib import Path
from dotenv import load_dotenv

from threadmed.config.settings import reset_settings
from threadmed.db.library_store import LibraryStore
from threadmed.tests.fakes import FakeZoteroClient, InMemorySecretProvider

# Load test environment configuration
# Priority: environment variables > .env.test
_project_root = Path(__file__).parent.parent.parent
_env_test_path = _project_root / ".env.test"

if _env_test_path.exists():
    load_dotenv(_env_test_path, override=False)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that require the real Zotero Web API (needs ZOTERO_API_KEY)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests when no Zotero credentials are configured."""
    if os.getenv("ZOTERO_API_KEY") and os.getenv("ZOTERO_USER_ID"):
        return

    skip_integration = pytest.mark.skip(reason="ZOTERO_API_KEY / ZOTERO_USER_ID not set")
    for item in items:
        if item.get_closest_marker("integration"):
            item.add_marker(skip_integration)


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Point all storage paths at a temporary directory."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DB_PATH", str(tmp_path / "threadmed.db"))
    monkeypatch.setenv("PDF_DIR", str(tmp_path / "pdfs"))
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "logs" / "sync.log"))
    reset_settings()
    yield tmp_path
    reset_settings()


@pytest.fixture
def library_store(tmp_path):
    """A library store in a temporary directory."""
    with LibraryStore(tmp_path / "library.db") as store:
        yield store


@pytest.fixture
def pdf_dir(tmp_path):
    path = tmp_path / "pdfs"
    path.mkdir()
    return path


@pytest.fixture
def secrets():
    return InMemorySecretProvider("test-api-key")


@pytest.fixture
def fake_client():
    return FakeZoteroClient()
