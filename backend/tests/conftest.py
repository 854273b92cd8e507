"""Shared pytest fixtures for the SiteFlow backend test suite."""

import os
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ---------------------------------------------------------------------------
# Override settings BEFORE any siteflow code is imported so that nothing at
# module level tries to reach a real broker.
# ---------------------------------------------------------------------------

os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("API_TOKEN", "")

from siteflow.config import settings  # noqa: E402
from siteflow.schemas.page import PageContext  # noqa: E402


# ---------------------------------------------------------------------------
# Report directories
# ---------------------------------------------------------------------------


@pytest.fixture
def reports_dir(tmp_path, monkeypatch):
    """Point REPORTS_DIR and PUBLISH_DIR at a per-test temporary tree."""
    reports = tmp_path / "reports"
    published = tmp_path / "docs" / "reports"
    monkeypatch.setattr(settings, "REPORTS_DIR", str(reports))
    monkeypatch.setattr(settings, "PUBLISH_DIR", str(published))
    return reports


@pytest.fixture
def publish_dir(reports_dir, tmp_path):
    return tmp_path / "docs" / "reports"


# ---------------------------------------------------------------------------
# Page records
# ---------------------------------------------------------------------------


@pytest.fixture
def make_page():
    """Factory for PageContext records with sensible defaults."""

    def _make(url: str, **fields) -> PageContext:
        return PageContext(url=url, **fields)

    return _make


# ---------------------------------------------------------------------------
# Mock browser session
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_page():
    """An AsyncMock that behaves like a Playwright Page."""
    page = AsyncMock()
    page.url = "https://example.com/"
    page.goto = AsyncMock()
    page.fill = AsyncMock()
    page.click = AsyncMock()
    page.wait_for_url = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.evaluate = AsyncMock(return_value={})
    page.screenshot = AsyncMock(return_value=b"\x89PNG\r\n\x1a\n")
    page.close = AsyncMock()
    return page


@pytest.fixture
def mock_context(mock_page):
    """An AsyncMock that behaves like a Playwright BrowserContext."""
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=mock_page)
    context.cookies = AsyncMock(return_value=[])
    return context


@pytest.fixture
def mock_session(mock_context):
    """Replacement for ``browser_session`` that never launches a browser.

    ``mock_session.calls`` records the keyword arguments of every session
    opened, and ``mock_session.closed`` counts sessions that exited.
    """
    calls = []
    closed = MagicMock()

    @asynccontextmanager
    async def _session(**kwargs):
        calls.append(kwargs)
        try:
            yield mock_context
        finally:
            closed()

    _session.calls = calls
    _session.closed = closed
    return _session


# ---------------------------------------------------------------------------
# FastAPI test client (ASGI transport via httpx)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(reports_dir):
    """Yield an httpx.AsyncClient wired to the FastAPI app."""
    from siteflow.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
