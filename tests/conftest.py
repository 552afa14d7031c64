"""
Test configuration and fixtures for the Site Quality Checker API.

Browser access is always mocked: pages are MagicMocks whose query methods are
AsyncMocks, storage is kept in memory.
"""

from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient

from app.features.analysis.schemas.analysis import CheckStatus, EvaluationResult, Viewport

load_dotenv()

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


class InMemoryStorage:
    """Storage double recording every stored object."""

    def __init__(self):
        self.objects = {}

    async def store(self, data, key, content_type):
        self.objects[key] = (data, content_type)
        return f"memory://{key}"


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def make_page():
    """
    Factory for a fake loaded page.

    ``evaluate`` is the value every script returns; pass a list through
    ``evaluate_side_effect`` for checks that run several scripts.
    """

    def _make(
        evaluate=None,
        evaluate_side_effect=None,
        title="",
        url="https://example.com/",
        headers=None,
        cookies=None,
        console_errors=None,
    ):
        page = MagicMock()
        page.viewport = Viewport(name="evaluation", width=1920, height=1080)
        page.evaluate = AsyncMock(return_value=evaluate, side_effect=evaluate_side_effect)
        page.title = AsyncMock(return_value=title)
        page.current_url = AsyncMock(return_value=url)
        page.set_viewport = AsyncMock()
        page.response_headers = AsyncMock(return_value=headers if headers is not None else {})
        page.cookies = AsyncMock(return_value=cookies or [])
        page.console_errors = AsyncMock(return_value=console_errors or [])
        page.screenshot = AsyncMock(return_value=PNG_BYTES)
        page.open = AsyncMock(return_value=1200.0)
        page.wait_for = AsyncMock(return_value=True)
        return page

    return _make


@pytest.fixture
def make_result():
    def _make(status=CheckStatus.passed, category="accessibility", id="a11y-001"):
        return EvaluationResult(
            id=id,
            name="Check",
            description="A check",
            category=category,
            impact="major",
            status=status,
            details="details",
        )

    return _make
