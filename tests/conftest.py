"""Shared test fixtures for autowait."""
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest

from autowait.config import EngineConfig
from autowait.drivers.memory import MemoryDriver
from autowait.page import Page

# Path to test fixtures
FIXTURES_DIR = Path(__file__).parent / "fixtures"
MOCK_PAGES_DIR = FIXTURES_DIR / "mock_pages"

PageFactory = Callable[..., Awaitable[Page]]


@pytest.fixture
def simple_form_path() -> Path:
    """Path to the simple form test page."""
    return MOCK_PAGES_DIR / "simple_form.html"


@pytest.fixture
def store_html() -> str:
    """The product listing test page."""
    return (MOCK_PAGES_DIR / "store.html").read_text()


@pytest.fixture
def fast_config() -> EngineConfig:
    """Timeouts and poll interval scaled down so timing tests stay quick."""
    return EngineConfig(action_timeout_ms=1000, assertion_timeout_ms=500, poll_interval_ms=10)


@pytest.fixture
async def make_page(fast_config: EngineConfig) -> AsyncIterator[PageFactory]:
    """Build engine pages over fresh in-memory documents; closed on teardown."""
    pages: list[Page] = []

    async def factory(html: str = "", **kwargs: Any) -> Page:
        config = kwargs.pop("config", fast_config)
        page = await Page.connect(MemoryDriver(html, **kwargs), config)
        pages.append(page)
        return page

    yield factory
    for page in pages:
        await page.close()
