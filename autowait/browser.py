"""Playwright browser manager for autowait."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from playwright.async_api import Browser, BrowserContext, async_playwright

from autowait.config import EngineConfig
from autowait.drivers.playwright import PlaywrightDriver
from autowait.exceptions import BrowserError
from autowait.logger import get_logger
from autowait.page import Page

log = get_logger(__name__)

_BROWSERS = ("chromium", "firefox", "webkit")


def _load_storage_state(state: str | Path | dict[str, Any] | None) -> dict[str, Any] | None:
    if state is None or isinstance(state, dict):
        return state
    path = Path(state)
    if not path.exists():
        raise BrowserError(f"Storage state file not found: {path}")
    return json.loads(path.read_text())


class BrowserManager:
    """Manages the Playwright browser lifecycle and hands out engine pages.

    Pages opened with :meth:`new_page` share one default context unless a
    separate one is requested, so cookies and storage carry across them.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._contexts: list[BrowserContext] = []
        self._pages: list[Page] = []

    async def start(self) -> None:
        """Launch the configured browser."""
        name = self.config.browser
        if name not in _BROWSERS:
            raise BrowserError(f"Unknown browser '{name}', expected one of {', '.join(_BROWSERS)}")
        args = ["--start-maximized"] if self.config.maximized and name == "chromium" else []
        try:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, name)
            self._browser = await launcher.launch(headless=self.config.headless, args=args)
            log.info("browser_started", browser=name, headless=self.config.headless)
        except Exception as exc:
            raise BrowserError(f"Failed to start browser: {exc}") from exc

    async def stop(self) -> None:
        """Close every page, context and the browser."""
        closers: list[tuple[str, Any]] = [
            ("page", page.close) for page in self._pages if not page.is_closed
        ]
        closers += [("context", ctx.close) for ctx in self._contexts]
        if self._browser:
            closers.append(("browser", self._browser.close))
        if self._playwright:
            closers.append(("playwright", self._playwright.stop))
        # Close each resource independently.
        for resource, close in closers:
            try:
                await close()
            except Exception as exc:
                log.warning("browser_stop_error", resource=resource, error=str(exc))
        self._pages = []
        self._contexts = []
        self._context = None
        self._browser = None
        self._playwright = None
        log.info("browser_stopped")

    async def new_context(
        self, storage_state: str | Path | dict[str, Any] | None = None
    ) -> BrowserContext:
        """Create a browser context, optionally importing a storage state."""
        if not self._browser:
            raise BrowserError("Browser not started, call start() first")
        options: dict[str, Any] = {}
        state = _load_storage_state(storage_state)
        if state is not None:
            options["storage_state"] = state
        if self.config.maximized:
            options["no_viewport"] = True
        if self.config.video_dir is not None:
            options["record_video_dir"] = str(self.config.video_dir)
            if self.config.video_size is not None:
                width, height = self.config.video_size
                options["record_video_size"] = {"width": width, "height": height}
        ctx = await self._browser.new_context(**options)
        self._contexts.append(ctx)
        log.info("context_created", storage_state=state is not None, video=bool(self.config.video_dir))
        return ctx

    async def new_page(self, context: BrowserContext | None = None) -> Page:
        """Open a page in ``context`` (the shared default context when omitted)."""
        if context is None:
            if self._context is None:
                self._context = await self.new_context()
            context = self._context
        native = await context.new_page()
        page = await Page.connect(PlaywrightDriver(native, context), self.config)
        self._pages.append(page)
        return page

    async def __aenter__(self) -> BrowserManager:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
