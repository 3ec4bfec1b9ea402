"""
Chromium session driver (Playwright asyncio API).
"""

from __future__ import annotations

import asyncio
import base64
import logging
from contextlib import suppress
from typing import Any, Dict, List, Optional

from ..config import Config
from .abstract_browser import EventSink, SessionDriver, SessionHandle

DEFAULT_LAUNCH_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]
DEFAULT_VIEWPORT: Dict[str, int] = {"width": 1280, "height": 720}

# Navigation commands return once the network has been idle for 500 ms.
SETTLE_STATE = "networkidle"


class ChromiumSessionHandle(SessionHandle):
    """Wraps the Playwright objects that make up one live session."""

    def __init__(self, playwright: Any, browser: Any, page: Any, timeout_ms: int):
        self._playwright = playwright
        self._browser = browser
        self._page = page
        self.timeout_ms = timeout_ms

    async def navigate(self, url: str) -> str:
        await self._page.goto(url, wait_until=SETTLE_STATE, timeout=self.timeout_ms)
        return self._page.url

    async def click(self, selector: str) -> None:
        await self._page.click(selector, timeout=self.timeout_ms)

    async def type(self, selector: str, text: str) -> None:
        await self._page.locator(selector).press_sequentially(text, timeout=self.timeout_ms)

    async def screenshot(self, full_page: bool = False) -> str:
        image = await self._page.screenshot(full_page=full_page, type="png", timeout=self.timeout_ms)
        return base64.b64encode(image).decode("ascii")

    async def evaluate(self, script: str) -> Any:
        return await self._page.evaluate(script)

    async def reload(self) -> str:
        await self._page.reload(wait_until=SETTLE_STATE, timeout=self.timeout_ms)
        return self._page.url

    async def back(self) -> str:
        await self._page.go_back(wait_until=SETTLE_STATE, timeout=self.timeout_ms)
        return self._page.url

    async def forward(self) -> str:
        await self._page.go_forward(wait_until=SETTLE_STATE, timeout=self.timeout_ms)
        return self._page.url

    async def page_info(self) -> Dict[str, Any]:
        return {"title": await self._page.title(), "url": self._page.url}

    async def close_page(self) -> None:
        if self._page is not None:
            page, self._page = self._page, None
            await page.close()

    async def close(self) -> None:
        try:
            if self._browser is not None:
                browser, self._browser = self._browser, None
                await browser.close()
        finally:
            if self._playwright is not None:
                playwright, self._playwright = self._playwright, None
                await playwright.stop()


class ChromiumSessionDriver(SessionDriver):
    """Launches headless (or headed) Chromium with a single page."""

    def __init__(self, config: Optional[Config] = None, args: Optional[List[str]] = None):
        self.config = config or Config()
        self.args = list(args) if args is not None else list(DEFAULT_LAUNCH_ARGS)
        self.logger = logging.getLogger(__name__)

    async def launch(self, on_event: Optional[EventSink] = None) -> ChromiumSessionHandle:
        from playwright.async_api import async_playwright

        timeout_ms = self.config.browser_timeout
        self.logger.info(
            "Launching Chromium (headless=%s, timeout=%dms)", self.config.browser_headless, timeout_ms
        )

        starting = asyncio.ensure_future(async_playwright().start())
        playwright = None
        browser = None
        try:
            try:
                playwright = await asyncio.shield(starting)
            except asyncio.CancelledError:
                # The driver process may still come up after we give up on it.
                starting.add_done_callback(_stop_late_playwright)
                raise
            browser = await playwright.chromium.launch(
                headless=self.config.browser_headless,
                args=self.args,
                timeout=timeout_ms,
            )
            page = await browser.new_page(viewport=DEFAULT_VIEWPORT)
        except BaseException:
            # Failed or cancelled (launch timeout): release whatever was started.
            with suppress(Exception):
                if browser is not None:
                    await browser.close()
            with suppress(Exception):
                if playwright is not None:
                    await playwright.stop()
            raise

        if on_event is not None:
            _attach_page_events(page, on_event)
        return ChromiumSessionHandle(playwright, browser, page, timeout_ms)


def _stop_late_playwright(starting: "asyncio.Future[Any]") -> None:
    if starting.cancelled() or starting.exception() is not None:
        return
    asyncio.ensure_future(starting.result().stop())


def _attach_page_events(page: Any, on_event: EventSink) -> None:
    page.on("console", lambda message: on_event("console", {"type": message.type, "text": message.text}))
    page.on("pageerror", lambda error: on_event("pageerror", {"error": str(error)}))
    page.on("crash", lambda _page: on_event("crash", {}))
