"""
Chromium driver tests with mocked Playwright objects
"""

import asyncio
import base64
from unittest.mock import AsyncMock, Mock

import pytest

from warg.browser_interface import ChromiumSessionDriver, ChromiumSessionHandle
from warg.config import Config


def _page(url="https://example.com/"):
    page = AsyncMock()
    page.url = url
    page.on = Mock()
    page.locator = Mock(return_value=AsyncMock())
    return page


@pytest.fixture
def page():
    return _page()


@pytest.fixture
def handle(page):
    return ChromiumSessionHandle(AsyncMock(), AsyncMock(), page, timeout_ms=5000)


@pytest.mark.asyncio
async def test_navigate_waits_for_network_idle(handle, page):
    assert await handle.navigate("https://example.com") == "https://example.com/"
    page.goto.assert_awaited_once_with("https://example.com", wait_until="networkidle", timeout=5000)


@pytest.mark.asyncio
async def test_type_presses_keys_in_locator(handle, page):
    await handle.type("#q", "abc")
    page.locator.assert_called_once_with("#q")
    page.locator.return_value.press_sequentially.assert_awaited_once_with("abc", timeout=5000)


@pytest.mark.asyncio
async def test_screenshot_is_base64(handle, page):
    page.screenshot.return_value = b"\x89PNG"

    encoded = await handle.screenshot(full_page=True)

    assert base64.b64decode(encoded) == b"\x89PNG"
    page.screenshot.assert_awaited_once_with(full_page=True, type="png", timeout=5000)


@pytest.mark.asyncio
async def test_page_info(handle, page):
    page.title.return_value = "Example Domain"
    assert await handle.page_info() == {"title": "Example Domain", "url": "https://example.com/"}


@pytest.mark.asyncio
async def test_close_stops_playwright_even_if_browser_close_fails(page):
    playwright, browser = AsyncMock(), AsyncMock()
    browser.close.side_effect = RuntimeError("already gone")
    handle = ChromiumSessionHandle(playwright, browser, page, timeout_ms=5000)

    await handle.close_page()
    with pytest.raises(RuntimeError):
        await handle.close()
    await handle.close()

    page.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()


def _fake_playwright(monkeypatch, page, launch_error=None):
    playwright = AsyncMock()
    browser = AsyncMock()
    browser.new_page.return_value = page
    if launch_error is not None:
        playwright.chromium.launch.side_effect = launch_error
    else:
        playwright.chromium.launch.return_value = browser

    starter = Mock()
    starter.start = AsyncMock(return_value=playwright)
    monkeypatch.setattr("playwright.async_api.async_playwright", lambda: starter)
    return playwright, browser


@pytest.mark.asyncio
async def test_launch_uses_config_and_wires_events(monkeypatch, page):
    playwright, browser = _fake_playwright(monkeypatch, page)
    driver = ChromiumSessionDriver(Config(browser_headless=False, browser_timeout=7000))
    events = []

    handle = await driver.launch(lambda event, details: events.append((event, details)))

    assert isinstance(handle, ChromiumSessionHandle)
    kwargs = playwright.chromium.launch.call_args.kwargs
    assert kwargs["headless"] is False
    assert kwargs["timeout"] == 7000
    assert "--no-sandbox" in kwargs["args"]
    browser.new_page.assert_awaited_once_with(viewport={"width": 1280, "height": 720})

    listeners = {call.args[0]: call.args[1] for call in page.on.call_args_list}
    listeners["pageerror"](ValueError("boom"))
    assert events == [("pageerror", {"error": "boom"})]


@pytest.mark.asyncio
async def test_failed_launch_stops_playwright(monkeypatch, page):
    playwright, _ = _fake_playwright(monkeypatch, page, launch_error=RuntimeError("no executable"))

    with pytest.raises(RuntimeError, match="no executable"):
        await ChromiumSessionDriver(Config()).launch()

    playwright.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_launch_cancelled_during_startup_stops_playwright_later(monkeypatch, page):
    playwright, _ = _fake_playwright(monkeypatch, page)

    async def slow_start():
        await asyncio.sleep(0.1)
        return playwright

    starter = Mock()
    starter.start = slow_start
    monkeypatch.setattr("playwright.async_api.async_playwright", lambda: starter)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(ChromiumSessionDriver(Config()).launch(), 0.01)
    playwright.stop.assert_not_awaited()

    await asyncio.sleep(0.3)
    playwright.stop.assert_awaited_once()
    playwright.chromium.launch.assert_not_awaited()
