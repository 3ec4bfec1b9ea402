"""
Shared fixtures: an in-memory browser driver and fake observers.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from warg.browser_interface import SessionDriver, SessionHandle
from warg.server.client_registry import ClientRegistry
from warg.server.dispatcher import CommandDispatcher
from warg.server.session_manager import SessionManager


class FakeHandle(SessionHandle):
    """Pretends to be a page with a simple history stack."""

    def __init__(self):
        self.history: List[str] = ["about:blank"]
        self.position = 0
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}
        self.page_closed = False
        self.browser_closed = False

    def _record(self, name: str, *args):
        self.calls.append((name,) + args)
        if name in self.fail_on:
            raise self.fail_on[name]

    @property
    def url(self) -> str:
        return self.history[self.position]

    async def navigate(self, url: str) -> str:
        self._record("navigate", url)
        self.history = self.history[: self.position + 1] + [url]
        self.position += 1
        return self.url

    async def click(self, selector: str) -> None:
        self._record("click", selector)

    async def type(self, selector: str, text: str) -> None:
        self._record("type", selector, text)

    async def screenshot(self, full_page: bool = False) -> str:
        self._record("screenshot", full_page)
        return "iVBORw0KGgo="

    async def evaluate(self, script: str) -> Any:
        self._record("evaluate", script)
        return {"script": script}

    async def reload(self) -> str:
        self._record("reload")
        return self.url

    async def back(self) -> str:
        self._record("back")
        self.position = max(0, self.position - 1)
        return self.url

    async def forward(self) -> str:
        self._record("forward")
        self.position = min(len(self.history) - 1, self.position + 1)
        return self.url

    async def page_info(self) -> Dict[str, Any]:
        self._record("page_info")
        return {"title": "Fake page", "url": self.url}

    async def close_page(self) -> None:
        self._record("close_page")
        self.page_closed = True

    async def close(self) -> None:
        self._record("close")
        self.browser_closed = True


class FakeDriver(SessionDriver):
    """Counts launches; ``launch_delay`` and ``launch_error`` shape the outcome."""

    def __init__(self, launch_delay: float = 0.0, launch_error: Optional[Exception] = None):
        self.launch_delay = launch_delay
        self.launch_error = launch_error
        self.launch_count = 0
        self.handles: List[FakeHandle] = []
        self.on_event = None

    async def launch(self, on_event=None) -> FakeHandle:
        self.launch_count += 1
        self.on_event = on_event
        if self.launch_delay:
            await asyncio.sleep(self.launch_delay)
        if self.launch_error is not None:
            raise self.launch_error
        handle = FakeHandle()
        self.handles.append(handle)
        return handle

    @property
    def handle(self) -> Optional[FakeHandle]:
        return self.handles[-1] if self.handles else None


class FakeObserver:
    """Collects everything sent to it, like a WebSocket connection would."""

    def __init__(self, name: str = "observer", fail_with: Optional[Exception] = None):
        self.name = name
        self.fail_with = fail_with
        self.sent: List[Dict[str, Any]] = []

    async def send(self, payload: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(json.loads(payload))

    def types(self) -> List[str]:
        return [message["type"] for message in self.sent]

    def __repr__(self) -> str:
        return f"FakeObserver({self.name})"


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def session_manager(driver):
    return SessionManager(driver, timeout=1.0)


@pytest.fixture
def registry(session_manager):
    return ClientRegistry(session_manager)


@pytest.fixture
def dispatcher(session_manager, registry):
    return CommandDispatcher(session_manager, registry)
