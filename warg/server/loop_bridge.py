"""
Runs coroutines on an asyncio loop from synchronous (threaded) code.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Coroutine, Optional, TypeVar

T = TypeVar("T")


class AsyncBridge:
    """Submits coroutines to ``loop`` and blocks the calling thread for the result.

    The HTTP server threads use it to reach the core objects, which only
    live on the server's event loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, thread: Optional[threading.Thread] = None):
        self.loop = loop
        self._thread = thread

    @classmethod
    def start_background(cls, name: str = "warg-loop") -> "AsyncBridge":
        """Create a new event loop running on a daemon thread."""
        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _run_loop() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()

        thread = threading.Thread(target=_run_loop, name=name, daemon=True)
        thread.start()
        ready.wait()
        return cls(loop, thread)

    def run(self, coro: Coroutine[Any, Any, T], timeout: Optional[float] = None) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout)

    def stop(self) -> None:
        """Stop a loop created by start_background."""
        if self._thread is None:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        self._thread = None
        if not self.loop.is_running():
            self.loop.close()
