"""
Composes the session core with both transports and runs them in one process.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import threading
from typing import Optional

from werkzeug.serving import BaseWSGIServer, make_server

from ..browser_interface import ChromiumSessionDriver, SessionDriver
from ..config import Config
from ..errors import LifecycleError
from .browser_api import create_app
from .client_registry import ClientRegistry
from .dispatcher import CommandDispatcher
from .loop_bridge import AsyncBridge
from .session_manager import SessionManager
from .websocket_server import WebSocketServer


class WargServer:
    """HTTP API + WebSocket server sharing one browser session."""

    def __init__(self, config: Config, driver: Optional[SessionDriver] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.session_manager = SessionManager(
            driver or ChromiumSessionDriver(config), timeout=config.browser_timeout_seconds
        )
        self.registry = ClientRegistry(self.session_manager)
        self.dispatcher = CommandDispatcher(self.session_manager, self.registry)
        self.ws_server = WebSocketServer(self.dispatcher, self.registry, config.host, config.ws_port)
        self._http_server: Optional[BaseWSGIServer] = None
        self._http_thread: Optional[threading.Thread] = None

    @property
    def http_port(self) -> Optional[int]:
        return self._http_server.server_port if self._http_server else None

    async def start(self) -> None:
        await self.ws_server.start()

        app = create_app(self.dispatcher, AsyncBridge(asyncio.get_running_loop()))
        self._http_server = make_server(self.config.host, self.config.port, app, threaded=True)
        self._http_thread = threading.Thread(
            target=self._http_server.serve_forever, name="warg-http", daemon=True
        )
        self._http_thread.start()

        self.logger.info(
            "Warg server started (http=%s:%d, ws=%s:%d, pid=%d)",
            self.config.host,
            self.http_port,
            self.config.host,
            self.ws_server.bound_port,
            os.getpid(),
        )

    async def stop(self) -> None:
        self.logger.info("Stopping Warg server")
        loop = asyncio.get_running_loop()

        if self._http_server is not None:
            # shutdown() blocks until serve_forever returns; in-flight requests
            # still need this loop to finish, so wait off-loop.
            await loop.run_in_executor(None, self._http_server.shutdown)
            self._http_server.server_close()
            self._http_server = None
            self._http_thread = None

        try:
            await self.session_manager.close()
        except LifecycleError as exc:
            self.logger.error("Browser did not close cleanly: %s", exc)

        await self.ws_server.shutdown()
        self.logger.info("Warg server stopped")


async def serve(config: Config, driver: Optional[SessionDriver] = None) -> None:
    """Run the server until SIGINT/SIGTERM."""
    server = WargServer(config, driver)
    stop_event = asyncio.Event()

    def _stop(*_: object) -> None:
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except NotImplementedError:
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(_stop))

    await server.start()
    try:
        await stop_event.wait()
        server.logger.info("Received shutdown signal, shutting down gracefully")
    finally:
        await server.stop()
