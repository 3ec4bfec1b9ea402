"""
Async WebSocket server: the persistent channel used by observers.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from ..errors import WargError
from .client_registry import ClientRegistry
from .dispatcher import CommandDispatcher

Handler = Callable[[ServerConnection, Dict[str, Any]], Awaitable[Dict[str, Any]]]


class WebSocketServer:
    """Receives client messages and routes them through the dispatcher."""

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        registry: ClientRegistry,
        host: str = "127.0.0.1",
        port: int = 3001,
    ):
        self.dispatcher = dispatcher
        self.registry = registry
        self.host = host
        self.port = port
        self.logger = logging.getLogger(__name__)
        self._server: Optional[Server] = None
        self._handlers: Dict[str, Handler] = {
            "browser_start": self._handle_start,
            "browser_stop": self._handle_stop,
            "browser_restart": self._handle_restart,
            "command": self._handle_command,
            "get_status": self._handle_status,
        }

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port (differs from ``port`` when it was 0)."""
        if not self._server:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    async def start(self) -> None:
        self._server = await serve(self._handle_connection, self.host, self.port)
        self.logger.info("WebSocket server listening on ws://%s:%d", self.host, self.bound_port)

    async def run_forever(self) -> None:
        await self.start()
        assert self._server is not None
        await self._server.wait_closed()

    async def shutdown(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        peer = _format_peer(websocket.remote_address)
        await self.registry.register(websocket)
        self.logger.info("Client connected: %s (total=%d)", peer, self.registry.count)

        try:
            async for message in websocket:
                response = await self._process_message(websocket, message)
                await self.registry.unicast(websocket, response)
        except ConnectionClosed:
            self.logger.info("Client disconnected: %s", peer)
        except Exception as exc:
            self.logger.exception("Error handling client %s: %s", peer, exc)
        finally:
            self.registry.unregister(websocket)
            self.logger.info("Connection closed: %s (total=%d)", peer, self.registry.count)

    async def _process_message(self, websocket: ServerConnection, raw_message: Any) -> Dict[str, Any]:
        try:
            payload = json.loads(raw_message)
        except (TypeError, ValueError):
            return self._error_response(None, "Invalid message format")
        if not isinstance(payload, dict):
            return self._error_response(None, "Invalid message format")

        message_id = payload.get("id")
        message_type = payload.get("type")
        self.logger.info("WebSocket message received: %s", message_type)

        handler = self._handlers.get(message_type) if isinstance(message_type, str) else None
        if handler is None:
            return self._error_response(message_id, f"Unknown message type: {message_type}")

        try:
            response = await handler(websocket, payload)
        except WargError as exc:
            return self._error_response(message_id, str(exc))
        except Exception as exc:
            self.logger.exception("Message processing failed: %s", exc)
            return self._error_response(message_id, f"Internal error: {exc}")

        if message_id is not None:
            response["id"] = message_id
        return response

    async def _handle_start(self, websocket: ServerConnection, payload: Dict[str, Any]) -> Dict[str, Any]:
        message = await self.dispatcher.start_session(origin=websocket)
        return {"type": "browser_started", "message": message}

    async def _handle_stop(self, websocket: ServerConnection, payload: Dict[str, Any]) -> Dict[str, Any]:
        message = await self.dispatcher.stop_session(origin=websocket)
        return {"type": "browser_stopped", "message": message}

    async def _handle_restart(self, websocket: ServerConnection, payload: Dict[str, Any]) -> Dict[str, Any]:
        message = await self.dispatcher.restart_session(origin=websocket)
        return {"type": "browser_restarted", "message": message}

    async def _handle_command(self, websocket: ServerConnection, payload: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.dispatcher.execute(payload.get("data"), origin=websocket)
        return {"type": "command_result", "data": result.to_dict()}

    async def _handle_status(self, websocket: ServerConnection, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"type": "status", "data": await self.dispatcher.status()}

    def _error_response(self, message_id: Optional[Any], message: str) -> Dict[str, Any]:
        response: Dict[str, Any] = {"type": "error", "error": message}
        if message_id is not None:
            response["id"] = message_id
        return response


def _format_peer(address: Any) -> str:
    if isinstance(address, (tuple, list)) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)
