"""WebSocket client - synchronous API over the async websockets client, used by the CLI"""

import asyncio
import json
import logging
import uuid
from typing import Any, Callable, Dict, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from ..server.loop_bridge import AsyncBridge


class WebSocketClient:
    """WebSocket client"""

    def __init__(self, url: str, timeout: float = 60.0):
        self.url = url
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        # The event loop thread is created lazily, only when a request is made.
        self._bridge: Optional[AsyncBridge] = None

    def _run_coroutine(self, coro):
        """Run a coroutine on the client loop and wait for its result"""
        if self._bridge is None:
            self._bridge = AsyncBridge.start_background(name="WebSocketClientLoop")
        return self._bridge.run(coro)

    def close(self) -> None:
        if self._bridge is not None:
            self._bridge.stop()
            self._bridge = None

    def request(self, message_type: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send one message and wait for the response carrying the same id"""
        return self._run_coroutine(self._request(message_type, data))

    def send_command(self, command_type: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a browser command and return its Command Result"""
        envelope: Dict[str, Any] = {"type": command_type}
        if data:
            envelope["data"] = data
        response = self.request("command", envelope)
        if response.get("type") == "error":
            return {"success": False, "error": response.get("error")}
        return response.get("data", {})

    def listen(self, on_message: Callable[[Dict[str, Any]], None]) -> None:
        """Print-style observer loop: hand every incoming message to ``on_message``"""
        self._run_coroutine(self._listen(on_message))

    async def _request(self, message_type: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        request_id = uuid.uuid4().hex
        message: Dict[str, Any] = {"type": message_type, "id": request_id}
        if data is not None:
            message["data"] = data

        async with connect(self.url, open_timeout=self.timeout) as websocket:
            await websocket.send(json.dumps(message))
            return await asyncio.wait_for(self._wait_for_reply(websocket, request_id), self.timeout)

    async def _wait_for_reply(self, websocket: ClientConnection, request_id: str) -> Dict[str, Any]:
        while True:
            raw = await websocket.recv()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                self.logger.warning("Invalid JSON message: %s", raw)
                continue
            if data.get("id") == request_id:
                return data
            # Connect-time status snapshot and notifications caused by other clients.
            self.logger.debug("Skipping unrelated message: %s", data.get("type"))

    async def _listen(self, on_message: Callable[[Dict[str, Any]], None]) -> None:
        try:
            async with connect(self.url, open_timeout=self.timeout) as websocket:
                async for raw in websocket:
                    try:
                        on_message(json.loads(raw))
                    except json.JSONDecodeError:
                        self.logger.warning("Invalid JSON message: %s", raw)
        except ConnectionClosed:
            self.logger.info("WebSocket connection closed")
