"""
Registry of connected WebSocket observers and message fan-out.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from websockets.exceptions import ConnectionClosed

from .models import Notification

if TYPE_CHECKING:
    from .session_manager import SessionManager


class ClientRegistry:
    """Tracks live observers; any object with an async ``send(str)`` qualifies.

    The set only changes through register/unregister, which the transport
    calls on connect and disconnect. A failed send never removes an observer.
    """

    def __init__(self, session_manager: "SessionManager"):
        self.session_manager = session_manager
        self.logger = logging.getLogger(__name__)
        self._clients: Set[Any] = set()

    @property
    def count(self) -> int:
        return len(self._clients)

    def __contains__(self, observer: Any) -> bool:
        return observer in self._clients

    async def register(self, observer: Any) -> None:
        self._clients.add(observer)
        self.logger.info("Client registered (total=%d)", self.count)
        await self.unicast(observer, self.snapshot())

    def unregister(self, observer: Any) -> None:
        if observer in self._clients:
            self._clients.discard(observer)
            self.logger.info("Client unregistered (total=%d)", self.count)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "type": "status",
            "data": {
                "initialized": self.session_manager.is_ready(),
                "connectedClients": self.count,
            },
        }

    async def unicast(self, observer: Any, message: Dict[str, Any]) -> bool:
        """Send to one observer; returns False if it has already disconnected."""
        return await self._deliver(observer, json.dumps(message, default=str))

    async def broadcast(self, message: Any, exclude: Optional[Any] = None) -> int:
        """Send to every live observer except ``exclude``; returns the delivery count."""
        if isinstance(message, Notification):
            message = message.to_message()
        targets = [client for client in list(self._clients) if client is not exclude]
        if not targets:
            return 0

        payload = json.dumps(message, default=str)
        delivered = await asyncio.gather(*(self._deliver(client, payload) for client in targets))
        self.logger.debug(
            "Broadcast %s to %d/%d clients", message.get("type"), sum(delivered), len(targets)
        )
        return sum(delivered)

    async def _deliver(self, observer: Any, payload: str) -> bool:
        try:
            await observer.send(payload)
        except ConnectionClosed:
            self.logger.debug("Dropping message for disconnected client")
            return False
        except Exception as exc:
            self.logger.warning("Failed to send message to client: %s", exc)
            return False
        return True
