"""
Warg server package.

Provides the browser session manager, the command dispatcher, the observer
registry and the two transports (asyncio WebSocket server and Flask REST API).
"""

from .client_registry import ClientRegistry
from .dispatcher import CommandDispatcher
from .session_manager import SessionManager
from .websocket_server import WebSocketServer
from .app import WargServer, serve

__all__ = [
    "ClientRegistry",
    "CommandDispatcher",
    "SessionManager",
    "WebSocketServer",
    "WargServer",
    "serve",
]
