"""
Command line interface for the Warg server.
"""

from .websocket_client import WebSocketClient

__all__ = ["WebSocketClient"]
