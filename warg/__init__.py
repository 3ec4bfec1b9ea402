"""
Warg: remote control for a single managed browser session.

Clients drive the browser over a WebSocket channel or a REST API and every
connected observer is notified of lifecycle changes and executed commands.
"""

__version__ = "1.0.0"
