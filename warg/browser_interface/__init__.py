"""
Browser drivers used by the session manager.
"""

from .abstract_browser import EventSink, SessionDriver, SessionHandle
from .chromium_browser import ChromiumSessionDriver, ChromiumSessionHandle

__all__ = [
    "EventSink",
    "SessionDriver",
    "SessionHandle",
    "ChromiumSessionDriver",
    "ChromiumSessionHandle",
]
