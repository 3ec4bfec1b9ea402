"""
Abstract browser interfaces
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

# (event name, details) -> None; used for console messages and page errors.
EventSink = Callable[[str, Dict[str, Any]], None]


class SessionHandle(ABC):
    """One launched browser with a single active page"""

    @abstractmethod
    async def navigate(self, url: str) -> str:
        """Navigate and return the URL after the page settles"""

    @abstractmethod
    async def click(self, selector: str) -> None:
        """Click on element"""

    @abstractmethod
    async def type(self, selector: str, text: str) -> None:
        """Type text into element"""

    @abstractmethod
    async def screenshot(self, full_page: bool = False) -> str:
        """Capture the page as a base64 encoded PNG"""

    @abstractmethod
    async def evaluate(self, script: str) -> Any:
        """Evaluate script in the page"""

    @abstractmethod
    async def reload(self) -> str:
        pass

    @abstractmethod
    async def back(self) -> str:
        pass

    @abstractmethod
    async def forward(self) -> str:
        pass

    @abstractmethod
    async def page_info(self) -> Dict[str, Any]:
        """Get page title and URL"""

    @abstractmethod
    async def close_page(self) -> None:
        """Close the active page"""

    @abstractmethod
    async def close(self) -> None:
        """Close browser"""


class SessionDriver(ABC):
    """Abstract browser launcher"""

    @abstractmethod
    async def launch(self, on_event: Optional[EventSink] = None) -> SessionHandle:
        """Launch a browser and open its page"""
