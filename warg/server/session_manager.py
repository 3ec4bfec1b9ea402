"""
Session manager that owns the single browser session shared by all clients.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..browser_interface import SessionDriver, SessionHandle
from ..errors import CommandFailedError, LifecycleError, NotReadyError, UnsupportedCommandError
from .models import CommandEnvelope, CommandKind, CommandResult, SessionState

Operation = Callable[[SessionHandle, CommandEnvelope], Awaitable[Optional[Dict[str, Any]]]]


class SessionManager:
    """Drives the session through uninitialized -> initializing -> ready -> closing.

    State only changes between suspension points, so a caller arriving while a
    launch or teardown is awaited always sees INITIALIZING or CLOSING and
    never starts a second one. The handle is set exactly while READY.
    """

    def __init__(self, driver: SessionDriver, timeout: float = 30.0):
        self.driver = driver
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

        self._state = SessionState.UNINITIALIZED
        self._handle: Optional[SessionHandle] = None
        self._settled: Optional[asyncio.Event] = None

        self._operations: Dict[CommandKind, Operation] = {
            CommandKind.NAVIGATE: SessionManager._navigate,
            CommandKind.CLICK: SessionManager._click,
            CommandKind.TYPE: SessionManager._type,
            CommandKind.SCREENSHOT: SessionManager._screenshot,
            CommandKind.EVALUATE: SessionManager._evaluate,
            CommandKind.RELOAD: SessionManager._reload,
            CommandKind.BACK: SessionManager._back,
            CommandKind.FORWARD: SessionManager._forward,
        }

    @property
    def state(self) -> SessionState:
        return self._state

    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    # --- Lifecycle ---------------------------------------------------------------

    async def initialize(self) -> bool:
        """Launch the browser.

        Returns True once the session is ready, or False when another launch
        is already in flight (its outcome shows up in later state queries).
        Raises LifecycleError if this call's launch fails or times out.
        """
        while self._state is SessionState.CLOSING:
            await self._wait_settled()

        if self._state is SessionState.READY:
            self.logger.warning("Browser already initialized")
            return True
        if self._state is SessionState.INITIALIZING:
            self.logger.warning("Browser initialization already in progress")
            return False

        self._begin(SessionState.INITIALIZING)
        self.logger.info("Initializing browser (timeout=%.1fs)", self.timeout)
        try:
            handle = await asyncio.wait_for(self.driver.launch(self._on_driver_event), self.timeout)
        except asyncio.TimeoutError as exc:
            self._end(SessionState.UNINITIALIZED)
            self.logger.error("Browser launch timed out after %.1fs", self.timeout)
            raise LifecycleError(f"Browser launch timed out after {self.timeout:g}s") from exc
        except asyncio.CancelledError:
            self._end(SessionState.UNINITIALIZED)
            raise
        except Exception as exc:
            self._end(SessionState.UNINITIALIZED)
            self.logger.error("Failed to initialize browser: %s", exc)
            raise LifecycleError(f"Failed to launch browser: {exc}") from exc

        self._handle = handle
        self._end(SessionState.READY)
        self.logger.info("Browser initialized successfully")
        return True

    async def close(self) -> None:
        """Close the browser; a no-op when nothing is running.

        Teardown is best effort: the state always ends UNINITIALIZED and any
        release failures are raised afterwards as a single LifecycleError.
        """
        while self._state is not SessionState.READY:
            if self._state is SessionState.UNINITIALIZED:
                self.logger.debug("Browser not running, nothing to close")
                return
            was_closing = self._state is SessionState.CLOSING
            await self._wait_settled()
            if was_closing:
                return

        handle, self._handle = self._handle, None
        self._begin(SessionState.CLOSING)
        self.logger.info("Closing browser")

        errors: List[str] = []
        try:
            for label, release in (("page", handle.close_page), ("browser", handle.close)):
                try:
                    await asyncio.wait_for(release(), self.timeout)
                except Exception as exc:
                    self.logger.error("Error closing browser %s: %s", label, str(exc) or type(exc).__name__)
                    errors.append(f"{label}: {str(exc) or type(exc).__name__}")
        finally:
            self._end(SessionState.UNINITIALIZED)

        if errors:
            raise LifecycleError("Error closing browser (" + "; ".join(errors) + ")")
        self.logger.info("Browser closed successfully")

    # --- Commands ----------------------------------------------------------------

    async def execute_command(self, envelope: CommandEnvelope) -> CommandResult:
        """Run one command against the live page; failures come back as results."""
        if self._state is not SessionState.READY:
            return CommandResult.failure(NotReadyError("Browser not initialized"))

        operation = self._operations.get(envelope.kind)
        if operation is None:
            return CommandResult.failure(UnsupportedCommandError(f"Unknown command type: {envelope.kind}"))

        self.logger.info(
            "Executing browser command: %s %s", envelope.kind.value, _preview(envelope.payload)
        )
        try:
            data = await asyncio.wait_for(operation(self._handle, envelope), self.timeout)
        except asyncio.TimeoutError:
            self.logger.error("Browser command timed out: %s after %.1fs", envelope.kind.value, self.timeout)
            return CommandResult.failure(CommandFailedError(f"Command timed out after {self.timeout:g}s"))
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            self.logger.error("Browser command failed: %s: %s", envelope.kind.value, message)
            return CommandResult.failure(CommandFailedError(message))
        return CommandResult.ok(data)

    async def get_info(self) -> Optional[Dict[str, Any]]:
        """Title and URL of the current page, or None when unavailable."""
        if self._state is not SessionState.READY:
            return None
        try:
            return await asyncio.wait_for(self._handle.page_info(), self.timeout)
        except asyncio.TimeoutError:
            self.logger.error("Page info timed out after %.1fs", self.timeout)
            return None
        except Exception as exc:
            self.logger.error("Failed to get page info: %s", exc)
            return None

    # --- Internals ---------------------------------------------------------------

    def _begin(self, state: SessionState) -> None:
        self._settled = asyncio.Event()
        self._set_state(state)

    def _end(self, state: SessionState) -> None:
        self._set_state(state)
        if self._settled is not None:
            self._settled.set()

    def _set_state(self, state: SessionState) -> None:
        self.logger.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state

    async def _wait_settled(self) -> None:
        settled = self._settled
        if settled is not None:
            await settled.wait()

    def _on_driver_event(self, event: str, details: Dict[str, Any]) -> None:
        if event == "console":
            self.logger.debug("Browser console [%s]: %s", details.get("type"), details.get("text"))
        elif event == "pageerror":
            self.logger.error("Page script error: %s", details.get("error"))
        elif event == "crash":
            self.logger.error("Browser page crashed")
        else:
            self.logger.debug("Browser event %s: %s", event, details)

    @staticmethod
    async def _navigate(handle: SessionHandle, envelope: CommandEnvelope) -> Dict[str, Any]:
        return {"url": await handle.navigate(envelope.payload["url"])}

    @staticmethod
    async def _click(handle: SessionHandle, envelope: CommandEnvelope) -> None:
        await handle.click(envelope.payload["selector"])

    @staticmethod
    async def _type(handle: SessionHandle, envelope: CommandEnvelope) -> None:
        await handle.type(envelope.payload["selector"], envelope.payload["text"])

    @staticmethod
    async def _screenshot(handle: SessionHandle, envelope: CommandEnvelope) -> Dict[str, Any]:
        return {"screenshot": await handle.screenshot(full_page=envelope.full_page)}

    @staticmethod
    async def _evaluate(handle: SessionHandle, envelope: CommandEnvelope) -> Dict[str, Any]:
        return {"result": await handle.evaluate(envelope.payload["script"])}

    @staticmethod
    async def _reload(handle: SessionHandle, envelope: CommandEnvelope) -> Dict[str, Any]:
        return {"url": await handle.reload()}

    @staticmethod
    async def _back(handle: SessionHandle, envelope: CommandEnvelope) -> Dict[str, Any]:
        return {"url": await handle.back()}

    @staticmethod
    async def _forward(handle: SessionHandle, envelope: CommandEnvelope) -> Dict[str, Any]:
        return {"url": await handle.forward()}


def _preview(payload: Dict[str, Any], limit: int = 100) -> str:
    if not payload:
        return ""
    try:
        text = json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = repr(payload)
    return text[:limit]
