"""
Routes client requests to the session manager and announces the outcome.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..errors import LifecycleError, MalformedCommandError, UnsupportedCommandError
from .client_registry import ClientRegistry
from .models import CommandEnvelope, CommandResult, Notification, NotificationKind
from .session_manager import SessionManager


class CommandDispatcher:
    """Shared by both transports.

    ``origin`` is the observer that issued the request; it gets the direct
    response from its transport and is left out of the broadcast. Requests
    from the HTTP API have no origin, so every observer is notified.
    """

    def __init__(self, session_manager: SessionManager, registry: ClientRegistry):
        self.session_manager = session_manager
        self.registry = registry
        self.logger = logging.getLogger(__name__)

    async def execute(self, raw: Any, origin: Optional[Any] = None) -> CommandResult:
        try:
            envelope = CommandEnvelope.from_dict(raw)
        except (MalformedCommandError, UnsupportedCommandError) as exc:
            self.logger.warning("Rejected command: %s", exc)
            result = CommandResult.failure(exc)
            command = raw.get("type", raw.get("kind")) if isinstance(raw, dict) else None
        else:
            result = await self.session_manager.execute_command(envelope)
            command = envelope.kind.value

        self.logger.info("Command executed: %s (success=%s)", command, result.success)
        await self.registry.broadcast(
            Notification(
                NotificationKind.COMMAND_EXECUTED,
                {"command": command, "result": result.to_dict()},
            ),
            exclude=origin,
        )
        return result

    async def start_session(self, origin: Optional[Any] = None) -> str:
        try:
            started = await self.session_manager.initialize()
        except LifecycleError as exc:
            await self._announce_failure("browser_start", exc, origin)
            raise
        if not started:
            return "Browser start already in progress"

        await self.registry.broadcast(Notification(NotificationKind.SESSION_STARTED), exclude=origin)
        return "Browser started"

    async def stop_session(self, origin: Optional[Any] = None) -> str:
        try:
            await self.session_manager.close()
        finally:
            # close() always leaves the session stopped, even when teardown failed.
            await self.registry.broadcast(Notification(NotificationKind.SESSION_STOPPED), exclude=origin)
        return "Browser stopped"

    async def restart_session(self, origin: Optional[Any] = None) -> str:
        try:
            await self.session_manager.close()
        except LifecycleError as exc:
            self.logger.warning("Ignoring teardown failure during restart: %s", exc)

        try:
            started = await self.session_manager.initialize()
        except LifecycleError as exc:
            await self._announce_failure("browser_restart", exc, origin)
            raise
        if not started:
            return "Browser start already in progress"

        await self.registry.broadcast(Notification(NotificationKind.SESSION_RESTARTED), exclude=origin)
        return "Browser restarted"

    async def status(self) -> Dict[str, Any]:
        return {
            "initialized": self.session_manager.is_ready(),
            "pageInfo": await self.session_manager.get_info(),
            "connectedClients": self.registry.count,
        }

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "browserReady": self.session_manager.is_ready(),
        }

    async def _announce_failure(self, action: str, error: Exception, origin: Optional[Any]) -> None:
        await self.registry.broadcast(
            Notification(NotificationKind.ERROR, {"action": action, "error": str(error)}),
            exclude=origin,
        )
