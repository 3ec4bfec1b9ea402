"""
Protocol data models shared by the session manager, dispatcher and transports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..errors import MalformedCommandError, UnsupportedCommandError, WargError


class SessionState(Enum):
    """Browser session lifecycle state"""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSING = "closing"


class CommandKind(Enum):
    """Browser command type"""
    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    SCREENSHOT = "screenshot"
    EVALUATE = "evaluate"
    RELOAD = "reload"
    BACK = "back"
    FORWARD = "forward"


class NotificationKind(Enum):
    """Broadcast notification type (the wire ``type`` value)"""
    SESSION_STARTED = "browser_started"
    SESSION_STOPPED = "browser_stopped"
    SESSION_RESTARTED = "browser_restarted"
    COMMAND_EXECUTED = "command_executed"
    ERROR = "error"


# Payload fields that must be present, and whether an empty string is allowed.
REQUIRED_FIELDS: Dict[CommandKind, Tuple[Tuple[str, bool], ...]] = {
    CommandKind.NAVIGATE: (("url", False),),
    CommandKind.CLICK: (("selector", False),),
    CommandKind.TYPE: (("selector", False), ("text", True)),
    CommandKind.EVALUATE: (("script", False),),
}


@dataclass(frozen=True)
class CommandEnvelope:
    """A validated command request"""
    kind: CommandKind
    payload: Dict[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "CommandEnvelope":
        """Validate a wire envelope ``{"type", "data"?, "id"?}``.

        Raises MalformedCommandError for a wrong shape and
        UnsupportedCommandError for a command type outside the fixed set.
        """
        if not isinstance(raw, dict):
            raise MalformedCommandError("Command must be a JSON object")

        kind_value = raw.get("type", raw.get("kind"))
        if kind_value is None or kind_value == "":
            raise MalformedCommandError("Command type is required")
        if not isinstance(kind_value, str):
            raise MalformedCommandError("Command type must be a string")
        try:
            kind = CommandKind(kind_value)
        except ValueError:
            raise UnsupportedCommandError(f"Unknown command type: {kind_value}") from None

        payload = raw.get("data", raw.get("payload"))
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise MalformedCommandError(f"'{kind.value}' command data must be an object")

        for name, allow_empty in REQUIRED_FIELDS.get(kind, ()):
            value = payload.get(name)
            if not isinstance(value, str) or (not allow_empty and not value):
                raise MalformedCommandError(f"'{kind.value}' command requires '{name}'")

        correlation_id = raw.get("id")
        return cls(
            kind=kind,
            payload=dict(payload),
            correlation_id=str(correlation_id) if correlation_id is not None else None,
        )

    @property
    def full_page(self) -> bool:
        return bool(self.payload.get("fullPage", self.payload.get("full_page", False)))


@dataclass
class CommandResult:
    """Uniform outcome of a command"""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[Any] = None) -> "CommandResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: WargError) -> "CommandResult":
        return cls(success=False, error=str(error), code=error.code)

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error, "code": self.code}
        result: Dict[str, Any] = {"success": True}
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class Notification:
    """Broadcast event derived from a lifecycle transition or a command"""
    kind: NotificationKind
    data: Optional[Dict[str, Any]] = None

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"type": self.kind.value}
        if self.data is not None:
            message["data"] = self.data
        return message
