"""Session data types shared by the connection and registry layers."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from shellgate.errors import ErrorKind

T = TypeVar("T")

DEFAULT_TERMINAL_TYPE = "xterm-256color"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConnectionConfig:
    """Parameters for one remote shell connection.

    When ``private_key`` is set it is used for authentication and
    ``password`` is ignored.
    """

    host: str
    username: str
    port: int = 22
    password: Optional[str] = field(default=None, repr=False)
    private_key: Optional[str] = field(default=None, repr=False)
    private_key_passphrase: Optional[str] = field(default=None, repr=False)
    timeout: float = 20.0
    terminal_type: str = DEFAULT_TERMINAL_TYPE
    columns: int = 80
    rows: int = 24

    @property
    def has_private_key(self) -> bool:
        return bool(self.private_key)

    def validate(self) -> list[str]:
        """Validate the configuration and return list of errors."""
        errors = []

        if not self.host or not self.host.strip():
            errors.append("host is required")

        if not self.username or not self.username.strip():
            errors.append("username is required")

        if not isinstance(self.port, int) or self.port < 1 or self.port > 65535:
            errors.append("port must be between 1 and 65535")

        if self.timeout <= 0:
            errors.append("timeout must be positive")

        if self.columns < 1 or self.rows < 1:
            errors.append("columns and rows must be positive")

        if not self.terminal_type:
            errors.append("terminal_type is required")

        return errors


class SessionStatus(str, Enum):
    """Lifecycle state of a session."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    DISCONNECTED = "disconnected"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.DISCONNECTED, SessionStatus.ERROR)

    def can_transition_to(self, target: "SessionStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    SessionStatus.CONNECTING: {SessionStatus.CONNECTED, SessionStatus.ERROR, SessionStatus.DISCONNECTING},
    # remote-initiated close goes straight to DISCONNECTED
    SessionStatus.CONNECTED: {SessionStatus.DISCONNECTING, SessionStatus.DISCONNECTED, SessionStatus.ERROR},
    SessionStatus.DISCONNECTING: {SessionStatus.DISCONNECTED},
    SessionStatus.DISCONNECTED: set(),
    SessionStatus.ERROR: set(),
}


@dataclass
class Session:
    """One client's binding to one remote host.

    Owned by the session registry; callers treat it as read-only.
    """

    client_id: str
    config: ConnectionConfig
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    connected_at: Optional[datetime] = None
    last_activity: datetime = field(default_factory=utcnow)
    connected: bool = False
    status: SessionStatus = SessionStatus.CONNECTING

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization (no credentials)."""
        return {
            "session_id": self.session_id,
            "client_id": self.client_id,
            "host": self.config.host,
            "port": self.config.port,
            "username": self.config.username,
            "created_at": self.created_at.isoformat(),
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "last_activity": self.last_activity.isoformat(),
            "connected": self.connected,
            "status": self.status.value,
        }


@dataclass
class ShellResult(Generic[T]):
    """Outcome of a registry operation."""

    success: bool
    data: Optional[T] = None
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "ShellResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str, kind: ErrorKind) -> "ShellResult[T]":
        return cls(success=False, error_message=message, error_kind=kind)
