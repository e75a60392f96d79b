"""Session lifecycle services."""

from shellgate.services.connection import EventKind, RemoteShellConnection, ShellEvent
from shellgate.services.reaper import InactivityReaper
from shellgate.services.registry import SessionRegistry
from shellgate.services.session import ConnectionConfig, Session, SessionStatus, ShellResult

__all__ = [
    "ConnectionConfig",
    "EventKind",
    "InactivityReaper",
    "RemoteShellConnection",
    "Session",
    "SessionRegistry",
    "SessionStatus",
    "ShellEvent",
    "ShellResult",
]
