"""Session registry: the single source of truth for who is connected to what."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from shellgate.errors import ErrorKind, ShellError
from shellgate.services.connection import (
    EventKind,
    EventListener,
    RemoteShellConnection,
    ShellEvent,
)
from shellgate.services.session import (
    ConnectionConfig,
    Session,
    SessionStatus,
    ShellResult,
    utcnow,
)

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], RemoteShellConnection]

_TICK = timedelta(microseconds=1)


@dataclass
class _Entry:
    session: Session
    connection: RemoteShellConnection
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    closed: asyncio.Event = field(default_factory=asyncio.Event)


class SessionRegistry:
    """Maps client identities to (session, connection) pairs.

    Map mutations happen without awaiting, so they are atomic with respect
    to other tasks. I/O on one session is serialised by that entry's lock
    and never blocks operations on other identities. Entries being torn
    down are kept in ``_closing`` until their connection is fully closed.
    """

    def __init__(self, connection_factory: ConnectionFactory):
        """Initialize the registry.

        Args:
            connection_factory: Callable returning a fresh, unconnected connection
        """
        self._connection_factory = connection_factory
        self._sessions: dict[str, _Entry] = {}
        self._closing: dict[str, _Entry] = {}
        self._pending: set[str] = set()
        self._creates: set[asyncio.Event] = set()
        self._closed = False

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    async def create_session(
        self,
        client_id: str,
        config: ConnectionConfig,
        listener: Optional[EventListener] = None,
    ) -> ShellResult[Session]:
        """Connect a new session for ``client_id``.

        Args:
            client_id: Identity of the owning gateway client
            config: Connection parameters
            listener: Optional async callable receiving the connection's events

        Returns:
            Result holding the connected session, or a classified failure
        """
        errors = config.validate()
        if errors:
            return ShellResult.fail("; ".join(errors), ErrorKind.CONFIG_INVALID)

        if self._closed:
            return ShellResult.fail("Server is shutting down", ErrorKind.CONNECT_FAILED)

        if client_id in self._sessions or client_id in self._pending:
            logger.warning("Rejecting duplicate session request for client %s", client_id)
            return ShellResult.fail("A session is already active for this client", ErrorKind.SESSION_EXISTS)

        self._pending.add(client_id)
        done = asyncio.Event()
        self._creates.add(done)
        try:
            logger.info(
                "Creating SSH session for client %s to %s:%d",
                client_id, config.host, config.port,
            )

            session = Session(client_id=client_id, config=config)
            connection = self._connection_factory()
            connection.add_listener(self._session_listener(session))
            if listener is not None:
                connection.add_listener(listener)

            try:
                await connection.connect(config)
            except ShellError as e:
                self._set_status(session, SessionStatus.ERROR)
                logger.warning(
                    "Failed to create SSH session for %s:%d: %s",
                    config.host, config.port, e,
                )
                return ShellResult.fail(f"Connection failed: {e}", e.kind)
            except asyncio.CancelledError:
                await connection.disconnect()
                raise

            if self._closed:
                # Never published, so the caller's listener does not hear the close
                logger.info("Closing session for client %s opened during shutdown", client_id)
                if listener is not None:
                    connection.remove_listener(listener)
                self._set_status(session, SessionStatus.DISCONNECTING)
                await connection.disconnect()
                self._set_status(session, SessionStatus.DISCONNECTED)
                return ShellResult.fail("Server is shutting down", ErrorKind.CONNECT_FAILED)

            now = utcnow()
            session.connected_at = now
            session.last_activity = max(now, session.last_activity)
            session.connected = True
            self._set_status(session, SessionStatus.CONNECTED)
            self._sessions[client_id] = _Entry(session, connection)
        finally:
            self._pending.discard(client_id)
            self._creates.discard(done)
            done.set()

        logger.info("SSH session %s connected for client %s", session.session_id, client_id)
        return ShellResult.ok(session)

    def get_session(self, client_id: str) -> Optional[Session]:
        entry = self._sessions.get(client_id)
        return entry.session if entry else None

    def get_connection(self, client_id: str) -> Optional[RemoteShellConnection]:
        entry = self._sessions.get(client_id)
        return entry.connection if entry else None

    async def send_input(self, client_id: str, data: str) -> ShellResult[None]:
        """Forward input to the session's stream and record activity."""
        entry = self._sessions.get(client_id)
        if entry is None:
            return ShellResult.fail("Session not found", ErrorKind.SESSION_NOT_FOUND)

        if not entry.connection.is_connected:
            return ShellResult.fail("Session is not connected", ErrorKind.NOT_CONNECTED)

        try:
            async with entry.lock:
                await entry.connection.write(data)
                self._touch(entry.session)
        except ShellError as e:
            logger.error("Failed to send input to session %s: %s", entry.session.session_id, e)
            return ShellResult.fail(str(e), e.kind)

        return ShellResult.ok()

    async def resize_terminal(self, client_id: str, columns: int, rows: int) -> ShellResult[None]:
        """Resize the session's terminal and record activity."""
        if columns < 1 or rows < 1:
            return ShellResult.fail("columns and rows must be positive", ErrorKind.CONFIG_INVALID)

        entry = self._sessions.get(client_id)
        if entry is None:
            return ShellResult.fail("Session not found", ErrorKind.SESSION_NOT_FOUND)

        if not entry.connection.is_connected:
            return ShellResult.fail("Session is not connected", ErrorKind.NOT_CONNECTED)

        try:
            async with entry.lock:
                await entry.connection.resize(columns, rows)
                self._touch(entry.session)
        except ShellError as e:
            logger.error("Failed to resize terminal for session %s: %s", entry.session.session_id, e)
            return ShellResult.fail(str(e), e.kind)

        return ShellResult.ok()

    async def disconnect_session(self, client_id: str) -> None:
        """Remove the session and tear down its connection.

        Returns once the connection is fully closed, including when another
        caller started the teardown. Never raises for teardown failures.
        """
        entry = self._sessions.pop(client_id, None)
        if entry is None:
            closing = self._closing.get(client_id)
            # The read task cannot wait on a teardown that is waiting for it
            if closing is not None and not closing.connection.in_read_loop:
                await closing.closed.wait()
            return

        self._closing[client_id] = entry
        session = entry.session
        logger.info("Disconnecting session %s", session.session_id)
        self._set_status(session, SessionStatus.DISCONNECTING)

        try:
            async with entry.lock:
                await entry.connection.disconnect()
        except Exception:
            logger.exception("Error disconnecting session %s", session.session_id)
        finally:
            session.connected = False
            self._set_status(session, SessionStatus.DISCONNECTED)
            if self._closing.get(client_id) is entry:
                del self._closing[client_id]
            entry.closed.set()

    def list_active_sessions(self) -> list[Session]:
        """Snapshot of registered sessions."""
        return [replace(entry.session) for entry in list(self._sessions.values())]

    async def reap_inactive(self, threshold: timedelta, now: Optional[datetime] = None) -> list[str]:
        """Disconnect every session idle for longer than ``threshold``.

        Each candidate is checked again just before it is torn down, so a
        session touched or replaced while earlier ones were closing is kept.
        A fixed ``now`` is used for every check when given; otherwise the
        clock is read per candidate.

        Returns:
            Client identities that were disconnected
        """
        scan_time = now or utcnow()
        candidates = [
            (client_id, entry)
            for client_id, entry in list(self._sessions.items())
            if scan_time - entry.session.last_activity > threshold
        ]

        reaped = []
        for client_id, entry in candidates:
            if self._sessions.get(client_id) is not entry:
                continue
            check_time = now or utcnow()
            if check_time - entry.session.last_activity <= threshold:
                continue
            logger.info("Cleaning up inactive session for client %s", client_id)
            await self.disconnect_session(client_id)
            reaped.append(client_id)

        return reaped

    async def shutdown(self) -> None:
        """Disconnect all sessions and refuse new ones.

        Waits for creates still connecting (they close instead of
        registering) and for teardowns started elsewhere.
        """
        self._closed = True
        while self._sessions or self._creates or self._closing:
            if self._sessions:
                logger.info("Closing %d active session(s)", len(self._sessions))
            waits = [self.disconnect_session(client_id) for client_id in list(self._sessions)]
            waits += [done.wait() for done in list(self._creates)]
            waits += [entry.closed.wait() for entry in list(self._closing.values())]
            await asyncio.gather(*waits, return_exceptions=True)

    def _session_listener(self, session: Session) -> EventListener:
        """Bookkeeping listener; the read loop is its only caller."""

        async def on_event(event: ShellEvent) -> None:
            if event.kind == EventKind.DATA:
                self._touch(session)
            elif event.kind == EventKind.ERROR:
                logger.error("SSH error on session %s: %s", session.session_id, event.data)
                self._set_status(session, SessionStatus.ERROR)
                session.connected = False
            elif event.kind == EventKind.CLOSED:
                logger.info("SSH stream closed for session %s", session.session_id)
                if session.status == SessionStatus.CONNECTED:
                    self._set_status(session, SessionStatus.DISCONNECTED)
                session.connected = False

        return on_event

    @staticmethod
    def _touch(session: Session) -> None:
        now = utcnow()
        if now <= session.last_activity:
            now = session.last_activity + _TICK
        session.last_activity = now

    @staticmethod
    def _set_status(session: Session, status: SessionStatus) -> None:
        if session.status.can_transition_to(status):
            session.status = status
