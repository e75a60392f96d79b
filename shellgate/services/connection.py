"""Remote shell connection: one transport, one interactive stream, one read loop."""

import asyncio
import codecs
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from shellgate.errors import (
    ConnectTimeoutError,
    NotConnectedError,
    ShellError,
    ShellIOError,
    StreamUnavailableError,
)
from shellgate.providers.base import ShellProvider, ShellStream, ShellTransport
from shellgate.services.session import ConnectionConfig

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 4096


class EventKind(str, Enum):
    """Kinds of event emitted by a connection."""

    DATA = "data"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True)
class ShellEvent:
    """Event emitted by a connection to its listeners."""

    kind: EventKind
    data: str = ""


EventListener = Callable[[ShellEvent], Awaitable[None]]


class RemoteShellConnection:
    """Owns one remote shell transport and its interactive stream.

    Output is read by a dedicated task and delivered to listeners in
    order as ``data`` events. A ``closed`` event is emitted exactly once,
    always last, when the read loop exits.
    """

    def __init__(self, provider: ShellProvider, read_size: int = DEFAULT_READ_SIZE):
        """Initialize the connection.

        Args:
            provider: The remote shell provider to connect through
            read_size: Maximum bytes per read from the stream
        """
        self.provider = provider
        self.read_size = read_size
        self._transport: Optional[ShellTransport] = None
        self._stream: Optional[ShellStream] = None
        self._read_task: Optional[asyncio.Task] = None
        self._listeners: list[EventListener] = []
        self._write_lock = asyncio.Lock()
        self._closed = False
        self._closed_emitted = False
        self._disconnected = False

    def add_listener(self, listener: EventListener) -> None:
        """Register an async callable to receive events."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def is_connected(self) -> bool:
        """Whether the stream is open and the read loop has not exited."""
        return self._stream is not None and not self._closed

    @property
    def in_read_loop(self) -> bool:
        """Whether the caller is running inside this connection's read task."""
        return self._read_task is not None and asyncio.current_task() is self._read_task

    async def connect(self, config: ConnectionConfig) -> None:
        """Connect, authenticate and open the interactive stream.

        On failure nothing is left open and the error is re-raised.

        Raises:
            ShellError: Classified connection failure
        """
        if self._stream is not None or self._disconnected:
            raise StreamUnavailableError("Connection has already been used")

        credential = "private key" if config.has_private_key else "password"
        logger.debug(
            "Connecting to %s:%d as %s using %s",
            config.host, config.port, config.username, credential,
        )

        transport: Optional[ShellTransport] = None
        try:
            transport = await asyncio.wait_for(
                self.provider.connect(
                    config.host,
                    config.port,
                    config.username,
                    password=None if config.has_private_key else config.password,
                    private_key=config.private_key if config.has_private_key else None,
                    passphrase=config.private_key_passphrase,
                ),
                timeout=config.timeout,
            )
            stream = await asyncio.wait_for(
                transport.open_stream(config.terminal_type, config.columns, config.rows),
                timeout=config.timeout,
            )
        except (asyncio.TimeoutError, TimeoutError) as e:
            await self._close_transport(transport)
            raise ConnectTimeoutError(
                f"Connection to {config.host}:{config.port} timed out after {config.timeout:g}s"
            ) from e
        except ShellError:
            await self._close_transport(transport)
            raise
        except asyncio.CancelledError:
            await self._close_transport(transport)
            raise
        except Exception as e:
            await self._close_transport(transport)
            raise StreamUnavailableError(f"Failed to open shell: {e}") from e

        self._transport = transport
        self._stream = stream
        self._read_task = asyncio.create_task(self._read_loop(), name=f"shell-read-{config.host}")
        logger.info("Shell opened on %s:%d (%dx%d)", config.host, config.port, config.columns, config.rows)

    async def write(self, data: str) -> None:
        """Encode and write input to the stream.

        Raises:
            NotConnectedError: If the connection is closed
            ShellIOError: If the write fails
        """
        if not self.is_connected:
            raise NotConnectedError("Shell stream is not available")

        async with self._write_lock:
            if not self.is_connected:
                raise NotConnectedError("Shell stream is not available")
            try:
                await self._stream.write(data.encode("utf-8"))
            except ShellError:
                raise
            except Exception as e:
                raise ShellIOError(f"Failed to send data: {e}") from e

    async def resize(self, columns: int, rows: int) -> None:
        """Request a terminal size change; a no-op if the stream cannot resize.

        Raises:
            NotConnectedError: If the connection is closed
        """
        if not self.is_connected:
            raise NotConnectedError("Shell stream is not available")

        try:
            applied = self._stream.resize(columns, rows)
        except Exception as e:
            raise ShellIOError(f"Failed to resize terminal: {e}") from e

        if applied:
            logger.debug("Terminal resized to %dx%d", columns, rows)
        else:
            logger.debug("Terminal resize to %dx%d not supported by stream", columns, rows)

    async def disconnect(self) -> None:
        """Stop the read loop, close the stream and the transport.

        Idempotent and safe to call when never connected. Errors are logged.
        """
        if self._disconnected:
            return
        self._disconnected = True

        task = self._read_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Read loop failed during disconnect")

        async with self._write_lock:
            self._closed = True
            stream, self._stream = self._stream, None
            transport, self._transport = self._transport, None

            if stream is not None:
                try:
                    await stream.close()
                except Exception:
                    logger.exception("Error closing shell stream")

            await self._close_transport(transport)

        if stream is not None:
            logger.info("Shell disconnected")

    async def _close_transport(self, transport: Optional[ShellTransport]) -> None:
        if transport is None:
            return
        try:
            await transport.close()
        except Exception:
            logger.exception("Error closing transport")

    async def _read_loop(self) -> None:
        """Read output until end of stream, error or cancellation."""
        stream = self._stream
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        failed = False
        try:
            while not self._disconnected:
                chunk = await stream.read(self.read_size)
                if not chunk:
                    logger.debug("Shell stream reached end of output")
                    break
                text = decoder.decode(chunk)
                if text:
                    await self._emit(ShellEvent(EventKind.DATA, text))
        except asyncio.CancelledError:
            logger.debug("Shell stream reading cancelled")
        except Exception as e:
            failed = True
            logger.error("Error reading from shell stream: %s", e)
            await self._emit(ShellEvent(EventKind.ERROR, str(e)))
        finally:
            self._closed = True
            # An error event is followed directly by closed
            if not failed:
                tail = decoder.decode(b"", final=True)
                if tail:
                    await self._emit(ShellEvent(EventKind.DATA, tail))
            await self._emit(ShellEvent(EventKind.CLOSED))

    async def _emit(self, event: ShellEvent) -> None:
        if self._closed_emitted:
            return
        if event.kind == EventKind.CLOSED:
            self._closed_emitted = True

        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception("Listener failed handling %s event", event.kind.value)
