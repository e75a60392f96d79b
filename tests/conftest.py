"""Shared pytest fixtures for shellgate tests."""

import asyncio
import os
from pathlib import Path
from typing import Generator, Optional

import pytest

from shellgate.errors import AuthFailedError, StreamUnavailableError
from shellgate.providers.base import ShellProvider, ShellStream, ShellTransport
from shellgate.services.connection import RemoteShellConnection, ShellEvent
from shellgate.services.registry import SessionRegistry
from shellgate.services.session import ConnectionConfig


class FakeStream(ShellStream):
    """In-memory interactive stream.

    Output is fed with ``feed``; in echo mode every write is fed back and
    writing ``exit\\n`` ends the stream.
    """

    def __init__(self, echo: bool = False, supports_resize: bool = True):
        self.echo = echo
        self.supports_resize = supports_resize
        self.written: list[bytes] = []
        self.sizes: list[tuple[int, int]] = []
        self.closed = False
        self._output: asyncio.Queue = asyncio.Queue()

    def feed(self, data: bytes) -> None:
        self._output.put_nowait(data)

    def feed_eof(self) -> None:
        self._output.put_nowait(b"")

    def fail(self, error: Exception) -> None:
        self._output.put_nowait(error)

    async def read(self, max_bytes: int) -> bytes:
        item = await self._output.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise StreamUnavailableError("stream closed")
        self.written.append(data)
        if self.echo:
            if data == b"exit\n":
                self.feed_eof()
            else:
                self.feed(data)

    def resize(self, columns: int, rows: int) -> bool:
        if not self.supports_resize:
            return False
        self.sizes.append((columns, rows))
        return True

    async def close(self) -> None:
        self.closed = True


class FakeTransport(ShellTransport):
    def __init__(self, provider: "FakeShellProvider"):
        self.provider = provider
        self.stream: Optional[FakeStream] = None
        self.stream_args: Optional[tuple[str, int, int]] = None
        self.closed = False

    async def open_stream(self, term_type: str, columns: int, rows: int) -> ShellStream:
        self.stream_args = (term_type, columns, rows)
        if self.provider.stream_error is not None:
            raise self.provider.stream_error
        self.stream = FakeStream(echo=self.provider.echo, supports_resize=self.provider.supports_resize)
        return self.stream

    async def close(self) -> None:
        self.closed = True


class FakeShellProvider(ShellProvider):
    """Test double for a remote SSH server accepting user ``u`` / password ``p``."""

    def __init__(self, echo: bool = False):
        self.username = "u"
        self.password = "p"
        self.echo = echo
        self.supports_resize = True
        self.connect_delay = 0.0
        self.stream_error: Optional[Exception] = None
        self.calls: list[dict] = []
        self.transports: list[FakeTransport] = []

    @property
    def last_stream(self) -> Optional[FakeStream]:
        return self.transports[-1].stream if self.transports else None

    @property
    def open_transports(self) -> list[FakeTransport]:
        return [t for t in self.transports if not t.closed]

    async def connect(self, host, port, username, password=None, private_key=None, passphrase=None):
        self.calls.append({
            "host": host,
            "port": port,
            "username": username,
            "password": password,
            "private_key": private_key,
            "passphrase": passphrase,
        })
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if private_key is None and (username != self.username or password != self.password):
            raise AuthFailedError(f"Authentication failed for {username}@{host}")
        transport = FakeTransport(self)
        self.transports.append(transport)
        return transport


class EventRecorder:
    """Listener that records connection events."""

    def __init__(self):
        self.events: list[ShellEvent] = []
        self._queue: asyncio.Queue = asyncio.Queue()

    async def __call__(self, event: ShellEvent) -> None:
        self.events.append(event)
        self._queue.put_nowait(event)

    async def next(self, timeout: float = 1.0) -> ShellEvent:
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    @property
    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


@pytest.fixture
def provider() -> FakeShellProvider:
    """Provide a fake SSH server."""
    return FakeShellProvider()


@pytest.fixture
def echo_provider() -> FakeShellProvider:
    """Provide a fake SSH server whose shell echoes input."""
    return FakeShellProvider(echo=True)


@pytest.fixture
def connection(provider: FakeShellProvider) -> RemoteShellConnection:
    return RemoteShellConnection(provider)


@pytest.fixture
def registry(provider: FakeShellProvider) -> SessionRegistry:
    return SessionRegistry(lambda: RemoteShellConnection(provider))


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def ssh_config() -> ConnectionConfig:
    """Connection config accepted by the fake server."""
    return ConnectionConfig(host="h", port=22, username="u", password="p")


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Clear all SHELLGATE_ environment variables and prevent config file loading."""
    env_vars = [key for key in os.environ if key.startswith("SHELLGATE_")]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Point to a non-existent config file to prevent auto-loading
    fake_config = tmp_path / "nonexistent" / "config.yaml"
    monkeypatch.setenv("SHELLGATE_CONFIG", str(fake_config))
    yield
