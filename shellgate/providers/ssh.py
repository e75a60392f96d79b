"""SSH provider built on asyncssh."""

import asyncio
import logging
from typing import Optional

import asyncssh

from shellgate.errors import (
    AuthFailedError,
    ConfigInvalidError,
    ConnectFailedError,
    ConnectTimeoutError,
    ShellIOError,
    StreamUnavailableError,
)
from shellgate.providers.base import ShellProvider, ShellStream, ShellTransport

logger = logging.getLogger(__name__)

# Pixel size hints sent with the pty request
CELL_WIDTH = 8
CELL_HEIGHT = 16


def _term_size(columns: int, rows: int) -> tuple[int, int, int, int]:
    return (columns, rows, columns * CELL_WIDTH, rows * CELL_HEIGHT)


class SSHShellStream(ShellStream):
    """Interactive shell process on an SSH channel."""

    def __init__(self, process: asyncssh.SSHClientProcess):
        self._process = process
        self._closed = False

    async def read(self, max_bytes: int) -> bytes:
        try:
            return await self._process.stdout.read(max_bytes)
        except (asyncssh.Error, OSError) as e:
            raise ShellIOError(f"Read failed: {e}") from e

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise StreamUnavailableError("Shell stream is closed")
        try:
            self._process.stdin.write(data)
            await self._process.stdin.drain()
        except (asyncssh.Error, OSError) as e:
            raise ShellIOError(f"Write failed: {e}") from e

    def resize(self, columns: int, rows: int) -> bool:
        if self._closed:
            return False
        self._process.change_terminal_size(*_term_size(columns, rows))
        return True

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._process.close()
        await self._process.wait_closed()


class SSHTransport(ShellTransport):
    """Authenticated asyncssh client connection."""

    def __init__(self, conn: asyncssh.SSHClientConnection):
        self._conn = conn

    async def open_stream(self, term_type: str, columns: int, rows: int) -> ShellStream:
        try:
            process = await self._conn.create_process(
                term_type=term_type,
                term_size=_term_size(columns, rows),
                encoding=None,
            )
        except (asyncssh.Error, OSError) as e:
            raise StreamUnavailableError(f"Failed to open shell stream: {e}") from e

        logger.debug("Shell stream opened (%s, %dx%d)", term_type, columns, rows)
        return SSHShellStream(process)

    async def close(self) -> None:
        self._conn.close()
        await self._conn.wait_closed()


class AsyncSSHProvider(ShellProvider):
    """Opens SSH connections with asyncssh.

    Host keys are verified against ``known_hosts`` when it is set;
    otherwise any host key is accepted.
    """

    def __init__(self, known_hosts: Optional[str] = None, keepalive_interval: float = 15.0):
        """Initialize the provider.

        Args:
            known_hosts: Path to a known_hosts file, or None to skip verification
            keepalive_interval: Seconds between keepalive requests (0 disables)
        """
        self.known_hosts = known_hosts
        self.keepalive_interval = keepalive_interval

    async def connect(
        self,
        host: str,
        port: int,
        username: str,
        password: Optional[str] = None,
        private_key: Optional[str] = None,
        passphrase: Optional[str] = None,
    ) -> ShellTransport:
        options = {
            "username": username,
            "known_hosts": self.known_hosts,
            "keepalive_interval": self.keepalive_interval,
            "agent_path": None,
        }

        if private_key:
            try:
                key = asyncssh.import_private_key(private_key, passphrase)
            except (asyncssh.KeyImportError, ValueError) as e:
                raise ConfigInvalidError(f"Invalid private key: {e}") from e
            options["client_keys"] = [key]
            options["password"] = None
        else:
            options["client_keys"] = None
            options["password"] = password or ""

        try:
            conn = await asyncssh.connect(host, port, **options)
        except asyncssh.PermissionDenied as e:
            raise AuthFailedError(f"Authentication failed for {username}@{host}: {e.reason}") from e
        except asyncssh.HostKeyNotVerifiable as e:
            raise ConnectFailedError(f"Host key verification failed for {host}: {e.reason}") from e
        except asyncssh.Error as e:
            raise ConnectFailedError(f"SSH connection to {host}:{port} failed: {e.reason}") from e
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise ConnectTimeoutError(f"Connection to {host}:{port} timed out") from e
        except OSError as e:
            raise ConnectFailedError(f"Cannot reach {host}:{port}: {e}") from e

        logger.info("SSH connected to %s:%d as %s", host, port, username)
        return SSHTransport(conn)
