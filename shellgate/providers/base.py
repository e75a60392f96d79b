"""Abstract base classes for remote shell providers.

This module defines the boundary between shellgate and the remote shell
protocol. A provider opens authenticated transports, a transport opens
interactive streams, and a stream carries terminal bytes both ways.
"""

from abc import ABC, abstractmethod
from typing import Optional


class ShellStream(ABC):
    """Interactive terminal stream on an open transport."""

    @abstractmethod
    async def read(self, max_bytes: int) -> bytes:
        """Read up to ``max_bytes`` of output.

        Returns:
            The bytes read, or empty bytes at end of stream
        """
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write input bytes to the remote terminal."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the stream."""
        pass

    def resize(self, columns: int, rows: int) -> bool:
        """Request a terminal size change.

        Returns:
            True if the change was sent, False if resize is not supported
        """
        return False


class ShellTransport(ABC):
    """Authenticated connection to a remote host."""

    @abstractmethod
    async def open_stream(self, term_type: str, columns: int, rows: int) -> ShellStream:
        """Open an interactive stream with a pseudo-terminal."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        pass


class ShellProvider(ABC):
    """Factory for authenticated remote shell transports."""

    @abstractmethod
    async def connect(
        self,
        host: str,
        port: int,
        username: str,
        password: Optional[str] = None,
        private_key: Optional[str] = None,
        passphrase: Optional[str] = None,
    ) -> ShellTransport:
        """Connect and authenticate.

        Uses ``private_key`` when given, otherwise ``password``.

        Raises:
            AuthFailedError: If the host rejects the credentials
            ConnectFailedError: If the host cannot be reached
        """
        pass
