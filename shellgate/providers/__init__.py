"""Remote shell providers."""

from shellgate.providers.base import ShellProvider, ShellStream, ShellTransport
from shellgate.providers.ssh import AsyncSSHProvider

__all__ = ["AsyncSSHProvider", "ShellProvider", "ShellStream", "ShellTransport"]
