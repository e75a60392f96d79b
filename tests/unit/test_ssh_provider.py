"""Tests for shellgate.providers.ssh module."""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from shellgate.errors import (
    AuthFailedError,
    ConfigInvalidError,
    ConnectFailedError,
    ConnectTimeoutError,
    ShellIOError,
    StreamUnavailableError,
)
from shellgate.providers.ssh import AsyncSSHProvider, SSHShellStream, SSHTransport


def make_process() -> MagicMock:
    process = MagicMock()
    process.stdout.read = AsyncMock(return_value=b"output")
    process.stdin.write = MagicMock()
    process.stdin.drain = AsyncMock()
    process.wait_closed = AsyncMock()
    return process


class TestAsyncSSHProviderConnect:
    """Test authentication and error mapping."""

    @pytest.mark.asyncio
    async def test_password_authentication(self):
        provider = AsyncSSHProvider(known_hosts=None, keepalive_interval=10)
        conn = MagicMock()

        with patch("shellgate.providers.ssh.asyncssh.connect", new=AsyncMock(return_value=conn)) as connect:
            transport = await provider.connect("example.com", 2222, "alice", password="secret")

        assert isinstance(transport, SSHTransport)
        args, kwargs = connect.call_args
        assert args == ("example.com", 2222)
        assert kwargs["username"] == "alice"
        assert kwargs["password"] == "secret"
        assert kwargs["client_keys"] is None
        assert kwargs["known_hosts"] is None
        assert kwargs["keepalive_interval"] == 10

    @pytest.mark.asyncio
    async def test_private_key_authentication(self):
        provider = AsyncSSHProvider()
        key = MagicMock()

        with patch("shellgate.providers.ssh.asyncssh.import_private_key", return_value=key) as import_key, \
                patch("shellgate.providers.ssh.asyncssh.connect", new=AsyncMock(return_value=MagicMock())) as connect:
            await provider.connect("h", 22, "bob", private_key="PEM", passphrase="pp")

        import_key.assert_called_once_with("PEM", "pp")
        kwargs = connect.call_args.kwargs
        assert kwargs["client_keys"] == [key]
        assert kwargs["password"] is None

    @pytest.mark.asyncio
    async def test_known_hosts_passed_through(self):
        provider = AsyncSSHProvider(known_hosts="/etc/ssh/ssh_known_hosts")

        with patch("shellgate.providers.ssh.asyncssh.connect", new=AsyncMock(return_value=MagicMock())) as connect:
            await provider.connect("h", 22, "u", password="p")

        assert connect.call_args.kwargs["known_hosts"] == "/etc/ssh/ssh_known_hosts"

    @pytest.mark.asyncio
    async def test_invalid_private_key(self):
        provider = AsyncSSHProvider()

        with patch(
            "shellgate.providers.ssh.asyncssh.import_private_key",
            side_effect=asyncssh.KeyImportError("bad key"),
        ):
            with pytest.raises(ConfigInvalidError, match="Invalid private key"):
                await provider.connect("h", 22, "u", private_key="garbage")

    @pytest.mark.asyncio
    async def test_permission_denied_maps_to_auth_failed(self):
        provider = AsyncSSHProvider()
        error = asyncssh.PermissionDenied("Permission denied")

        with patch("shellgate.providers.ssh.asyncssh.connect", new=AsyncMock(side_effect=error)):
            with pytest.raises(AuthFailedError):
                await provider.connect("h", 22, "u", password="wrong")

    @pytest.mark.asyncio
    async def test_unreachable_host_maps_to_connect_failed(self):
        provider = AsyncSSHProvider()

        with patch(
            "shellgate.providers.ssh.asyncssh.connect",
            new=AsyncMock(side_effect=ConnectionRefusedError("refused")),
        ):
            with pytest.raises(ConnectFailedError, match="Cannot reach h:22"):
                await provider.connect("h", 22, "u", password="p")

    @pytest.mark.asyncio
    async def test_socket_timeout_maps_to_connect_timeout(self):
        """A TCP connect timeout is an OSError but should still classify as a timeout."""
        provider = AsyncSSHProvider()

        with patch(
            "shellgate.providers.ssh.asyncssh.connect",
            new=AsyncMock(side_effect=TimeoutError("timed out")),
        ):
            with pytest.raises(ConnectTimeoutError, match="timed out"):
                await provider.connect("h", 22, "u", password="p")


class TestSSHTransport:
    """Test opening the interactive stream."""

    @pytest.mark.asyncio
    async def test_open_stream_requests_pty(self):
        conn = MagicMock()
        conn.create_process = AsyncMock(return_value=make_process())
        transport = SSHTransport(conn)

        stream = await transport.open_stream("xterm-256color", 80, 24)

        assert isinstance(stream, SSHShellStream)
        kwargs = conn.create_process.call_args.kwargs
        assert kwargs["term_type"] == "xterm-256color"
        assert kwargs["term_size"] == (80, 24, 640, 384)
        assert kwargs["encoding"] is None

    @pytest.mark.asyncio
    async def test_open_stream_failure(self):
        conn = MagicMock()
        conn.create_process = AsyncMock(side_effect=asyncssh.ChannelOpenError(1, "prohibited"))
        transport = SSHTransport(conn)

        with pytest.raises(StreamUnavailableError):
            await transport.open_stream("xterm", 80, 24)

    @pytest.mark.asyncio
    async def test_close(self):
        conn = MagicMock()
        conn.wait_closed = AsyncMock()
        transport = SSHTransport(conn)

        await transport.close()

        conn.close.assert_called_once()
        conn.wait_closed.assert_awaited_once()


class TestSSHShellStream:
    """Test stream I/O."""

    @pytest.mark.asyncio
    async def test_read(self):
        process = make_process()
        stream = SSHShellStream(process)

        assert await stream.read(4096) == b"output"
        process.stdout.read.assert_awaited_once_with(4096)

    @pytest.mark.asyncio
    async def test_write_drains(self):
        process = make_process()
        stream = SSHShellStream(process)

        await stream.write(b"ls\n")

        process.stdin.write.assert_called_once_with(b"ls\n")
        process.stdin.drain.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_write_error(self):
        process = make_process()
        process.stdin.write.side_effect = BrokenPipeError("closed")
        stream = SSHShellStream(process)

        with pytest.raises(ShellIOError):
            await stream.write(b"x")

    @pytest.mark.asyncio
    async def test_write_after_close(self):
        stream = SSHShellStream(make_process())
        await stream.close()

        with pytest.raises(StreamUnavailableError):
            await stream.write(b"x")

    def test_resize_sends_window_change(self):
        process = make_process()
        stream = SSHShellStream(process)

        assert stream.resize(100, 40) is True
        process.change_terminal_size.assert_called_once_with(100, 40, 800, 640)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        process = make_process()
        stream = SSHShellStream(process)

        await stream.close()
        await stream.close()

        process.close.assert_called_once()
        assert stream.resize(80, 24) is False
