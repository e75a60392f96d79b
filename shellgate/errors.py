"""Error taxonomy for remote shell sessions.

Errors are raised as ``ShellError`` subclasses inside the connection and
provider layers and converted to failed ``ShellResult`` values by the
session registry.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a shell session failure."""

    CONFIG_INVALID = "config_invalid"
    AUTH_FAILED = "auth_failed"
    CONNECT_TIMEOUT = "connect_timeout"
    CONNECT_FAILED = "connect_failed"
    STREAM_UNAVAILABLE = "stream_unavailable"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_EXISTS = "session_exists"
    NOT_CONNECTED = "not_connected"
    IO_ERROR = "io_error"


class ShellError(Exception):
    """Base error for remote shell operations."""

    kind: ErrorKind = ErrorKind.IO_ERROR


class ConfigInvalidError(ShellError):
    """Connection configuration is malformed."""

    kind = ErrorKind.CONFIG_INVALID


class AuthFailedError(ShellError):
    """Remote host rejected the credentials."""

    kind = ErrorKind.AUTH_FAILED


class ConnectTimeoutError(ShellError):
    """Connection or handshake did not finish in time."""

    kind = ErrorKind.CONNECT_TIMEOUT


class ConnectFailedError(ShellError):
    """Remote host unreachable, refused, or failed the handshake."""

    kind = ErrorKind.CONNECT_FAILED


class StreamUnavailableError(ShellError):
    """Interactive stream could not be opened or is no longer usable."""

    kind = ErrorKind.STREAM_UNAVAILABLE


class SessionNotFoundError(ShellError):
    """No active session for the client identity."""

    kind = ErrorKind.SESSION_NOT_FOUND


class SessionExistsError(ShellError):
    """Client identity already has an active or pending session."""

    kind = ErrorKind.SESSION_EXISTS


class NotConnectedError(ShellError):
    """Session exists but its connection is closed."""

    kind = ErrorKind.NOT_CONNECTED


class ShellIOError(ShellError):
    """Transient read or write failure on a live stream."""

    kind = ErrorKind.IO_ERROR
