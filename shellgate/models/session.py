"""Session models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from shellgate.services.session import DEFAULT_TERMINAL_TYPE, ConnectionConfig, Session


class ConnectRequest(BaseModel):
    """Connect message sent by the browser client."""

    host: str = Field(..., min_length=1, description="Remote host name or address")
    port: int = Field(default=22, ge=1, le=65535, description="SSH port")
    username: str = Field(..., min_length=1, description="Login user")
    password: Optional[str] = Field(default=None, description="Password (used when no private key)")
    private_key: Optional[str] = Field(default=None, description="PEM/OpenSSH private key text")
    private_key_passphrase: Optional[str] = Field(default=None, description="Passphrase for the private key")
    timeout: int = Field(default=20000, gt=0, description="Connect timeout in milliseconds")
    terminal_type: str = Field(default=DEFAULT_TERMINAL_TYPE, min_length=1)
    columns: int = Field(default=80, gt=0)
    rows: int = Field(default=24, gt=0)

    def to_config(self) -> ConnectionConfig:
        """Convert to the immutable connection config."""
        return ConnectionConfig(
            host=self.host.strip(),
            port=self.port,
            username=self.username,
            password=self.password,
            private_key=self.private_key or None,
            private_key_passphrase=self.private_key_passphrase,
            timeout=self.timeout / 1000,
            terminal_type=self.terminal_type,
            columns=self.columns,
            rows=self.rows,
        )


class SessionResponse(BaseModel):
    """Response model for an active session."""

    session_id: str
    client_id: str = Field(..., description="Gateway client identity")
    host: str
    port: int
    username: str
    created_at: datetime
    connected_at: Optional[datetime] = None
    last_activity: datetime
    connected: bool
    status: str

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(**session.to_dict())


class SessionListResponse(BaseModel):
    """Response model for listing sessions."""

    sessions: list[SessionResponse]
    total: int
