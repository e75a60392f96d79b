"""Health and info routes."""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from shellgate import __version__
from shellgate.server.dependencies import RegistryDep

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    active_sessions: int
    version: str


class InfoResponse(BaseModel):
    """Server information response."""

    name: str
    version: str
    status: str
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health(registry: RegistryDep) -> HealthResponse:
    """Check server health."""
    return HealthResponse(
        status="ok",
        active_sessions=registry.active_count,
        version=__version__,
    )


@router.get("/api/info", response_model=InfoResponse)
async def info() -> InfoResponse:
    """Describe the running server."""
    return InfoResponse(
        name="shellgate",
        version=__version__,
        status="running",
        timestamp=datetime.now(timezone.utc),
    )
