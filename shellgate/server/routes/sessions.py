"""Read-only session listing for status tooling."""

from fastapi import APIRouter

from shellgate.models.session import SessionListResponse, SessionResponse
from shellgate.server.dependencies import RegistryDep

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("", response_model=SessionListResponse)
async def list_sessions(registry: RegistryDep) -> SessionListResponse:
    """List active SSH sessions."""
    sessions = registry.list_active_sessions()

    return SessionListResponse(
        sessions=[SessionResponse.from_session(s) for s in sessions],
        total=len(sessions),
    )
