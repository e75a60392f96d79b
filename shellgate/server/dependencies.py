"""FastAPI dependencies for shellgate.

Shared components are created in the application lifespan and stored on
``app.state``; these helpers hand them to route handlers.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from starlette.requests import HTTPConnection

from shellgate.services.registry import SessionRegistry


def get_registry(connection: HTTPConnection) -> SessionRegistry:
    """Get the session registry.

    Accepts any HTTP connection so WebSocket handlers can use it too.
    """
    registry = getattr(connection.app.state, "registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session registry is not running",
        )
    return registry


# Type alias for use in route handlers
RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]
