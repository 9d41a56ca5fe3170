"""Shared API dependencies for service access and admin authentication."""

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from snake402.db.session import get_db
from snake402.services.container import ServiceContainer

# Optional so that the X-Admin-Token header can be used instead.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_services(request: Request) -> ServiceContainer:
    """Return the service container built at startup.

    Raises:
        HTTPException: If the application has not finished starting
    """
    services: ServiceContainer | None = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting",
        )
    return services


ServicesDep = Annotated[ServiceContainer, Depends(get_services)]


def require_admin(
    services: ServicesDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Reject the request unless it carries the configured admin token.

    Args:
        services: Service container holding the active configuration
        credentials: Optional ``Authorization: Bearer`` credentials
        x_admin_token: Optional ``X-Admin-Token`` header value

    Raises:
        HTTPException: 503 when no admin token is configured, 401 on mismatch
    """
    expected = services.config.admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin token not configured",
        )
    provided = credentials.credentials if credentials is not None else x_admin_token
    if not provided or not secrets.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


AdminDep = Depends(require_admin)
