"""FastAPI dependencies resolving services and authenticating callers."""

from __future__ import annotations

from fastapi import Depends, Header, Request

from ..container import Services
from ..errors import UnauthorizedError
from ..security.guard import Caller, TrustLevel


def get_services(request: Request) -> Services:
    """Resolve the service graph stored on the FastAPI application state."""
    services: Services = request.app.state.services
    return services


def require_user(
    services: Services = Depends(get_services),
    authorization: str | None = Header(default=None),
) -> Caller:
    return services.guard.authorize(TrustLevel.end_user, authorization=authorization)


def require_internal_service(
    services: Services = Depends(get_services),
    internal_api_key: str | None = Header(default=None, alias="X-Internal-API-Key"),
) -> Caller:
    return services.guard.authorize(
        TrustLevel.internal_service, internal_api_key=internal_api_key
    )


def ensure_self(caller: Caller, account_id: str) -> None:
    """Users may only mutate their own account."""
    if caller.account_id != account_id:
        raise UnauthorizedError("cannot modify another account", code="FORBIDDEN")
