"""FastAPI dependencies: shared services, current claims from the bearer token, admin check."""

from typing import Annotated

from fastapi import Depends, Request

from ats.core.tokens import AccessClaims
from ats.services.container import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized; ensure app lifespan has run Services.start().")
    return services


async def get_current_claims(
    request: Request,
    services: Annotated[Services, Depends(get_services)],
) -> AccessClaims:
    return services.guard.authenticate(request.headers.get("Authorization"))


async def require_admin(
    claims: Annotated[AccessClaims, Depends(get_current_claims)],
    services: Annotated[Services, Depends(get_services)],
) -> AccessClaims:
    """Require admin role. Raises 403 otherwise."""
    services.guard.authorize(claims)
    return claims
