"""Auth: login, refresh (rotation), logout, me."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, StrictStr

from ats.api.deps import get_current_claims, get_services
from ats.core.tokens import AccessClaims
from ats.services.container import Services
from ats.services.sessions import TokenPair

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginBody(BaseModel):
    username: StrictStr
    password: StrictStr


class RefreshBody(BaseModel):
    refresh_token: StrictStr


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires


class MeOut(BaseModel):
    id: int
    username: str
    is_admin: bool


def _token_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with username and password",
    responses={
        401: {"description": "Invalid credentials"},
        422: {"description": "Missing or mistyped fields"},
    },
)
async def login(
    services: Annotated[Services, Depends(get_services)],
    body: LoginBody,
) -> TokenResponse:
    pair = await services.sessions.login_with_password(body.username.strip(), body.password)
    return _token_response(pair)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Exchange refresh token for new access and refresh tokens",
    responses={
        401: {"description": "Refresh token invalid, expired or already used"},
    },
)
async def refresh_tokens(
    services: Annotated[Services, Depends(get_services)],
    body: RefreshBody,
) -> TokenResponse:
    """Exchange refresh_token for new access_token and refresh_token (rotation)."""
    pair = await services.sessions.rotate(body.refresh_token)
    return _token_response(pair)


@router.post(
    "/logout",
    status_code=204,
    summary="Invalidate a refresh token",
    responses={
        204: {"description": "Logged out (also when the token was unknown)"},
    },
)
async def logout(
    services: Annotated[Services, Depends(get_services)],
    body: RefreshBody,
) -> Response:
    await services.sessions.revoke(body.refresh_token)
    return Response(status_code=204)


@router.get(
    "/me",
    response_model=MeOut,
    summary="Get current authenticated user",
    responses={
        401: {"description": "Not authenticated or invalid token"},
    },
)
async def me(claims: Annotated[AccessClaims, Depends(get_current_claims)]) -> MeOut:
    return MeOut(id=claims.subject_user_id, username=claims.username, is_admin=claims.is_admin)
