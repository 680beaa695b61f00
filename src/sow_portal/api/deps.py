"""FastAPI dependencies: caller token, caller role, and the backend client.

The BFF forwards the caller's Cognito ID token to the SOW backend, which
verifies it. The role used for UI gating is read from the token's
``cognito:groups`` claim without verification.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt

from src.sow_portal.auth.permissions import Permissions, build_permissions
from src.sow_portal.auth.roles import UserRole, role_from_groups
from src.sow_portal.clients.api import SowApiClient

ApiClientFactory = Callable[[str], SowApiClient]


async def get_bearer_token(request: Request) -> str:
    """Extract the bearer token.

    Raises:
        HTTPException(401): No bearer token on the request.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )
    return auth_header[7:].strip()


async def get_caller_role(token: str = Depends(get_bearer_token)) -> UserRole | None:
    """Role from the ``cognito:groups`` claim; None for unreadable tokens."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    groups = claims.get("cognito:groups")
    if isinstance(groups, str):
        groups = [groups]
    return role_from_groups(groups if isinstance(groups, list) else None)


async def get_caller_permissions(
    role: UserRole | None = Depends(get_caller_role),
) -> Permissions:
    return build_permissions(role)


async def get_api_client(
    request: Request,
    token: str = Depends(get_bearer_token),
) -> AsyncGenerator[SowApiClient, None]:
    """Backend client that forwards the caller's token, closed after the request."""
    factory: ApiClientFactory | None = getattr(request.app.state, "api_client_factory", None)
    if factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Backend client not initialized",
        )
    client = factory(token)
    try:
        yield client
    finally:
        await client.aclose()
