"""FastAPI dependency injection — get_services, get_current_user, require_admin."""

import uuid

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from streamvault.container import AppServices
from streamvault.entities import User
from streamvault.errors import AuthenticationError, PermissionDeniedError

security_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> AppServices:
    return request.app.state.services


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
    services: AppServices = Depends(get_services),
) -> User:
    """Extract and validate JWT, return the authenticated User."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    try:
        payload = services.tokens.decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid token")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token subject")

    # Role is re-read from the store so demotions apply immediately
    user = await services.auth.get_user_by_id(user_id)
    if not user:
        raise AuthenticationError("User not found")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise PermissionDeniedError("Admin role required")
    return user
