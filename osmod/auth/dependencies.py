"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from JWT
- Group checks (human moderators, admins, machine users)
- User service lookup
"""

from collections.abc import Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from pydantic import ValidationError

from osmod.auth.permissions import is_admin, is_human_moderator, is_machine
from osmod.auth.schemas import TokenUser
from osmod.auth.security import decode_access_token
from osmod.auth.service import UserService
from osmod.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def user_from_payload(payload: dict[str, Any]) -> TokenUser:
    """Build the principal from a decoded token payload.

    Raises:
        ValueError: If the payload does not describe a valid user
    """
    try:
        return TokenUser(
            id=payload["sub"],
            email=payload.get("email"),
            group=payload.get("group"),
        )
    except (KeyError, ValidationError) as e:
        msg = "Token payload does not describe a user"
        raise ValueError(msg) from e


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> TokenUser:
    """Get current authenticated user from JWT token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = user_from_payload(decode_access_token(token))
    except (JWTError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    set_user_id(user.id)
    return user


def require_group(check: Callable[[str], bool]):
    """Create a dependency requiring the user's group to pass ``check``."""

    async def group_checker(
        user: Annotated[TokenUser, Depends(get_current_user)],
    ) -> TokenUser:
        if not check(user.group):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return group_checker


CurrentUser = Annotated[TokenUser, Depends(get_current_user)]
ModeratorUser = Annotated[TokenUser, Depends(require_group(is_human_moderator))]
AdminUser = Annotated[TokenUser, Depends(require_group(is_admin))]
MachineUser = Annotated[TokenUser, Depends(require_group(is_machine))]


async def get_user_service(request: Request) -> UserService:
    """Get user service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "user_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User service not available",
        )
    return app_state.user_service


UserServiceDep = Annotated[UserService, Depends(get_user_service)]
