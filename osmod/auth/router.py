"""User administration endpoints.

Provides routes for:
- Listing users (shown to moderators in the notifier snapshot too)
- Creating and updating users, scorers included
- Issuing access tokens for publisher integrations and scorers
"""

from datetime import timedelta
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, status

from osmod.config import get_settings
from osmod.notifier.dependencies import NotifierServiceDep

from .dependencies import AdminUser, ModeratorUser, UserServiceDep
from .models import User, create_user
from .permissions import UserGroup, is_machine
from .schemas import TokenResponse, UpdateUserRequest, UserRequest
from .security import create_access_token


logger = structlog.get_logger(__name__)


admin_router = APIRouter(prefix="/rest", tags=["users-admin"])


def _check_endpoint(group: UserGroup, endpoint: str | None) -> None:
    if endpoint and group is not UserGroup.MODERATOR:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only scorers (moderator group) have an endpoint",
        )
    if endpoint and not endpoint.startswith(("http://", "https://")):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Scorer endpoint must be an http(s) URL",
        )


async def _get_user_or_404(user_service: UserServiceDep, user_id: UUID) -> User:
    user = await user_service.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


@admin_router.get("/users", summary="List users")
async def list_users(
    user_service: UserServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    return {"data": [u.to_wire() for u in await user_service.list_users()]}


@admin_router.post(
    "/users",
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
)
async def create_user_route(
    data: UserRequest,
    user_service: UserServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> dict[str, Any]:
    _check_endpoint(data.group, data.endpoint)
    new_user = await user_service.save_user(
        create_user(data.name, data.group, email=data.email, endpoint=data.endpoint)
    )

    await notifier.publish_system()
    return {"data": new_user.to_wire()}


@admin_router.patch("/users/{user_id}", summary="Update user")
async def update_user(
    user_id: UUID,
    data: UpdateUserRequest,
    user_service: UserServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> dict[str, Any]:
    target = await _get_user_or_404(user_service, user_id)
    changes = data.model_dump(exclude_none=True)
    if "endpoint" in changes:
        _check_endpoint(target.group, changes["endpoint"])
    for name, value in changes.items():
        setattr(target, name, value)
    target = await user_service.save_user(target)

    await notifier.publish_system()
    return {"data": target.to_wire()}


@admin_router.post(
    "/users/{user_id}/token",
    response_model=TokenResponse,
    summary="Issue machine user token",
)
async def issue_token(
    user_id: UUID,
    user_service: UserServiceDep,
    user: AdminUser,
) -> TokenResponse:
    """Access token for a publisher integration or scorer.

    Human moderators get their tokens from the login flow, not from here.
    """
    target = await _get_user_or_404(user_service, user_id)
    if not is_machine(target.group):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tokens are only issued for machine users",
        )
    if not target.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive",
        )

    settings = get_settings()
    expires_in = settings.auth_machine_token_expire_days * 24 * 3600
    token = create_access_token(
        {"sub": str(target.user_id), "email": target.email, "group": target.group.value},
        expires_delta=timedelta(seconds=expires_in),
    )
    logger.info(
        "machine_token_issued",
        user_id=str(target.user_id),
        group=target.group.value,
        issued_by=str(user.id),
    )
    return TokenResponse(access_token=token, expires_in=expires_in)
