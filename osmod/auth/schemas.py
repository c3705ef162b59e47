"""Pydantic schemas for authenticated principals."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from osmod.auth.permissions import UserGroup


class TokenUser(BaseModel):
    """The principal described by a validated access token."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str | None = None
    group: UserGroup


# ==============================================================================
# User administration
# ==============================================================================


class UserRequest(BaseModel):
    """Create a user.

    ``endpoint`` is the scoring URL of a machine scorer (``moderator`` group).
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200)
    email: str | None = Field(None, max_length=320)
    group: UserGroup
    endpoint: str | None = Field(None, max_length=2000)


class UpdateUserRequest(BaseModel):
    """Change a user; omitted fields are unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = Field(None, max_length=320)
    is_active: bool | None = Field(None, alias="isActive")
    endpoint: str | None = Field(None, max_length=2000)


class TokenResponse(BaseModel):
    """Access token issued for a machine user."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
