"""Tests for auth security functions."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from osmod.auth.dependencies import user_from_payload
from osmod.auth.permissions import UserGroup
from osmod.auth.security import create_access_token, decode_access_token
from osmod.config import get_settings


class TestAccessToken:
    """Tests for access token creation and decoding."""

    def test_create_access_token(self) -> None:
        """Should create valid access token."""
        data = {
            "sub": str(uuid4()),
            "email": "moderator@example.com",
            "group": UserGroup.GENERAL.value,
        }
        token = create_access_token(data)
        assert token is not None
        assert len(token) > 0

    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        user_id = uuid4()
        data = {"sub": str(user_id), "email": "a@example.com", "group": "admin"}
        payload = decode_access_token(create_access_token(data))

        assert payload["sub"] == str(user_id)
        assert payload["email"] == "a@example.com"
        assert payload["group"] == "admin"
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        """Should raise JWTError for expired token."""
        token = create_access_token(
            {"sub": str(uuid4()), "group": "general"},
            expires_delta=timedelta(seconds=-1),
        )
        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        """Should raise JWTError for invalid token."""
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        settings = get_settings()
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "refresh"},
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )
        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(token)

    def test_decode_access_token_without_subject(self) -> None:
        """Should raise JWTError if the token names no user."""
        token = create_access_token({"group": "general"})
        with pytest.raises(JWTError, match="sub"):
            decode_access_token(token)

    def test_decode_access_token_wrong_key(self) -> None:
        """Tokens signed with another key are rejected."""
        settings = get_settings()
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "access"},
            "another-secret",
            algorithm=settings.auth_algorithm,
        )
        with pytest.raises(JWTError):
            decode_access_token(token)


class TestUserFromPayload:
    """Tests for building the principal from a token payload."""

    def test_valid_payload(self) -> None:
        user_id = uuid4()
        user = user_from_payload(
            {"sub": str(user_id), "email": "s@example.com", "group": "service"}
        )
        assert user.id == user_id
        assert user.group is UserGroup.SERVICE

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "x@example.com", "group": "general"},
            {"sub": "not-a-uuid", "group": "general"},
            {"sub": str(uuid4()), "group": "superuser"},
            {"sub": str(uuid4())},
        ],
    )
    def test_invalid_payload(self, payload: dict) -> None:
        with pytest.raises(ValueError):
            user_from_payload(payload)
