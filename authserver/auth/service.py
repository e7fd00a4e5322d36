"""Authentication service - issues and verifies user access tokens."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy.orm import Session

from authserver.api.crud.user_crud import get_user_by_id
from authserver.core.settings import settings
from authserver.models import User

from .schemas import UserInfo

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when authentication fails."""

    pass


class AuthService:
    """
    Verifies the bearer tokens of the user-facing API.

    Login and session handling belong to the identity provider's front end;
    it mints the same HS256 tokens through ``create_access_token``.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_access_token(
        self, user: User, expires_delta: Optional[timedelta] = None
    ) -> tuple[str, datetime]:
        """
        Create a JWT access token for the user.

        Returns:
            Tuple of (token string, expiration datetime)
        """
        now = datetime.now(timezone.utc)
        expires_at = now + (
            expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
        )
        payload = {
            "sub": user.username,
            "uid": user.id,
            "exp": expires_at,
            "iat": now,
            "type": "access",
        }
        token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
        return token, expires_at

    def verify_token(self, token: str) -> UserInfo:
        """
        Verify an access token and resolve the user it was issued for.

        Raises:
            AuthenticationError: If the token is invalid, expired, or the user
                no longer exists
        """
        try:
            payload = jwt.decode(
                token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}")

        if payload.get("type") != "access":
            raise AuthenticationError("Invalid token type")

        user = get_user_by_id(self.db, payload.get("uid", ""))
        if user is None or user.username != payload.get("sub"):
            logger.warning(f"Token presented for unknown user: {payload.get('sub')}")
            raise AuthenticationError("User not found")

        return UserInfo.model_validate(user)
