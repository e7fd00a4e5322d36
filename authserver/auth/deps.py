"""FastAPI dependencies for authentication."""

from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from authserver.db.deps import get_db

from .schemas import UserInfo
from .service import AuthenticationError, AuthService

# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


def get_current_user(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    access_token: str | None = Cookie(default=None),
) -> UserInfo:
    """
    FastAPI dependency to get the current authenticated user.

    Checks for a JWT in:
    1. Authorization header (Bearer token)
    2. access_token cookie

    Raises:
        HTTPException 401: If not authenticated
    """
    token = credentials.credentials if credentials else access_token

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return AuthService(db).verify_token(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


# Type alias for cleaner dependency injection
CurrentUser = Annotated[UserInfo, Depends(get_current_user)]
