from __future__ import annotations

from .models import (
    AuthorizationHistory,
    AuthorizationState,
    Base,
    ClientType,
    OAuth2Client,
    User,
)

__all__ = [
    "Base",
    "User",
    "OAuth2Client",
    "ClientType",
    "AuthorizationHistory",
    "AuthorizationState",
]
