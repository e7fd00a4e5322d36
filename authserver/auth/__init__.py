"""Bearer token authentication for the user-facing endpoints."""

from .deps import CurrentUser, get_current_user
from .schemas import UserInfo

__all__ = [
    "CurrentUser",
    "get_current_user",
    "UserInfo",
]
