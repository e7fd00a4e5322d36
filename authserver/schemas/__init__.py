"""Pydantic schemas for request/response validation."""

from .authorization_schema import (
    AuthorizationEvent,
    AuthorizationEventType,
    AuthorizationWithClient,
    RevokeAuthorizationResponse,
)

__all__ = [
    "AuthorizationEvent",
    "AuthorizationEventType",
    "AuthorizationWithClient",
    "RevokeAuthorizationResponse",
]
