"""
Pydantic schemas for the authorization history endpoints.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthorizationEventType(str, Enum):
    """Significant moments in the life of one user -> client authorization."""

    AUTHORIZATION = "AUTHORIZATION"  # first consent, or consent after a revocation
    SCOPE_ADDITION = "SCOPE_ADDITION"  # consent to additional scopes
    REVOCATION = "REVOCATION"  # user revoked access


class AuthorizationEvent(BaseModel):
    """
    One entry of the reconstructed authorization timeline.

    Derived on demand from authorization history rows, never stored.
    Revocation events carry no scopes and no request context.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Id of the history row this event comes from")
    event_type: AuthorizationEventType
    timestamp: datetime = Field(
        ..., description="granted_at for grants, revoked_at for revocations"
    )
    scopes: list[str] = Field(default_factory=list)
    client_id: str
    client_name: str
    ip_address: Optional[str] = None
    browser: Optional[str] = None
    device_type: Optional[str] = None
    os: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None


class AuthorizationWithClient(BaseModel):
    """Authorization history row enriched with the client's display name."""

    id: str
    client_id: str
    client_name: str
    authorized_scopes: list[str]
    ip_address: Optional[str] = None
    browser: Optional[str] = None
    device_type: Optional[str] = None
    os: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    granted_at: datetime
    revoked_at: Optional[datetime] = None
    is_active: bool


class RevokeAuthorizationResponse(BaseModel):
    """Outcome of a revocation request."""

    revoked: bool
    message: str
