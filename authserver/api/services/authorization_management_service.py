"""
Authorization Management Service - what a user sees on their connections page.

Read-only projections over the authorization history, enriched with the
client's display name, plus the ownership check every user-facing action goes
through before it reaches the event or revocation services.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from authserver.api.crud.authorization_history_crud import (
    get_active_authorizations_for_user,
    get_inactive_authorizations_without_active,
)
from authserver.api.crud.client_crud import get_client_names
from authserver.core.settings import settings
from authserver.models import AuthorizationHistory
from authserver.schemas.authorization_schema import AuthorizationWithClient

logger = logging.getLogger(__name__)


class AuthorizationForbiddenError(Exception):
    """Raised when a user acts on authorizations that are not their own."""

    pass


def ensure_owner(acting_user_id: str, user_id: str) -> None:
    """Only the resource owner may read or revoke their authorizations."""
    if str(acting_user_id) != str(user_id):
        logger.warning(f"User {acting_user_id} attempted to access authorizations of user {user_id}")
        raise AuthorizationForbiddenError(
            "You are not allowed to access another user's authorizations"
        )


class AuthorizationManagementService:
    """Service for listing a user's authorizations."""

    def __init__(self, db: Session):
        self.db = db

    def list_active_authorizations(self, user_id: str) -> list[AuthorizationWithClient]:
        """Active authorizations, most recent grant first."""
        return self._with_client_info(get_active_authorizations_for_user(self.db, user_id))

    def list_inactive_authorizations_without_active(
        self, user_id: str
    ) -> list[AuthorizationWithClient]:
        """Latest inactive authorization per client the user is no longer connected to."""
        return self._with_client_info(get_inactive_authorizations_without_active(self.db, user_id))

    def _with_client_info(
        self, records: list[AuthorizationHistory]
    ) -> list[AuthorizationWithClient]:
        names = get_client_names(self.db, (r.client_id for r in records))
        return [
            AuthorizationWithClient(
                id=r.id,
                client_id=r.client_id,
                client_name=names.get(r.client_id, settings.unknown_client_label),
                authorized_scopes=sorted(r.scopes),
                ip_address=r.ip_address,
                browser=r.browser,
                device_type=r.device_type,
                os=r.os,
                country=r.country,
                city=r.city,
                granted_at=r.granted_at,
                revoked_at=r.revoked_at,
                is_active=r.is_active,
            )
            for r in records
        ]
