"""
Authorization Router - a user's connected applications.

Every endpoint acts on the authorizations of the user in the path, which must
be the authenticated user.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from authserver.api.deps import get_token_store
from authserver.api.services.authorization_event_service import (
    AuthorizationEventService,
    InvalidAuthorizationHistoryError,
)
from authserver.api.services.authorization_management_service import (
    AuthorizationForbiddenError,
    AuthorizationManagementService,
    ensure_owner,
)
from authserver.api.services.authorization_revocation_service import (
    AuthorizationRevocationService,
)
from authserver.api.services.token_store import TokenStore
from authserver.auth.deps import CurrentUser
from authserver.core.settings import settings
from authserver.db.deps import get_db
from authserver.schemas.authorization_schema import (
    AuthorizationEvent,
    AuthorizationWithClient,
    RevokeAuthorizationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix=f"{settings.api_prefix}/users/{{user_id}}/authorizations",
    tags=["authorizations"],
)


def _require_owner(current_user: CurrentUser, user_id: str) -> None:
    try:
        ensure_owner(current_user.id, user_id)
    except AuthorizationForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.get("/active", response_model=list[AuthorizationWithClient])
def list_active_authorizations(
    user_id: str,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
):
    """
    Active authorizations of the user, most recent grant first.
    """
    _require_owner(current_user, user_id)
    return AuthorizationManagementService(db).list_active_authorizations(user_id)


@router.get("/inactive", response_model=list[AuthorizationWithClient])
def list_inactive_authorizations(
    user_id: str,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
):
    """
    Latest inactive authorization for each client the user is no longer
    connected to, most recently revoked first.
    """
    _require_owner(current_user, user_id)
    return AuthorizationManagementService(db).list_inactive_authorizations_without_active(user_id)


@router.get("/{client_id}/events", response_model=list[AuthorizationEvent])
def get_authorization_events(
    user_id: str,
    client_id: str,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
):
    """
    Timeline of authorizations, scope additions and revocations for one
    client, most recent first. Empty when the user never authorized it.
    """
    _require_owner(current_user, user_id)
    try:
        return AuthorizationEventService(db).get_authorization_events(user_id, client_id)
    except InvalidAuthorizationHistoryError as e:
        logger.error(f"Invalid authorization history: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.delete("/{client_id}", response_model=RevokeAuthorizationResponse)
def revoke_authorization(
    user_id: str,
    client_id: str,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
    token_store: TokenStore = Depends(get_token_store),
):
    """
    Revoke the user's active authorization for a client and purge its live
    tokens. ``revoked`` is false when there was nothing to revoke.
    """
    _require_owner(current_user, user_id)
    revoked = AuthorizationRevocationService(db, token_store).revoke_authorization(
        user_id, client_id
    )
    message = "Authorization revoked" if revoked else "No active authorization for this client"
    return RevokeAuthorizationResponse(revoked=revoked, message=message)
