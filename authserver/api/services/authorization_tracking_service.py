"""
Authorization Lifecycle Tracker - records OAuth2 grants in the authorization history.

Called by the token engine's store after each save. Only a freshly consented
authorization code grant is tracked; token exchange and refresh saves of the
same authorization are ignored. For a tracked grant:

- no active row for the (user, client) pair -> insert a new active row
- active row and at least one new scope -> supersede it, insert a new row
  carrying the union of old and new scopes
- active row and no new scope -> nothing is written

Tracking is best effort. Any failure is logged and swallowed so that it can
never abort the grant that triggered it.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session, sessionmaker

from authserver.api.crud.authorization_history_crud import (
    create_authorization,
    get_active_authorization,
)
from authserver.api.crud.user_crud import get_user_by_username
from authserver.db.engine import SessionLocal
from authserver.models import User
from authserver.models.models import utcnow

from .pair_locks import PairLockRegistry, pair_locks
from .request_metadata import EMPTY_METADATA, RequestMetadata
from .token_store import AUTHORIZATION_CODE_GRANT, GrantAuthorization

logger = logging.getLogger(__name__)


class TrackingOutcome(str, Enum):
    CREATED = "created"  # first authorization for the pair
    SCOPE_ADDED = "scope_added"  # previous authorization superseded
    UNCHANGED = "unchanged"  # no new scope, nothing written
    IGNORED = "ignored"  # not a new grant (refresh, token exchange, other grant type)
    FAILED = "failed"  # error logged and swallowed


class AuthorizationTrackingError(Exception):
    """Raised internally when a grant cannot be recorded."""

    pass


def is_new_authorization_grant(authorization: GrantAuthorization) -> bool:
    """
    A new grant has an authorization code but no access token yet.

    Once the code is exchanged the same authorization is saved again with an
    access token; that save, and every refresh after it, must not be tracked.
    """
    if authorization.authorization_grant_type != AUTHORIZATION_CODE_GRANT:
        return False
    return bool(authorization.authorization_code) and not authorization.access_token


def has_new_scopes(existing_scopes: frozenset[str], new_scopes: set[str]) -> bool:
    """Only additions count; a scope missing from the new set is ignored."""
    return bool(new_scopes - existing_scopes)


class AuthorizationTrackingService:
    """Turns grant notifications into authorization history rows."""

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        locks: PairLockRegistry = pair_locks,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.clock = clock

    def track_if_new(
        self,
        authorization: GrantAuthorization,
        capture_metadata: Optional[Callable[[], RequestMetadata]] = None,
    ) -> TrackingOutcome:
        """
        Record the authorization if it is a new grant.

        Args:
            authorization: The authorization the token engine just saved
            capture_metadata: Returns the request metadata of the consenting
                request; called only when a row is about to be written

        Returns:
            What was done. Never raises.
        """
        if not is_new_authorization_grant(authorization):
            return TrackingOutcome.IGNORED

        try:
            return self._record(authorization, capture_metadata)
        except Exception as e:
            logger.error(
                f"Failed to record authorization history for user {authorization.principal_name} "
                f"and client {authorization.registered_client_id}: {e}",
                exc_info=True,
            )
            return TrackingOutcome.FAILED

    def _record(
        self,
        authorization: GrantAuthorization,
        capture_metadata: Optional[Callable[[], RequestMetadata]],
    ) -> TrackingOutcome:
        with self.session_factory() as db:
            user = get_user_by_username(db, authorization.principal_name)
            if user is None:
                raise AuthorizationTrackingError(
                    f"User not found: {authorization.principal_name}"
                )

            with self.locks.hold(user.id, authorization.registered_client_id):
                try:
                    outcome = self._apply(db, user, authorization, capture_metadata)
                    db.commit()
                except Exception:
                    db.rollback()
                    raise

        return outcome

    def _apply(
        self,
        db: Session,
        user: User,
        authorization: GrantAuthorization,
        capture_metadata: Optional[Callable[[], RequestMetadata]],
    ) -> TrackingOutcome:
        client_id = authorization.registered_client_id
        new_scopes = set(authorization.authorized_scopes)

        existing = get_active_authorization(db, user.id, client_id, for_update=True)
        outcome = TrackingOutcome.CREATED

        if existing is not None:
            if not has_new_scopes(existing.scopes, new_scopes):
                logger.debug(
                    f"No new scopes for user {user.id} and client {client_id}. "
                    f"Skipping history entry."
                )
                return TrackingOutcome.UNCHANGED

            logger.info(
                f"New scopes {sorted(new_scopes - existing.scopes)} for user {user.id} and "
                f"client {client_id}. Superseding authorization {existing.id}."
            )
            existing.mark_as_superseded()
            # The superseded row must be written before the new active row
            db.flush()
            new_scopes |= existing.scopes
            outcome = TrackingOutcome.SCOPE_ADDED

        metadata = capture_metadata() if capture_metadata else EMPTY_METADATA

        record = create_authorization(
            db,
            user_id=user.id,
            client_id=client_id,
            scopes=new_scopes,
            granted_at=self.clock(),
            **metadata.as_record_fields(),
        )
        db.flush()

        logger.info(
            f"Authorization history {record.id} recorded for user {authorization.principal_name} "
            f"and client {client_id} with {len(new_scopes)} scopes from IP {metadata.ip_address}"
        )
        return outcome
