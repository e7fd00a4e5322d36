"""
Event Reconstructor - turns authorization history rows into a typed timeline.

Rows are walked oldest first. Each row yields an AUTHORIZATION or a
SCOPE_ADDITION event at its grant time, and a revoked row additionally yields
a REVOCATION event at its revocation time. A row is a scope addition only when
the row before it was superseded. The list is returned most recent first.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from authserver.api.crud.authorization_history_crud import get_authorization_history
from authserver.api.crud.client_crud import get_client_by_id
from authserver.core.settings import settings
from authserver.models import AuthorizationHistory, AuthorizationState
from authserver.schemas.authorization_schema import (
    AuthorizationEvent,
    AuthorizationEventType,
)

logger = logging.getLogger(__name__)


class InvalidAuthorizationHistoryError(Exception):
    """Raised when stored history cannot be a valid lifecycle."""

    pass


def build_events(
    history: list[AuthorizationHistory],
    client_name: str,
    unknown_location: Optional[str] = None,
) -> list[AuthorizationEvent]:
    """
    Fold history rows (granted_at ascending) into events, most recent first.

    A row after a revoked row always starts over as an AUTHORIZATION. An
    active row must be the last one; anything following it is invalid history.
    """
    if unknown_location is None:
        unknown_location = settings.unknown_location_label

    events: list[AuthorizationEvent] = []
    previous: Optional[AuthorizationHistory] = None

    for record in history:
        if previous is not None and previous.state == AuthorizationState.ACTIVE:
            raise InvalidAuthorizationHistoryError(
                f"Authorization {record.id} follows active authorization {previous.id} "
                f"for user {record.user_id} and client {record.client_id}"
            )

        scope_addition = previous is not None and previous.state == AuthorizationState.SUPERSEDED
        events.append(
            AuthorizationEvent(
                id=record.id,
                event_type=(
                    AuthorizationEventType.SCOPE_ADDITION
                    if scope_addition
                    else AuthorizationEventType.AUTHORIZATION
                ),
                timestamp=record.granted_at,
                scopes=sorted(record.scopes),
                client_id=record.client_id,
                client_name=client_name,
                ip_address=record.ip_address,
                browser=record.browser,
                device_type=record.device_type,
                os=record.os,
                country=record.country or unknown_location,
                city=record.city or unknown_location,
            )
        )

        if record.state == AuthorizationState.REVOKED:
            # No request context on revocations
            events.append(
                AuthorizationEvent(
                    id=record.id,
                    event_type=AuthorizationEventType.REVOCATION,
                    timestamp=record.revoked_at,
                    scopes=[],
                    client_id=record.client_id,
                    client_name=client_name,
                )
            )

        previous = record

    events.reverse()
    return events


class AuthorizationEventService:
    """Reconstructs the authorization timeline of a (user, client) pair."""

    def __init__(self, db: Session):
        self.db = db

    def get_authorization_events(self, user_id: str, client_id: str) -> list[AuthorizationEvent]:
        history = get_authorization_history(self.db, user_id, client_id)
        if not history:
            logger.debug(f"No authorization history for user {user_id} and client {client_id}")
            return []

        client = get_client_by_id(self.db, client_id)
        client_name = client.client_name if client else settings.unknown_client_label

        events = build_events(history, client_name)
        logger.debug(
            f"Transformed {len(history)} history entries into {len(events)} events "
            f"for user {user_id} and client {client_id}"
        )
        return events
