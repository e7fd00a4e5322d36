"""
Authorization history store access layer.

Query shapes:
  - the active row for a (user, client) pair
  - every row for a pair, oldest grant first
  - every active row for a user
  - per client, the latest inactive row for a user, skipping clients that
    still have an active row
"""
from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from authserver.models import AuthorizationHistory

__all__ = [
    "get_active_authorization",
    "get_authorization_history",
    "get_active_authorizations_for_user",
    "get_inactive_authorizations_without_active",
    "create_authorization",
]


def get_active_authorization(
    db: Session, user_id: str, client_id: str, for_update: bool = False
) -> Optional[AuthorizationHistory]:
    """
    Return the active row for a pair, if any.

    With ``for_update`` the row is locked until the surrounding transaction
    ends (ignored by SQLite).
    """
    query = db.query(AuthorizationHistory).filter(
        AuthorizationHistory.user_id == user_id,
        AuthorizationHistory.client_id == client_id,
        AuthorizationHistory.is_active.is_(True),
    )
    if for_update:
        query = query.with_for_update()
    return query.order_by(AuthorizationHistory.granted_at.desc()).first()


def get_authorization_history(
    db: Session, user_id: str, client_id: str
) -> list[AuthorizationHistory]:
    """All rows for a pair, active or not, ordered by granted_at ascending."""
    return (
        db.query(AuthorizationHistory)
        .filter(
            AuthorizationHistory.user_id == user_id,
            AuthorizationHistory.client_id == client_id,
        )
        .order_by(AuthorizationHistory.granted_at.asc(), AuthorizationHistory.id.asc())
        .all()
    )


def get_active_authorizations_for_user(db: Session, user_id: str) -> list[AuthorizationHistory]:
    """Active rows for a user, most recent grant first."""
    return (
        db.query(AuthorizationHistory)
        .filter(
            AuthorizationHistory.user_id == user_id,
            AuthorizationHistory.is_active.is_(True),
        )
        .order_by(AuthorizationHistory.granted_at.desc())
        .all()
    )


def get_inactive_authorizations_without_active(
    db: Session, user_id: str
) -> list[AuthorizationHistory]:
    """
    One row per client the user no longer has an active authorization with.

    Clients with an active row are removed first (set difference), then the
    remaining inactive rows are ranked per client by revoked_at descending
    (nulls last, then granted_at) and only the top row of each client is kept.
    Results are ordered by revoked_at descending.
    """
    clients_with_active = select(AuthorizationHistory.client_id).where(
        AuthorizationHistory.user_id == user_id,
        AuthorizationHistory.is_active.is_(True),
    )

    latest_first = (
        AuthorizationHistory.revoked_at.desc().nulls_last(),
        AuthorizationHistory.granted_at.desc(),
    )

    ranked = (
        db.query(
            AuthorizationHistory.id.label("history_id"),
            func.row_number()
            .over(partition_by=AuthorizationHistory.client_id, order_by=latest_first)
            .label("rank"),
        )
        .filter(
            AuthorizationHistory.user_id == user_id,
            AuthorizationHistory.is_active.is_(False),
            AuthorizationHistory.client_id.not_in(clients_with_active),
        )
        .subquery()
    )

    return (
        db.query(AuthorizationHistory)
        .join(ranked, ranked.c.history_id == AuthorizationHistory.id)
        .filter(ranked.c.rank == 1)
        .order_by(*latest_first)
        .all()
    )


def create_authorization(
    db: Session,
    user_id: str,
    client_id: str,
    scopes: Iterable[str],
    **request_context,
) -> AuthorizationHistory:
    """
    Stage a new active row. The caller owns the transaction and commits.

    ``request_context`` holds the metadata columns (ip_address, user_agent,
    browser, device_type, os, country, city) and optionally ``granted_at``.
    """
    record = AuthorizationHistory(
        user_id=user_id,
        client_id=client_id,
        authorized_scopes=sorted(set(scopes)),
        is_active=True,
        **request_context,
    )
    db.add(record)
    return record
