from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from authserver.models import OAuth2Client

__all__ = ["get_client_by_id", "get_client_by_client_id", "get_client_names"]


def get_client_by_id(db: Session, internal_id: str) -> Optional[OAuth2Client]:
    return db.query(OAuth2Client).filter(OAuth2Client.id == internal_id).first()


def get_client_by_client_id(db: Session, client_id: str) -> Optional[OAuth2Client]:
    """Lookup by the public identifier sent in protocol requests."""
    return db.query(OAuth2Client).filter(OAuth2Client.client_id == client_id).first()


def get_client_names(db: Session, ids: Iterable[str]) -> dict[str, str]:
    """Map internal client id -> display name, skipping unknown ids."""
    ids = set(ids)
    if not ids:
        return {}
    rows = (
        db.query(OAuth2Client.id, OAuth2Client.client_name)
        .filter(OAuth2Client.id.in_(ids))
        .all()
    )
    return {row.id: row.client_name for row in rows}
