from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from authserver.models import User

__all__ = ["get_user_by_id", "get_user_by_username"]


def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()
