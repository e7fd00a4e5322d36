"""SQLAlchemy models for users, OAuth2 clients and authorization history."""

from __future__ import annotations

import datetime
import enum
import uuid
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Index,
    PrimaryKeyConstraint,
    String,
    TypeDecorator,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp.

    SQLite drops tzinfo on the way back; values read from it are re-tagged as
    UTC so that comparisons against ``datetime.now(timezone.utc)`` keep working.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class ClientType(str, enum.Enum):
    """Kind of OAuth2 client, which decides how its users authenticate."""

    CLIENT = "CLIENT"  # browser-side application, may call the protocol endpoints cross-origin
    SERVER = "SERVER"  # server-side application holding its own secret
    SERVICE = "SERVICE"  # machine-to-machine, no end user


class AuthorizationState(str, enum.Enum):
    """Lifecycle state of one authorization history row."""

    ACTIVE = "ACTIVE"
    SUPERSEDED = "SUPERSEDED"
    REVOKED = "REVOKED"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="users_pk"),
        UniqueConstraint("username", name="users_username_uk"),
    )

    id: Mapped[str] = mapped_column(String(36), default=new_id)
    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Stable principal name used by the token engine",
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class OAuth2Client(Base):
    """
    Registered OAuth2 client.

    Client CRUD lives elsewhere; this core only reads the display name, the
    client type and the registered CORS origins.
    """

    __tablename__ = "oauth2_client"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="oauth2_client_pk"),
        UniqueConstraint("client_id", name="oauth2_client_client_id_uk"),
        Index("oauth2_client_owner_idx", "owner_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        default=new_id,
        comment="Immutable internal identifier",
    )
    client_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Public identifier presented in protocol requests",
    )
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_type: Mapped[ClientType] = mapped_column(
        Enum(ClientType, native_enum=False, length=16),
        nullable=False,
        default=ClientType.CLIENT,
    )
    client_secret: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    redirect_uris: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=lambda: [])
    cors_urls: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: [],
        comment="Origins allowed to call the protocol endpoints from a browser",
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    official: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    client_id_issued_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    @property
    def allows_cross_origin(self) -> bool:
        return self.client_type == ClientType.CLIENT

    def __repr__(self) -> str:
        return f"<OAuth2Client(id={self.id}, client_id='{self.client_id}', type={self.client_type})>"


class AuthorizationHistory(Base):
    """
    One authorization granted by a user to a client.

    When scopes are added to an existing authorization the old row is marked
    inactive without setting ``revoked_at`` (superseded) and a new active row
    is inserted. ``revoked_at`` is only ever set by an explicit revocation.
    Rows are permanent audit history and are never deleted.
    """

    __tablename__ = "oauth2_authorization_history"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="oauth2_authorization_history_pk"),
        # "all records for a pair ordered by grant time"
        Index("oauth2_auth_history_pair_granted_idx", "user_id", "client_id", "granted_at"),
        # "all active records for a user" and the per-client inactive projection
        Index("oauth2_auth_history_user_active_idx", "user_id", "is_active"),
        # At most one active row per (user, client)
        Index(
            "oauth2_auth_history_active_pair_uk",
            "user_id",
            "client_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    client_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        comment="Immutable internal id of the OAuth2 client",
    )
    authorized_scopes: Mapped[list[str]] = mapped_column(JSON, nullable=False)

    # Request metadata captured at grant time
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    browser: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    device_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    os: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    granted_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    revoked_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def scopes(self) -> frozenset[str]:
        return frozenset(self.authorized_scopes or ())

    @property
    def state(self) -> AuthorizationState:
        if self.is_active:
            return AuthorizationState.ACTIVE
        if self.revoked_at is not None:
            return AuthorizationState.REVOKED
        return AuthorizationState.SUPERSEDED

    def mark_as_revoked(self, when: Optional[datetime.datetime] = None) -> None:
        """Terminate by explicit user revocation."""
        self.revoked_at = when or utcnow()
        self.is_active = False

    def mark_as_superseded(self) -> None:
        """Retire in favour of a wider grant; ``revoked_at`` stays null."""
        self.is_active = False

    def __repr__(self) -> str:
        return (
            f"<AuthorizationHistory(id={self.id}, user_id={self.user_id}, "
            f"client_id={self.client_id}, state={self.state.value})>"
        )
