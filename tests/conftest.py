"""
Pytest fixtures for authorization server tests.

Provides an in-memory SQLite database shared by every session of a test,
seeded users and OAuth2 clients, an in-memory token store and a
deterministic clock.
"""
import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from authserver.api.crud.authorization_history_crud import get_authorization_history
from authserver.api.services.pair_locks import PairLockRegistry
from authserver.api.services.token_store import GrantAuthorization, InMemoryTokenStore
from authserver.models import Base, ClientType, OAuth2Client, User


class FakeClock:
    """Returns strictly increasing UTC timestamps, one second apart."""

    def __init__(self, start: datetime.datetime = None):
        self.current = start or datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

    def __call__(self) -> datetime.datetime:
        self.current += datetime.timedelta(seconds=1)
        return self.current


def make_grant(
    client_id: str,
    username: str,
    scopes=("openid", "profile"),
    authorization_id: str = "auth-1",
    **kwargs,
) -> GrantAuthorization:
    """A freshly consented authorization code grant, before token exchange."""
    values = {
        "id": authorization_id,
        "registered_client_id": client_id,
        "principal_name": username,
        "authorized_scopes": list(scopes),
        "authorization_code": f"code-{authorization_id}",
    }
    values.update(kwargs)
    return GrantAuthorization(**values)


def history_rows(session_factory, user_id: str, client_id: str):
    """Read the stored history for a pair through a fresh session."""
    with session_factory() as session:
        return get_authorization_history(session, user_id, client_id)


@pytest.fixture
def engine():
    """In-memory SQLite engine; every connection sees the same database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db):
    alice = User(id="user-alice", username="alice", email="alice@example.com")
    bob = User(id="user-bob", username="bob", email="bob@example.com")
    db.add_all([alice, bob])
    db.commit()
    return {"alice": alice, "bob": bob}


@pytest.fixture
def clients(db):
    spa = OAuth2Client(
        id="client-spa",
        client_id="spa-app",
        client_name="Photo Gallery",
        client_type=ClientType.CLIENT,
        cors_urls=["https://app.example.com"],
        redirect_uris=["https://app.example.com/callback"],
        owner_id="user-bob",
    )
    backend = OAuth2Client(
        id="client-backend",
        client_id="backend-app",
        client_name="Reporting Backend",
        client_type=ClientType.SERVER,
        client_secret="s3cret",
        cors_urls=["https://reports.example.com"],
        owner_id="user-bob",
    )
    service = OAuth2Client(
        id="client-service",
        client_id="batch-service",
        client_name="Nightly Batch",
        client_type=ClientType.SERVICE,
        cors_urls=["https://batch.example.com"],
        owner_id="user-bob",
    )
    db.add_all([spa, backend, service])
    db.commit()
    return {"spa": spa, "backend": backend, "service": service}


@pytest.fixture
def token_store():
    return InMemoryTokenStore()


@pytest.fixture
def locks():
    return PairLockRegistry()


@pytest.fixture
def clock():
    return FakeClock()
