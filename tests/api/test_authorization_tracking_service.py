"""
Tests for the Authorization Lifecycle Tracker.

Tests cover:
- New grant detection (code grants before token exchange only)
- First authorization, scope additions and repeated consents
- Request metadata capture
- Failure isolation
- Concurrent grants for the same pair
"""
import threading
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from authserver.api.crud.authorization_history_crud import get_active_authorization
from authserver.api.services.authorization_tracking_service import (
    AuthorizationTrackingService,
    TrackingOutcome,
    has_new_scopes,
    is_new_authorization_grant,
)
from authserver.api.services.pair_locks import PairLockRegistry
from authserver.api.services.request_metadata import RequestMetadata
from authserver.models import AuthorizationState, Base, User
from tests.conftest import history_rows, make_grant


@pytest.fixture
def tracker(session_factory, locks, clock):
    return AuthorizationTrackingService(session_factory=session_factory, locks=locks, clock=clock)


class TestIsNewAuthorizationGrant:
    """Tests for is_new_authorization_grant."""

    def test_code_without_access_token(self):
        """Should treat a consented code grant as new."""
        assert is_new_authorization_grant(make_grant("client-spa", "alice")) is True

    def test_after_token_exchange(self):
        """Should ignore the save that adds the access token."""
        grant = make_grant("client-spa", "alice", access_token="at-1")
        assert is_new_authorization_grant(grant) is False

    def test_refresh(self):
        """Should ignore a refresh of an existing authorization."""
        grant = make_grant("client-spa", "alice", access_token="at-2", refresh_token="rt-1")
        assert is_new_authorization_grant(grant) is False

    def test_other_grant_type(self):
        """Should ignore grants other than authorization_code."""
        grant = make_grant("client-service", "alice", authorization_grant_type="client_credentials")
        assert is_new_authorization_grant(grant) is False

    def test_without_code(self):
        """Should ignore an authorization code grant with no code."""
        grant = make_grant("client-spa", "alice", authorization_code=None)
        assert is_new_authorization_grant(grant) is False


class TestHasNewScopes:
    """Tests for has_new_scopes."""

    def test_addition(self):
        """Should detect a scope that was not granted before."""
        assert has_new_scopes(frozenset({"openid"}), {"openid", "email"}) is True

    def test_same_scopes(self):
        """Should report no change for an identical set."""
        assert has_new_scopes(frozenset({"openid", "email"}), {"email", "openid"}) is False

    def test_subset(self):
        """Should not count a narrower request as a change."""
        assert has_new_scopes(frozenset({"openid", "email"}), {"openid"}) is False


class TestTrackIfNew:
    """Tests for AuthorizationTrackingService.track_if_new."""

    def test_first_grant_creates_active_row(self, tracker, session_factory, users, clients):
        """Should insert one active row for a first authorization."""
        outcome = tracker.track_if_new(make_grant("client-spa", "alice", scopes=["openid", "profile"]))

        assert outcome == TrackingOutcome.CREATED
        (row,) = history_rows(session_factory, "user-alice", "client-spa")
        assert row.state == AuthorizationState.ACTIVE
        assert row.scopes == frozenset({"openid", "profile"})
        assert row.revoked_at is None

    def test_new_scope_supersedes_previous_row(self, tracker, session_factory, users, clients):
        """Should retire the old row and insert a new active one on scope addition."""
        tracker.track_if_new(make_grant("client-spa", "alice", scopes=["openid"], authorization_id="a1"))

        outcome = tracker.track_if_new(
            make_grant("client-spa", "alice", scopes=["openid", "email"], authorization_id="a2")
        )

        assert outcome == TrackingOutcome.SCOPE_ADDED
        old, new = history_rows(session_factory, "user-alice", "client-spa")
        assert old.state == AuthorizationState.SUPERSEDED
        assert old.revoked_at is None
        assert new.state == AuthorizationState.ACTIVE
        assert new.scopes == frozenset({"openid", "email"})
        assert new.granted_at > old.granted_at

    def test_superseding_row_keeps_previous_scopes(self, tracker, session_factory, users, clients):
        """Should grant the union of old and new scopes when the request differs."""
        tracker.track_if_new(make_grant("client-spa", "alice", scopes=["openid", "profile"], authorization_id="a1"))

        tracker.track_if_new(make_grant("client-spa", "alice", scopes=["email"], authorization_id="a2"))

        _, new = history_rows(session_factory, "user-alice", "client-spa")
        assert new.scopes == frozenset({"openid", "profile", "email"})

    def test_repeated_consent_writes_nothing(self, tracker, session_factory, users, clients):
        """Should not write a row when no scope is added."""
        tracker.track_if_new(make_grant("client-spa", "alice", scopes=["openid", "email"], authorization_id="a1"))

        outcome = tracker.track_if_new(make_grant("client-spa", "alice", scopes=["email"], authorization_id="a2"))

        assert outcome == TrackingOutcome.UNCHANGED
        (row,) = history_rows(session_factory, "user-alice", "client-spa")
        assert row.is_active is True

    def test_token_exchange_is_ignored(self, tracker, session_factory, users, clients):
        """Should not track the save that follows code exchange."""
        outcome = tracker.track_if_new(make_grant("client-spa", "alice", access_token="at-1"))

        assert outcome == TrackingOutcome.IGNORED
        assert history_rows(session_factory, "user-alice", "client-spa") == []

    def test_grant_after_revocation_creates_new_row(self, tracker, session_factory, users, clients, clock):
        """Should start a fresh active row once the previous one was revoked."""
        tracker.track_if_new(make_grant("client-spa", "alice", scopes=["openid"], authorization_id="a1"))
        with session_factory() as session:
            row = get_active_authorization(session, "user-alice", "client-spa")
            row.mark_as_revoked(clock())
            session.commit()

        outcome = tracker.track_if_new(make_grant("client-spa", "alice", scopes=["openid"], authorization_id="a2"))

        assert outcome == TrackingOutcome.CREATED
        revoked, active = history_rows(session_factory, "user-alice", "client-spa")
        assert revoked.state == AuthorizationState.REVOKED
        assert active.state == AuthorizationState.ACTIVE
        assert active.scopes == frozenset({"openid"})

    def test_pairs_are_independent(self, tracker, session_factory, users, clients):
        """Should keep separate history per user and client."""
        tracker.track_if_new(make_grant("client-spa", "alice", authorization_id="a1"))
        tracker.track_if_new(make_grant("client-backend", "alice", authorization_id="a2"))
        tracker.track_if_new(make_grant("client-spa", "bob", authorization_id="a3"))

        assert len(history_rows(session_factory, "user-alice", "client-spa")) == 1
        assert len(history_rows(session_factory, "user-alice", "client-backend")) == 1
        assert len(history_rows(session_factory, "user-bob", "client-spa")) == 1


class TestMetadataCapture:
    """Tests for request metadata on tracked grants."""

    def test_metadata_stored_on_row(self, tracker, session_factory, users, clients):
        """Should copy the captured request metadata onto the new row."""
        metadata = RequestMetadata(
            ip_address="203.0.113.9",
            user_agent="Mozilla/5.0",
            browser="Firefox",
            device_type="Computer",
            os="Linux",
            country="France",
            city="Paris",
        )

        tracker.track_if_new(make_grant("client-spa", "alice"), lambda: metadata)

        (row,) = history_rows(session_factory, "user-alice", "client-spa")
        assert row.ip_address == "203.0.113.9"
        assert row.browser == "Firefox"
        assert (row.country, row.city) == ("France", "Paris")

    def test_metadata_not_captured_when_nothing_written(self, tracker, users, clients):
        """Should not call the capture callable for an unchanged grant."""
        tracker.track_if_new(make_grant("client-spa", "alice", authorization_id="a1"))
        capture = MagicMock(return_value=RequestMetadata())

        tracker.track_if_new(make_grant("client-spa", "alice", authorization_id="a2"), capture)

        capture.assert_not_called()

    def test_missing_metadata_leaves_columns_empty(self, tracker, session_factory, users, clients):
        """Should store a row without request context when none is available."""
        tracker.track_if_new(make_grant("client-spa", "alice"))

        (row,) = history_rows(session_factory, "user-alice", "client-spa")
        assert row.ip_address is None
        assert row.country is None


class TestFailureIsolation:
    """Tests that tracking failures never propagate."""

    def test_unknown_user(self, tracker, session_factory, users, clients):
        """Should report failure for an unknown principal."""
        outcome = tracker.track_if_new(make_grant("client-spa", "mallory"))

        assert outcome == TrackingOutcome.FAILED

    def test_database_error_is_swallowed(self, locks, clock):
        """Should return FAILED when the database is unavailable."""
        session_factory = MagicMock(side_effect=RuntimeError("database is down"))
        tracker = AuthorizationTrackingService(session_factory=session_factory, locks=locks, clock=clock)

        outcome = tracker.track_if_new(make_grant("client-spa", "alice"))

        assert outcome == TrackingOutcome.FAILED

    def test_capture_error_rolls_back(self, tracker, session_factory, users, clients):
        """Should leave the previous row active when the write is aborted."""
        tracker.track_if_new(make_grant("client-spa", "alice", scopes=["openid"], authorization_id="a1"))

        def broken_capture():
            raise ValueError("bad header")

        outcome = tracker.track_if_new(
            make_grant("client-spa", "alice", scopes=["openid", "email"], authorization_id="a2"),
            broken_capture,
        )

        assert outcome == TrackingOutcome.FAILED
        (row,) = history_rows(session_factory, "user-alice", "client-spa")
        assert row.is_active is True
        assert row.scopes == frozenset({"openid"})

    def test_lock_released_after_failure(self, tracker, locks, users, clients):
        """Should not leave the pair lock behind after an error."""
        tracker.track_if_new(
            make_grant("client-spa", "alice"),
            MagicMock(side_effect=ValueError("bad header")),
        )

        assert len(locks) == 0


class TestConcurrentGrants:
    """Tests for simultaneous grants on the same pair."""

    def test_single_active_row(self, tmp_path):
        """Should end with exactly one active row when grants race."""
        engine = create_engine(
            f"sqlite:///{tmp_path / 'history.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(engine)
        factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        with factory() as session:
            session.add(User(id="user-alice", username="alice"))
            session.commit()

        tracker = AuthorizationTrackingService(session_factory=factory, locks=PairLockRegistry())
        outcomes = []
        barrier = threading.Barrier(6)

        def grant(index):
            barrier.wait()
            outcomes.append(
                tracker.track_if_new(
                    make_grant("client-spa", "alice", scopes=["openid"], authorization_id=f"a{index}")
                )
            )

        threads = [threading.Thread(target=grant, args=(i,)) for i in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        rows = history_rows(factory, "user-alice", "client-spa")
        engine.dispose()

        assert len(rows) == 1
        assert rows[0].is_active is True
        assert outcomes.count(TrackingOutcome.CREATED) == 1
        assert outcomes.count(TrackingOutcome.UNCHANGED) == 5
