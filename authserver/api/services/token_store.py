"""
Token store adapters.

The token engine keeps its live authorizations (authorization codes, access
and refresh tokens) in a volatile store. This core never issues tokens; it
only needs to find every live authorization of a (client, principal) pair and
delete them one by one when the user revokes access, and to observe saves so
that fresh grants are recorded in the authorization history.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

import redis

from authserver.core.settings import settings

if TYPE_CHECKING:
    from .authorization_tracking_service import AuthorizationTrackingService
    from .request_metadata import RequestMetadata

logger = logging.getLogger(__name__)

AUTHORIZATION_CODE_GRANT = "authorization_code"


@dataclass
class GrantAuthorization:
    """A live authorization as the token engine stores it."""

    id: str
    registered_client_id: str
    principal_name: str
    authorization_grant_type: str = AUTHORIZATION_CODE_GRANT
    authorized_scopes: list[str] = field(default_factory=list)
    authorization_code: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None  # epoch seconds of the longest-lived token

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> "GrantAuthorization":
        return cls(**json.loads(raw))


class TokenStore:
    """Interface of the token engine's authorization store."""

    def save(self, authorization: GrantAuthorization) -> None:
        raise NotImplementedError

    def get(self, authorization_id: str) -> Optional[GrantAuthorization]:
        raise NotImplementedError

    def find_by_client_and_principal(
        self, registered_client_id: str, principal_name: str
    ) -> list[GrantAuthorization]:
        raise NotImplementedError

    def delete(self, authorization_id: str) -> bool:
        raise NotImplementedError


class InMemoryTokenStore(TokenStore):
    """
    Dict-backed store for development and tests.

    Single process only; data is lost on restart.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._authorizations: dict[str, GrantAuthorization] = {}
        self._clock = clock
        self.lock = threading.Lock()

    def _is_expired(self, authorization: GrantAuthorization) -> bool:
        return authorization.expires_at is not None and authorization.expires_at <= self._clock()

    def save(self, authorization: GrantAuthorization) -> None:
        with self.lock:
            self._authorizations[authorization.id] = authorization

    def get(self, authorization_id: str) -> Optional[GrantAuthorization]:
        with self.lock:
            authorization = self._authorizations.get(authorization_id)
            if authorization is not None and self._is_expired(authorization):
                del self._authorizations[authorization_id]
                return None
            return authorization

    def find_by_client_and_principal(
        self, registered_client_id: str, principal_name: str
    ) -> list[GrantAuthorization]:
        with self.lock:
            return [
                a
                for a in self._authorizations.values()
                if a.registered_client_id == registered_client_id
                and a.principal_name == principal_name
                and not self._is_expired(a)
            ]

    def delete(self, authorization_id: str) -> bool:
        with self.lock:
            return self._authorizations.pop(authorization_id, None) is not None

    def __len__(self) -> int:
        with self.lock:
            return len(self._authorizations)


class RedisTokenStore(TokenStore):
    """
    Redis-backed store.

    Layout:
      {prefix}:{id}                                  JSON authorization, TTL = token expiry
      {prefix}:client_principal:{client}:{principal} set of authorization ids
    """

    def __init__(self, client: redis.Redis, key_prefix: Optional[str] = None):
        self.client = client
        self.key_prefix = key_prefix or settings.token_store_key_prefix

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "RedisTokenStore":
        return cls(redis.Redis.from_url(url or settings.redis_url))

    def _key(self, authorization_id: str) -> str:
        return f"{self.key_prefix}:{authorization_id}"

    def _index_key(self, registered_client_id: str, principal_name: str) -> str:
        return f"{self.key_prefix}:client_principal:{registered_client_id}:{principal_name}"

    def save(self, authorization: GrantAuthorization) -> None:
        key = self._key(authorization.id)
        index_key = self._index_key(
            authorization.registered_client_id, authorization.principal_name
        )
        ttl = None
        if authorization.expires_at is not None:
            ttl = max(1, int(authorization.expires_at - time.time()))

        pipe = self.client.pipeline()
        pipe.set(key, authorization.to_json(), ex=ttl)
        pipe.sadd(index_key, authorization.id)
        pipe.execute()

    def get(self, authorization_id: str) -> Optional[GrantAuthorization]:
        raw = self.client.get(self._key(authorization_id))
        return GrantAuthorization.from_json(raw) if raw is not None else None

    def find_by_client_and_principal(
        self, registered_client_id: str, principal_name: str
    ) -> list[GrantAuthorization]:
        index_key = self._index_key(registered_client_id, principal_name)
        ids = sorted(
            member.decode() if isinstance(member, bytes) else member
            for member in self.client.smembers(index_key)
        )
        if not ids:
            return []

        values = self.client.mget([self._key(i) for i in ids])
        found = []
        stale = []
        for authorization_id, raw in zip(ids, values):
            if raw is None:
                stale.append(authorization_id)
            else:
                found.append(GrantAuthorization.from_json(raw))

        if stale:
            # Values expired on their own; drop the dangling index entries
            self.client.srem(index_key, *stale)
        return found

    def delete(self, authorization_id: str) -> bool:
        authorization = self.get(authorization_id)
        pipe = self.client.pipeline()
        pipe.delete(self._key(authorization_id))
        if authorization is not None:
            pipe.srem(
                self._index_key(authorization.registered_client_id, authorization.principal_name),
                authorization_id,
            )
        deleted = pipe.execute()[0]
        return bool(deleted)


class TrackingTokenStore(TokenStore):
    """
    Decorates the token engine's store so that every save is offered to the
    authorization lifecycle tracker. Tracking never fails a save.
    """

    def __init__(
        self,
        delegate: TokenStore,
        tracker: "AuthorizationTrackingService",
        capture_metadata: Optional[Callable[[], "RequestMetadata"]] = None,
    ):
        self.delegate = delegate
        self.tracker = tracker
        self.capture_metadata = capture_metadata

    def save(
        self,
        authorization: GrantAuthorization,
        capture_metadata: Optional[Callable[[], "RequestMetadata"]] = None,
    ) -> None:
        self.delegate.save(authorization)
        self.tracker.track_if_new(authorization, capture_metadata or self.capture_metadata)

    def get(self, authorization_id: str) -> Optional[GrantAuthorization]:
        return self.delegate.get(authorization_id)

    def find_by_client_and_principal(
        self, registered_client_id: str, principal_name: str
    ) -> list[GrantAuthorization]:
        return self.delegate.find_by_client_and_principal(registered_client_id, principal_name)

    def delete(self, authorization_id: str) -> bool:
        return self.delegate.delete(authorization_id)
