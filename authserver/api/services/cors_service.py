"""
Dynamic Origin Resolver - per-request CORS policy for the protocol endpoints.

There is no static origin allow-list. For each request against the protocol
endpoints the calling client is identified, and the request's Origin is
allowed only if that client is a browser-side (CLIENT type) application and
registered the origin. Everything else gets no policy, which means the
browser's default same-origin behaviour applies.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.orm import Session, sessionmaker

from authserver.api.crud.client_crud import get_client_by_client_id
from authserver.core.settings import settings
from authserver.db.engine import SessionLocal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorsPolicy:
    """CORS decision for one request; scoped to exactly one origin."""

    allowed_origin: str
    allowed_methods: tuple[str, ...]
    allowed_headers: tuple[str, ...] = ("*",)
    allow_credentials: bool = True
    max_age: int = 3600

    def response_headers(self, requested_headers: Optional[str] = None) -> dict[str, str]:
        """Headers for a preflight response."""
        headers = self.simple_headers()
        headers["Access-Control-Allow-Methods"] = ", ".join(self.allowed_methods)
        if "*" in self.allowed_headers:
            # With credentials the wildcard is not honoured; echo the request instead
            allow_headers = requested_headers or "*"
        else:
            allow_headers = ", ".join(self.allowed_headers)
        headers["Access-Control-Allow-Headers"] = allow_headers
        headers["Access-Control-Max-Age"] = str(self.max_age)
        return headers

    def simple_headers(self) -> dict[str, str]:
        """Headers added to an actual (non-preflight) response."""
        headers = {"Access-Control-Allow-Origin": self.allowed_origin, "Vary": "Origin"}
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers


class CorsRequestAnalyzer:
    """
    Finds the client_id of a protocol request.

    Supports the client authentication modes of the token endpoint:
    - client_secret_basic: HTTP Basic Authorization header
    - client_secret_post: client_id form parameter
    - none (public client with PKCE): client_id query or form parameter
    """

    def extract_client_id(
        self, headers: Mapping[str, str], params: Mapping[str, str]
    ) -> Optional[str]:
        auth_header = headers.get("authorization")
        if auth_header and auth_header.startswith("Basic "):
            client_id = self.extract_client_id_from_basic_auth(auth_header)
            if client_id:
                return client_id

        client_id = params.get("client_id")
        if client_id and client_id.strip():
            return client_id
        return None

    @staticmethod
    def extract_client_id_from_basic_auth(auth_header: str) -> Optional[str]:
        encoded = auth_header[len("Basic "):].strip()
        try:
            credentials = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            # Malformed header; the token endpoint rejects it on its own
            logger.debug("Ignoring malformed Basic authorization header")
            return None

        client_id, colon, _secret = credentials.partition(":")
        if not colon or not client_id:
            return None
        return client_id


class CorsService:
    """Checks a request origin against the calling client's registration."""

    def __init__(self, db: Session):
        self.db = db

    def is_origin_allowed_for_client(self, origin: Optional[str], client_id: Optional[str]) -> bool:
        if not origin or not client_id:
            return False

        client = get_client_by_client_id(self.db, client_id)
        if client is None:
            logger.debug(f"CORS request for unknown client {client_id}")
            return False

        # Only browser-side clients may call the protocol endpoints cross-origin
        if not client.allows_cross_origin:
            logger.debug(f"CORS denied for {client.client_type.value} client {client_id}")
            return False

        return origin in (client.cors_urls or ())


class DynamicCorsResolver:
    """Computes the CORS policy of a request from the calling client's registration."""

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        analyzer: Optional[CorsRequestAnalyzer] = None,
        path_prefix: Optional[str] = None,
        allowed_methods: Optional[list[str]] = None,
        max_age: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.analyzer = analyzer or CorsRequestAnalyzer()
        self.path_prefix = path_prefix or settings.protocol_endpoint_prefix
        self.allowed_methods = tuple(allowed_methods or settings.cors_allowed_methods)
        self.max_age = max_age if max_age is not None else settings.cors_max_age_seconds

    def applies_to(self, path: str) -> bool:
        return path.startswith(self.path_prefix)

    def resolve(
        self, path: str, headers: Mapping[str, str], params: Mapping[str, str]
    ) -> Optional[CorsPolicy]:
        """
        Args:
            path: Request path
            headers: Request headers, case-insensitive lookups
            params: Query and form parameters

        Returns:
            The policy to apply, or None when no cross-origin access is granted
        """
        if not self.applies_to(path):
            return None

        origin = headers.get("origin")
        if not origin:
            return None

        client_id = self.analyzer.extract_client_id(headers, params)
        if client_id is None:
            return None

        with self.session_factory() as db:
            allowed = CorsService(db).is_origin_allowed_for_client(origin, client_id)

        if not allowed:
            logger.info(f"CORS origin {origin} rejected for client {client_id} on {path}")
            return None

        return CorsPolicy(
            allowed_origin=origin,
            allowed_methods=self.allowed_methods,
            allowed_headers=("*",),
            allow_credentials=True,
            max_age=self.max_age,
        )
