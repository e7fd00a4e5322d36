"""
Shared service dependencies.

The token engine's protocol endpoints save authorizations through
``get_tracking_token_store`` so that every new grant is recorded in the
authorization history along with the request it came from.
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from authserver.api.services.authorization_tracking_service import AuthorizationTrackingService
from authserver.api.services.geolocation import GeoLocationService
from authserver.api.services.request_metadata import RequestMetadataExtractor
from authserver.api.services.token_store import RedisTokenStore, TokenStore, TrackingTokenStore


@lru_cache(maxsize=1)
def get_token_store() -> TokenStore:
    """Token store shared by all requests; overridden in tests."""
    return RedisTokenStore.from_url()


@lru_cache(maxsize=1)
def get_geolocation_service() -> GeoLocationService:
    """Opens the GeoLite2 database once, as configured."""
    return GeoLocationService.from_settings()


@lru_cache(maxsize=1)
def get_metadata_extractor() -> RequestMetadataExtractor:
    return RequestMetadataExtractor(get_geolocation_service())


@lru_cache(maxsize=1)
def get_authorization_tracker() -> AuthorizationTrackingService:
    return AuthorizationTrackingService()


def get_tracking_token_store(
    request: Request,
    token_store: TokenStore = Depends(get_token_store),
    extractor: RequestMetadataExtractor = Depends(get_metadata_extractor),
    tracker: AuthorizationTrackingService = Depends(get_authorization_tracker),
) -> TrackingTokenStore:
    """
    Token store for one protocol request.

    Request metadata is only extracted if the save records a new grant.
    """
    return TrackingTokenStore(
        token_store,
        tracker,
        capture_metadata=lambda: extractor.extract(request),
    )
