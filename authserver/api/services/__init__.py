"""
Authorization Server Services

This package contains service modules that implement the authorization
lifecycle and the trust-boundary checks around the protocol endpoints.

Services:
- authorization_tracking_service: Records new grants and scope additions
- authorization_event_service: Rebuilds the authorization timeline of a client
- authorization_revocation_service: Revokes an authorization and purges its tokens
- authorization_management_service: Lists a user's active and past authorizations
- cors_service: Per-request CORS policy for the protocol endpoints
- request_metadata: IP, user agent and location of a consenting request
- geolocation: MaxMind GeoLite2 city lookups
- token_store: Live authorization store adapters (Redis, in-memory)
- pair_locks: Per (user, client) serialization of lifecycle writes
"""
