"""
Authorization Server API Tests

This package contains tests for the authorization lifecycle services:
- Tracking, event reconstruction, revocation and management services
- Authorization history queries
- Dynamic CORS resolution and its ASGI middleware
- Request metadata, geolocation and token store adapters
- User-facing authorization endpoints
"""
