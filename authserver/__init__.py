"""
Authorization server backend

This package holds the authorization-lifecycle and trust-boundary side of the
OAuth2 identity provider: authorization history, revocation, the per-client
event timeline and the dynamic CORS policy for the protocol endpoints.

Packages:
- api: FastAPI routers, middleware, services, and CRUD helpers
- auth: Bearer token verification for the user-facing endpoints
- core: Configuration
- db: Database engine and session management
- models: SQLAlchemy ORM models
- schemas: Pydantic schemas for request/response validation
- cli: Command-line interface tools

Usage:
    # Run the API server
    uvicorn authserver.main:app --reload --port 8000

Environment Variables:
    DATABASE_URL: Database connection URL
    REDIS_URL: Token store connection URL
    LOG_LEVEL: Logging level (default: INFO)
"""

__version__ = "0.1.0"
