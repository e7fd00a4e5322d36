"""
API Routers

This package contains FastAPI routers that define the API endpoints.

Routers:
- health_router: Health check endpoint
- authorization_router: A user's authorizations, their timeline and revocation
"""

from .authorization_router import router as authorization_router
from .health_router import router as health_router

__all__ = [
    "authorization_router",
    "health_router",
]
