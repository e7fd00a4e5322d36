"""
ASGI middleware.

Modules:
- dynamic_cors: Per-client CORS policy for the protocol endpoints
"""

from .dynamic_cors import DynamicCORSMiddleware

__all__ = ["DynamicCORSMiddleware"]
