"""
API Package

Modules:
- crud: Authorization history store access layer and lookups
- services: Lifecycle tracking, event reconstruction, revocation, CORS
- middleware: ASGI middleware applying the dynamic CORS decision
- routers: FastAPI routers
"""
