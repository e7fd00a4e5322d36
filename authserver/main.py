# authserver/main.py
from __future__ import annotations

from fastapi import FastAPI

from authserver.api.middleware import DynamicCORSMiddleware
from authserver.core.settings import settings
from authserver.utils.logging_setup import setup_logging

# Import routers (routers should NOT call app.include_router() themselves)
from authserver.api.routers.health_router import router as health_router
from authserver.api.routers.authorization_router import router as authorization_router


def create_app() -> FastAPI:
    setup_logging(level=settings.log_level)

    app = FastAPI(
        title="Authorization Server API",
        version="0.1.0",
    )

    # Dynamic CORS on the protocol endpoints; origins come from client registrations
    app.add_middleware(DynamicCORSMiddleware)

    # Routers
    app.include_router(health_router)
    app.include_router(authorization_router)

    return app


# Uvicorn entrypoint: uvicorn authserver.main:app --reload
app = create_app()
