from __future__ import annotations

from fastapi import APIRouter

from authserver.core.settings import settings

router = APIRouter(prefix=settings.api_prefix, tags=["health"])


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}
