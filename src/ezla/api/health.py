"""
ezla/api/health.py: Health check эндпоинт.

GET /api/v1/health: доступность PostgreSQL и наличие интеграций.
"""

from fastapi import APIRouter

from ezla.config import get_settings
from ezla.database import check_connection

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
async def health():
    db_ok = await check_connection()
    settings = get_settings()
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "autopay": "configured" if settings.autopay_configured else "missing",
        "med24": "configured" if settings.med24_configured else "missing",
        "service": "ezla",
    }
