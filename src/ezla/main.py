"""
═══════════════════════════════════════════════════════════════════════════════
e-ZLA: точка входа backend-сервиса e-zwolnienie
═══════════════════════════════════════════════════════════════════════════════

``create_app()`` собирает FastAPI-приложение: дела и профили пациентов,
оплата через Autopay (ссылка, ITN, проверка возврата) и визиты Med24.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ezla import __version__, events
from ezla.api import auth, cases, health, partner, payments, profiles, visits
from ezla.config import EzlaSettings, get_settings
from ezla.database import close_pool, get_pool
from ezla.db.migrate import run_migrations
from ezla.exceptions import EzlaError, http_status_for

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("ezla")

_ROUTERS = (auth, profiles, cases, payments, visits, partner, health)

# Сколько ждать фоновые бронирования Med24 при остановке (сек.)
BOOKING_DRAIN_TIMEOUT = 30


# ── Жизненный цикл ───────────────────────────────────────────────────────

def _report_integrations(settings: EzlaSettings) -> None:
    if not settings.autopay_configured:
        logger.warning("Autopay ServiceID/secret not set: payment routes will answer 500")
    if not settings.med24_configured:
        logger.warning("Med24 credentials not set: visits will not be booked")


async def _open_store() -> None:
    """PostgreSQL, если доступен; иначе in-memory хранилище."""
    try:
        pool = await get_pool()
    except Exception as exc:
        from ezla.memory_store import activate_memory_store

        logger.warning("PostgreSQL unreachable (%s); serving from the memory store", exc)
        activate_memory_store()
        return

    try:
        await run_migrations(pool)
    except Exception as exc:
        logger.error("Schema migration failed, continuing with the current schema: %s", exc)


async def _shutdown() -> None:
    from ezla.services.visit_service import wait_for_pending_bookings

    await wait_for_pending_bookings(timeout=BOOKING_DRAIN_TIMEOUT)
    try:
        await events.disconnect()
    except Exception as exc:
        logger.warning("Event bus did not drain cleanly: %s", exc)
    await close_pool()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("e-ZLA %s starting (env=%s)", __version__, settings.app_env)
    _report_integrations(settings)

    await _open_store()
    await events.connect()

    yield

    await _shutdown()
    logger.info("e-ZLA stopped")


# ── Ответ на доменные ошибки ─────────────────────────────────────────────

async def handle_ezla_error(request: Request, exc: EzlaError) -> JSONResponse:
    code = http_status_for(exc)
    if code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    body = {
        "code": exc.code,
        "message": exc.message,
        "details": exc.details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(status_code=code, content={"error": body})


def create_app() -> FastAPI:
    settings = get_settings()
    public_docs = settings.app_env != "production"

    app = FastAPI(
        title="e-ZLA",
        description=(
            "Sick-leave e-consultation backend: cases, patient profiles, "
            "Autopay payments and Med24 visit booking."
        ),
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,
        docs_url="/docs" if public_docs else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if public_docs else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Api-Key"],
    )

    api_v1 = APIRouter(prefix="/api/v1")
    for module in _ROUTERS:
        api_v1.include_router(module.router)
    app.include_router(api_v1)

    app.add_exception_handler(EzlaError, handle_ezla_error)

    @app.get("/", include_in_schema=False)
    async def index():
        return {
            "service": "e-ZLA",
            "version": __version__,
            "health": "/api/v1/health",
            "payments": {
                "initiate": "/api/v1/payments/initiate",
                "itn": "/api/v1/payments/autopay/webhook",
                "verify_return": "/api/v1/payments/autopay/verify-return",
            },
        }

    return app


app = create_app()


def main() -> None:
    """Запуск через ``ezla`` (console script)."""
    settings = get_settings()
    uvicorn.run(
        "ezla.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
