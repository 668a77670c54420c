"""
ezla/api/payments.py: Эндпоинты оплаты Autopay.

    POST /payments/initiate                подписанная ссылка на шлюз
    POST /payments/autopay/webhook         ITN (ответ: text/plain «OK»)
    POST /payments/autopay/verify-return   проверка return URL

Эндпоинты шлюза отвечают в собственном формате, а не через глобальный
обработчик EzlaError: вебхук: простым текстом, верификатор -
``{"valid": false, "error": ...}``.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ezla.config import require_autopay
from ezla.exceptions import EzlaError, http_status_for
from ezla.models.enums import DisplayState
from ezla.models.payment import (
    PaymentInitRequest,
    PaymentInitResponse,
    ReturnVerification,
)
from ezla.services import payment_service, return_service, webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/initiate",
    response_model=PaymentInitResponse,
    summary="Старт оплаты: ссылка на шлюз Autopay",
)
async def initiate_payment(body: PaymentInitRequest):
    return await payment_service.initiate_payment(body)


@router.post(
    "/autopay/webhook",
    response_class=PlainTextResponse,
    summary="ITN-уведомление Autopay",
)
async def autopay_webhook(request: Request):
    """Проверить подпись ITN и применить результат оплаты к делу."""
    try:
        settings = require_autopay()
        notification = webhook_service.parse_notification(
            request.headers.get("content-type", ""), await request.body(),
        )
        await webhook_service.handle_notification(notification, settings)
    except EzlaError as exc:
        status_code = http_status_for(exc)
        if status_code >= 500:
            logger.error("ITN webhook failed: %s", exc.message)
        return PlainTextResponse(exc.message, status_code=status_code)
    except Exception:
        logger.exception("ITN webhook error")
        return PlainTextResponse("Internal server error", status_code=500)
    return PlainTextResponse("OK")


@router.post(
    "/autopay/verify-return",
    response_model=ReturnVerification,
    summary="Проверка параметров возврата со шлюза",
)
async def verify_return(request: Request):
    """
    Сообщить текущий статус оплаты дела (без изменения статуса).

    Тело читается вручную: ошибка разбора тоже отвечает в формате
    ``{"valid": false, "error", "display_state"}``, а не 422 FastAPI.
    """
    try:
        require_autopay()
        params = return_service.parse_return_request(await request.body())
    except EzlaError as exc:
        return _verification_failed(http_status_for(exc), exc.message, DisplayState.VERIFICATION_ERROR)

    try:
        return await return_service.verify_return(params)
    except EzlaError as exc:
        status_code = http_status_for(exc)
        display = (
            DisplayState.VERIFICATION_ERROR if status_code in (403, 500) else DisplayState.UNKNOWN
        )
        return _verification_failed(status_code, exc.message, display)
    except Exception:
        logger.exception("Return URL verification error")
        return _verification_failed(500, "Internal server error", DisplayState.VERIFICATION_ERROR)


def _verification_failed(status_code: int, error: str, display: DisplayState) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"valid": False, "error": error, "display_state": display.value},
    )
