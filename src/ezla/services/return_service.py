"""
ezla/services/return_service.py: Проверка возврата браузера со шлюза.

Синхронный, неавторитетный путь: только читает дело и никогда не меняет
платёжный статус. Основной вход: ``ServiceID/OrderID/Hash``; при их
отсутствии используются запасные идентификаторы (по порядку):

    a) ``case``            номер дела из старых ссылок: только отображение,
                            статус неизвестен, поиск не выполняется;
    b) ``id``              компактный идентификатор (UUID, 32 hex или номер дела);
    c) ``cached_case_id``  id дела, сохранённый клиентом на прошлом шаге.

Локальный кэш клиента очищается только при прочитанном статусе success.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError as PydanticValidationError

from ezla.config import require_autopay
from ezla.db.repositories import case_repo
from ezla.exceptions import BadRequestError, HashVerificationError, NotFoundError
from ezla.models.enums import CaseStatus, DisplayState, PaymentStatus
from ezla.models.payment import ReturnVerification, ReturnVerifyRequest
from ezla.services.audit_logger import EzlaAuditAction, get_audit_logger
from ezla.services.case_service import normalize_case_number
from ezla.services.payment_hash import verify_return_hash
from ezla.services.payment_service import resolve_order_id

logger = logging.getLogger(__name__)

_DISPLAY_STATES = {
    PaymentStatus.SUCCESS: DisplayState.CONFIRMED,
    PaymentStatus.PENDING: DisplayState.PENDING,
    PaymentStatus.FAIL: DisplayState.FAILED,
}


def parse_return_request(body: bytes) -> ReturnVerifyRequest:
    """
    Разобрать JSON-тело, пересланное страницей подтверждения.

    Пустое тело равно ``{}`` (дальше: 400 ``Missing required parameters``).

    Raises:
        BadRequestError: тело не JSON-объект или поля не строки.
    """
    try:
        raw = json.loads(body) if body.strip() else {}
    except (ValueError, UnicodeDecodeError) as exc:
        raise BadRequestError("Request body is not valid JSON") from exc
    if not isinstance(raw, dict):
        raise BadRequestError("Request body must be a JSON object")
    try:
        return ReturnVerifyRequest.model_validate(raw)
    except PydanticValidationError as exc:
        fields = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        raise BadRequestError("Invalid return parameters", details={"fields": fields}) from exc


async def _find_case(identifier: str) -> dict | None:
    """UUID / 32 hex → поиск по id; иначе: по номеру дела."""
    case_id = resolve_order_id(identifier)
    if case_id:
        return await case_repo.get_case_by_id(case_id)
    try:
        number = normalize_case_number(identifier)
    except BadRequestError:
        return None
    return await case_repo.get_case_by_number(number)


def _report(case: dict, source: str, verified: bool) -> ReturnVerification:
    payment_status = PaymentStatus(case["payment_status"])
    return ReturnVerification(
        valid=True,
        verified=verified,
        source=source,
        case_id=case["id"],
        case_number=case["case_number"],
        payment_status=payment_status,
        case_status=CaseStatus(case["status"]),
        display_state=_DISPLAY_STATES[payment_status],
        clear_local_cache=payment_status == PaymentStatus.SUCCESS,
    )


async def verify_return(request: ReturnVerifyRequest) -> ReturnVerification:
    """
    Проверить параметры возврата и сообщить текущий статус дела.

    Raises:
        BadRequestError: нет ни параметров шлюза, ни запасных идентификаторов.
        ConfigurationError: Autopay не настроен (для любого набора параметров).
        HashVerificationError: неверный ServiceID или подпись.
        NotFoundError: дело не найдено.
    """
    settings = require_autopay()
    if request.has_gateway_params:
        valid_service = request.service_id == settings.autopay_service_id
        if not valid_service or not verify_return_hash(
            request.service_id, request.order_id, request.hash, settings.autopay_hash_key,
        ):
            reason = "hash" if valid_service else "service_id"
            logger.warning("Return URL verification failed (%s): order=%s", reason, request.order_id)
            await get_audit_logger().log(
                EzlaAuditAction.PAYMENT_HASH_MISMATCH, "payment", request.order_id,
                details={"reason": reason, "source": "return_url"},
            )
            raise HashVerificationError("Invalid ServiceID" if reason == "service_id" else "Invalid hash")

        case = await _find_case(request.order_id)
        if not case:
            raise NotFoundError("Case", request.order_id)
        return _report(case, source="gateway", verified=True)

    if request.case:
        logger.info("Return without gateway params, legacy case number %s", request.case)
        return ReturnVerification(
            valid=True,
            source="legacy_case_number",
            case_number=request.case.upper(),
            display_state=DisplayState.UNKNOWN,
        )

    for source, identifier in (("compact_id", request.id), ("cached_case_id", request.cached_case_id)):
        if identifier:
            case = await _find_case(identifier)
            if not case:
                raise NotFoundError("Case", identifier)
            return _report(case, source=source, verified=False)

    raise BadRequestError("Missing required parameters")
