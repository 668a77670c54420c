"""
ezla/services/payment_service.py: Старт оплаты через шлюз Autopay.

OrderID ссылки: UUID дела без дефисов (32 hex-символа); ITN-вебхук и
return URL переводят его обратно в UUID через ``resolve_order_id()``.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode
from uuid import UUID

from ezla.config import require_autopay
from ezla.db.repositories import case_repo
from ezla.exceptions import ConflictError, NotFoundError
from ezla.models.enums import PaymentMethod, PaymentStatus
from ezla.models.payment import PaymentInitRequest, PaymentInitResponse
from ezla.services.audit_logger import EzlaAuditAction, get_audit_logger
from ezla.services.payment_hash import payment_link_hash

logger = logging.getLogger(__name__)

# Коды шлюзов Autopay; для перевода банк выбирает пользователь.
GATEWAY_IDS: dict[PaymentMethod, int] = {
    PaymentMethod.BLIK: 509,
    PaymentMethod.CARD: 1500,
}


def order_id_for(case_id: UUID) -> str:
    return case_id.hex


def resolve_order_id(order_id: str) -> UUID | None:
    """OrderID (32 hex или UUID с дефисами) → UUID дела; None, если не UUID."""
    try:
        return UUID(order_id.strip())
    except (ValueError, AttributeError):
        return None


async def initiate_payment(request: PaymentInitRequest) -> PaymentInitResponse:
    """
    Перевести дело в ожидание оплаты и собрать подписанную ссылку на шлюз.

    Raises:
        ConfigurationError: Autopay не настроен.
        NotFoundError: дело не найдено.
        ConflictError: дело уже оплачено.
    """
    settings = require_autopay()
    case = await case_repo.get_case_by_id(request.case_id)
    if not case:
        raise NotFoundError("Case", str(request.case_id))
    if case["payment_status"] == PaymentStatus.SUCCESS.value:
        raise ConflictError("Case is already paid", details={"case_number": case["case_number"]})

    method = request.payment_method
    updated = await case_repo.set_payment_pending(request.case_id, method.value)
    if not updated:
        raise ConflictError("Case is already paid", details={"case_number": case["case_number"]})

    order_id = order_id_for(request.case_id)
    amount = f"{settings.payment_amount:.2f}"
    currency = settings.payment_currency
    params = {
        "ServiceID": settings.autopay_service_id,
        "OrderID": order_id,
        "Amount": amount,
        "Currency": currency,
        "Description": f"E-konsultacja medyczna {case['case_number']}",
        "Hash": payment_link_hash(
            settings.autopay_service_id, order_id, amount, currency, settings.autopay_hash_key,
        ),
    }
    if method in GATEWAY_IDS:
        params["GatewayID"] = str(GATEWAY_IDS[method])

    payment_url = f"{settings.autopay_gateway_url}?{urlencode(params)}"
    await get_audit_logger().log(
        EzlaAuditAction.PAYMENT_INITIATED, "case", str(request.case_id),
        details={"payment_method": method.value, "amount": amount},
    )
    logger.info("Payment initiated for case %s (%s)", case["case_number"], method.value)
    return PaymentInitResponse(payment_url=payment_url, case_number=case["case_number"])
