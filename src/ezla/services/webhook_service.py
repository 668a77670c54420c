"""
ezla/services/webhook_service.py: Обработка ITN-уведомлений Autopay.

Единственный путь, переводящий ``payment_status`` из pending в терминальное
состояние, и единственный путь, запускающий бронирование визита.

Порядок:
    1. Разбор тела: form-поля, JSON или form-поле ``transactions``
       (Base64-кодированный XML-документ ITN).
    2. Проверка ServiceID и подписи (ошибка → 403, без изменений).
    3. Маппинг статуса шлюза.
    4. Условная запись результата (только пока дело в pending).
    5. При success: атомарный переход draft → submitted; только
       выигравший вызов планирует бронирование визита.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import xml.etree.ElementTree as ET
from typing import Any
from urllib.parse import parse_qs

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import fromstring as parse_xml
from pydantic import ValidationError as PydanticValidationError

from ezla import events
from ezla.config import EzlaSettings
from ezla.db.repositories import case_repo
from ezla.exceptions import BadRequestError, HashVerificationError, NotFoundError
from ezla.models.enums import PaymentStatus
from ezla.models.payment import PaymentNotification
from ezla.services import visit_service
from ezla.services.audit_logger import EzlaAuditAction, get_audit_logger
from ezla.services.payment_hash import verify_webhook_hash
from ezla.services.payment_service import resolve_order_id
from ezla.services.payment_status import map_gateway_status

logger = logging.getLogger(__name__)

ITN_FIELDS = (
    "serviceID", "orderID", "remoteID", "amount", "currency",
    "gatewayID", "paymentDate", "paymentStatus", "hash",
)


# ═══════════════════════════════════════════════════════════════════════════════
# Разбор входящего сообщения
# ═══════════════════════════════════════════════════════════════════════════════

def _xml_text(root: ET.Element, tag: str) -> str | None:
    node = root if root.tag == tag else root.find(f".//{tag}")
    if node is None or node.text is None:
        return None
    return node.text.strip()


def parse_itn_xml(document: str) -> dict[str, Any]:
    """Извлечь поля ITN из XML-документа ``transactionList``."""
    try:
        root = parse_xml(document)
    except DefusedXmlException as exc:
        raise BadRequestError("ITN XML declares entities or a DTD") from exc
    except ET.ParseError as exc:
        raise BadRequestError("Invalid ITN XML document") from exc
    return {tag: value for tag in ITN_FIELDS if (value := _xml_text(root, tag)) is not None}


def decode_transactions(encoded: str) -> dict[str, Any]:
    """Base64 ``transactions`` → поля ITN."""
    try:
        # «+» без percent-encoding приходит из формы как пробел
        document = base64.b64decode(encoded.replace(" ", "+"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise BadRequestError("Invalid transactions parameter encoding") from exc
    return parse_itn_xml(document)


def parse_notification(content_type: str, body: bytes) -> PaymentNotification:
    """
    Разобрать тело ITN-запроса.

    Raises:
        BadRequestError: тело пустое, не разбирается или не содержит полей подписи.
    """
    content_type = (content_type or "").lower()
    if not body:
        raise BadRequestError("Empty notification body")

    if "application/x-www-form-urlencoded" in content_type:
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BadRequestError("Notification body is not valid UTF-8") from exc
        form = {k: v[0] for k, v in parse_qs(text, keep_blank_values=True).items()}
        raw = decode_transactions(form["transactions"]) if "transactions" in form else form
    else:
        try:
            raw = json.loads(body)
        except (ValueError, UnicodeDecodeError) as exc:
            raise BadRequestError("Notification body is not valid JSON") from exc
        if not isinstance(raw, dict):
            raise BadRequestError("Notification body must be an object")

    try:
        return PaymentNotification.model_validate(raw)
    except PydanticValidationError as exc:
        missing = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        raise BadRequestError("Invalid transaction data", details={"fields": missing}) from exc


# ═══════════════════════════════════════════════════════════════════════════════
# Обработка
# ═══════════════════════════════════════════════════════════════════════════════

async def _reject(notification: PaymentNotification, reason: str) -> None:
    logger.warning(
        "ITN rejected (%s): order=%s remote=%s", reason, notification.order_id, notification.remote_id,
    )
    await get_audit_logger().log(
        EzlaAuditAction.PAYMENT_HASH_MISMATCH, "payment", notification.order_id,
        details={"reason": reason, "remote_id": notification.remote_id, "source": "itn"},
    )
    raise HashVerificationError("Invalid ServiceID" if reason == "service_id" else "Invalid hash")


async def handle_notification(notification: PaymentNotification, settings: EzlaSettings) -> dict:
    """
    Проверить и применить ITN-уведомление.

    Returns:
        ``{"case_id", "payment_status", "updated", "submitted"}``.

    Raises:
        HashVerificationError: неверный ServiceID или подпись.
        NotFoundError: дело с таким OrderID не найдено.
    """
    if notification.service_id != settings.autopay_service_id:
        await _reject(notification, "service_id")
    if not verify_webhook_hash(
        notification.service_id,
        notification.order_id,
        notification.remote_id,
        notification.amount,
        notification.currency,
        notification.payment_status,
        notification.hash,
        settings.autopay_hash_key,
    ):
        await _reject(notification, "hash")

    status = map_gateway_status(notification.payment_status)
    case_id = resolve_order_id(notification.order_id)
    case = await case_repo.get_case_by_id(case_id) if case_id else None
    if not case:
        logger.error("ITN for unknown case: order=%s", notification.order_id)
        raise NotFoundError("Case", notification.order_id)

    updated = await case_repo.record_payment_result(case_id, status.value, notification.remote_id)
    if updated:
        logger.info(
            "Case %s payment_status -> %s (remote=%s)",
            case["case_number"], status.value, notification.remote_id,
        )
        if status.is_terminal:
            await get_audit_logger().log(
                EzlaAuditAction.PAYMENT_STATUS_CHANGED, "case", str(case_id),
                details={"payment_status": status.value, "remote_id": notification.remote_id},
            )
            await events.emit_payment_status_changed(str(case_id), case["case_number"], status.value)
    else:
        logger.info(
            "Case %s already %s, ITN %s ignored",
            case["case_number"], case["payment_status"], status.value,
        )

    submitted = False
    if status == PaymentStatus.SUCCESS:
        submitted = await case_repo.submit_if_draft(case_id)
        if submitted:
            logger.info("Case %s submitted, scheduling Med24 visit", case["case_number"])
            await get_audit_logger().log(
                EzlaAuditAction.CASE_SUBMITTED, "case", str(case_id),
                details={"case_number": case["case_number"]},
            )
            await events.emit_case_submitted(str(case_id), case["case_number"])
            visit_service.schedule_booking(case_id)

    return {
        "case_id": case_id,
        "payment_status": status,
        "updated": updated is not None,
        "submitted": submitted,
    }
