"""
ezla/services/payment_status.py: Маппинг статусов шлюза на PaymentStatus.
"""

from __future__ import annotations

from ezla.models.enums import PaymentStatus

_GATEWAY_STATUS_MAP: dict[str, PaymentStatus] = {
    "SUCCESS": PaymentStatus.SUCCESS,
    "CONFIRMED": PaymentStatus.SUCCESS,
    "FAILURE": PaymentStatus.FAIL,
    "CANCELLED": PaymentStatus.FAIL,
    "REJECTED": PaymentStatus.FAIL,
}


def map_gateway_status(raw: str | None) -> PaymentStatus:
    """
    Перевести статус шлюза во внутренний словарь.

    Функция тотальна: неизвестные и пустые значения дают ``pending``.
    Сравнение точное (строки шлюза всегда в верхнем регистре).
    """
    return _GATEWAY_STATUS_MAP.get((raw or "").strip(), PaymentStatus.PENDING)
