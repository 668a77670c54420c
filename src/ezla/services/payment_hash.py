"""
ezla/services/payment_hash.py: Подписи сообщений шлюза Autopay.

Все подписи: SHA-256 (lowercase hex) от значений, соединённых через ``|``,
с общим секретом в конце:

    • return URL:   SHA256(serviceID|orderID|secret)
    • ITN-вебхук:   SHA256(serviceID|orderID|remoteID|amount|currency|paymentStatus|secret)
    • ссылка оплаты: SHA256(serviceID|orderID|amount|currency|secret)

Формулы намеренно раздельны: подпись одного типа сообщения никогда не
принимается для другого. Сравнение: без учёта регистра, за постоянное время.
"""

from __future__ import annotations

import hashlib
import hmac


def _digest(*parts: str) -> str:
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def _matches(expected: str, received: str | None) -> bool:
    if not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.strip().lower().encode("utf-8"))


def compute_return_hash(service_id: str, order_id: str, secret: str) -> str:
    """Подпись параметров return URL."""
    return _digest(service_id, order_id, secret)


def verify_return_hash(service_id: str, order_id: str, received_hash: str | None, secret: str) -> bool:
    """Проверить подпись return URL."""
    return _matches(compute_return_hash(service_id, order_id, secret), received_hash)


def compute_webhook_hash(
    service_id: str,
    order_id: str,
    remote_id: str,
    amount: str,
    currency: str,
    payment_status: str,
    secret: str,
) -> str:
    """Подпись ITN-уведомления."""
    return _digest(service_id, order_id, remote_id, amount, currency, payment_status, secret)


def verify_webhook_hash(
    service_id: str,
    order_id: str,
    remote_id: str,
    amount: str,
    currency: str,
    payment_status: str,
    received_hash: str | None,
    secret: str,
) -> bool:
    """Проверить подпись ITN-уведомления."""
    expected = compute_webhook_hash(
        service_id, order_id, remote_id, amount, currency, payment_status, secret,
    )
    return _matches(expected, received_hash)


def payment_link_hash(service_id: str, order_id: str, amount: str, currency: str, secret: str) -> str:
    """Подпись исходящей ссылки на оплату."""
    return _digest(service_id, order_id, amount, currency, secret)
