"""
Доменные события e-ZLA в NATS.

Subjects:
    ezla.payment.status_changed  ITN перевёл дело в success/fail
    ezla.case.submitted          оплаченное дело ушло врачу

Шина необязательна: без соединения событие только пишется в debug-лог.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import nats
from nats.aio.client import Client as NATSClient

from ezla.config import get_settings

logger = logging.getLogger(__name__)

SUBJECT_PAYMENT_STATUS = "ezla.payment.status_changed"
SUBJECT_CASE_SUBMITTED = "ezla.case.submitted"

_nc: NATSClient | None = None


def _live() -> NATSClient | None:
    return _nc if _nc is not None and _nc.is_connected else None


async def connect() -> NATSClient | None:
    global _nc
    if _live() is not None:
        return _nc
    url = get_settings().nats_url
    try:
        _nc = await nats.connect(url, connect_timeout=2, allow_reconnect=False)
    except Exception as exc:
        logger.warning("Event bus %s unreachable, events disabled: %s", url, exc)
        _nc = None
    else:
        logger.info("Event bus connected: %s", url)
    return _nc


async def disconnect() -> None:
    global _nc
    client, _nc = _live(), None
    if client is not None:
        await client.drain()


async def publish(subject: str, data: dict[str, Any]) -> None:
    client = _live()
    if client is None:
        logger.debug("No event bus, dropped %s", subject)
        return
    try:
        await client.publish(subject, json.dumps(data, default=str).encode("utf-8"))
    except Exception as exc:
        logger.warning("Could not publish %s: %s", subject, exc)


async def emit_payment_status_changed(case_id: str, case_number: str, payment_status: str) -> None:
    await publish(SUBJECT_PAYMENT_STATUS, {
        "event": "payment.status_changed",
        "case_id": case_id,
        "case_number": case_number,
        "payment_status": payment_status,
    })


async def emit_case_submitted(case_id: str, case_number: str) -> None:
    await publish(SUBJECT_CASE_SUBMITTED, {
        "event": "case.submitted",
        "case_id": case_id,
        "case_number": case_number,
    })
