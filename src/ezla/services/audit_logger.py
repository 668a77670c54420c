"""
Журнал аудита e-ZLA (таблица ``audit_log``).

Без пула PostgreSQL (memory store) записи копятся в ограниченной очереди
в памяти. Ошибка записи аудита не прерывает обработку запроса.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ezla import database

logger = logging.getLogger(__name__)

_INSERT = """
INSERT INTO audit_log (action, entity_type, entity_id, user_id, details)
VALUES ($1, $2, $3, $4, $5)
"""


class EzlaAuditAction(str, Enum):
    PAYMENT_INITIATED = "payment.initiated"
    PAYMENT_STATUS_CHANGED = "payment.status_changed"
    PAYMENT_HASH_MISMATCH = "payment.hash_mismatch"

    CASE_CREATED = "case.created"
    CASE_SUBMITTED = "case.submitted"
    CASE_STATUS_UPDATED = "case.status_updated"

    ACCOUNT_REGISTER = "account.register"
    ACCOUNT_DELETED = "account.deleted"
    CONSENT_UPDATED = "consent.updated"

    VISIT_CREATED = "visit.created"
    VISIT_FAILED = "visit.failed"


def _action_name(action: EzlaAuditAction | str) -> str:
    return action.value if isinstance(action, EzlaAuditAction) else action


class EzlaAuditLogger:
    def __init__(self, max_buffer_size: int = 10000) -> None:
        self._pending: deque[dict[str, Any]] = deque(maxlen=max_buffer_size)

    async def log(
        self,
        action: EzlaAuditAction | str,
        entity_type: str,
        entity_id: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = {
            "action": _action_name(action),
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "user_id": str(user_id) if user_id else None,
            "details": details or {},
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        if not database.pool_ready():
            self._pending.append(entry)
            return
        try:
            async with database.get_connection() as conn:
                await conn.execute(
                    _INSERT,
                    entry["action"], entry["entity_type"], entry["entity_id"],
                    entry["user_id"], entry["details"],
                )
        except Exception as exc:
            logger.warning("audit_log insert failed for %s, kept in memory: %s", entry["action"], exc)
            self._pending.append(entry)

    def buffered(self, action: EzlaAuditAction | str | None = None) -> list[dict[str, Any]]:
        """Записи, оставшиеся в памяти (все или одного действия)."""
        if action is None:
            return list(self._pending)
        name = _action_name(action)
        return [entry for entry in self._pending if entry["action"] == name]


_audit_logger: EzlaAuditLogger | None = None


def get_audit_logger() -> EzlaAuditLogger:
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = EzlaAuditLogger()
    return _audit_logger
