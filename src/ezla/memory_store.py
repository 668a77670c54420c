"""
═══════════════════════════════════════════════════════════════════════════════
e-ZLA: In-Memory хранилище (замена PostgreSQL для локальной разработки)
═══════════════════════════════════════════════════════════════════════════════

Содержит in-memory реализации case_repo, profile_repo, user_repo и
api_key_repo + функцию ``activate_memory_store()`` для monkey-patching.

Условные переходы (оплата, отправка дела) выполняются под asyncio.Lock,
что повторяет семантику UPDATE ... WHERE в PostgreSQL.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

from ezla.db.repositories.case_repo import CASE_FIELDS, VISIT_FIELDS
from ezla.db.repositories.profile_repo import CONSENT_FIELDS, PROFILE_FIELDS

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Хранилища данных
# ═══════════════════════════════════════════════════════════════════════════════
_users: dict[UUID, dict] = {}
_profiles: dict[UUID, dict] = {}
_cases: dict[UUID, dict] = {}
_api_keys: dict[str, dict] = {}
_lock = asyncio.Lock()

_now = lambda: datetime.now(timezone.utc)  # noqa: E731

_CASE_DEFAULTS = {
    "status": "draft", "payment_status": "pending", "payment_psp_ref": None,
    "payment_method": None, "symptoms": [], "chronic_conditions": [],
    "attachment_file_ids": [], "employers": [], "med24_visit_id": None,
    "med24_visit_status": None, "med24_external_tag": None,
    "med24_channel_kind": None, "med24_booking_intent": None,
    "med24_service_id": None, "med24_last_sync_at": None,
}


def reset() -> None:
    """Очистить все in-memory таблицы (используется в тестах)."""
    global _lock
    _lock = asyncio.Lock()
    _users.clear()
    _profiles.clear()
    _cases.clear()
    _api_keys.clear()


# ═══════════════════════════════════════════════════════════════════════════════
# user_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def create_user(email: str, password_hash: str) -> dict:
    uid = uuid4()
    now = _now()
    user = {
        "user_id": uid, "email": email, "password_hash": password_hash,
        "status": "active", "created_at": now, "updated_at": now,
    }
    _users[uid] = user
    logger.info("Memory store: created user <%s>", email)
    return user


async def get_user_by_id(user_id: UUID) -> dict | None:
    return _users.get(user_id)


async def get_user_by_email(email: str) -> dict | None:
    for u in _users.values():
        if u["email"].lower() == email.lower():
            return u
    return None


async def delete_user(user_id: UUID) -> int:
    return 1 if _users.pop(user_id, None) else 0


# ═══════════════════════════════════════════════════════════════════════════════
# profile_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def create_profile(fields: dict, user_id: UUID | None = None, is_guest: bool = True) -> dict:
    pid = uuid4()
    now = _now()
    profile = {c: fields.get(c) for c in PROFILE_FIELDS}
    profile.update({
        "id": pid, "user_id": user_id, "is_guest": is_guest,
        "country": fields.get("country") or "PL",
        "consent_timestamp": None, "consent_ip": None,
        "created_at": now, "updated_at": now,
    })
    for key in ("consent_marketing_email", "consent_marketing_tel"):
        profile[key] = bool(profile.get(key))
    _profiles[pid] = profile
    return profile


async def get_profile_by_id(profile_id: UUID) -> dict | None:
    return _profiles.get(profile_id)


async def get_profile_by_user_id(user_id: UUID) -> dict | None:
    owned = [p for p in _profiles.values() if p["user_id"] == user_id]
    return min(owned, key=lambda p: p["created_at"]) if owned else None


async def update_consents(profile_id: UUID, fields: dict) -> dict | None:
    profile = _profiles.get(profile_id)
    if not profile:
        return None
    profile.update({k: v for k, v in fields.items() if k in CONSENT_FIELDS})
    profile["consent_timestamp"] = profile["updated_at"] = _now()
    return profile


async def delete_profiles_for_user(user_id: UUID) -> int:
    owned = [pid for pid, p in _profiles.items() if p["user_id"] == user_id]
    for pid in owned:
        del _profiles[pid]
    return len(owned)


# ═══════════════════════════════════════════════════════════════════════════════
# case_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def create_case(profile_id: UUID, case_number: str, fields: dict) -> dict:
    cid = uuid4()
    now = _now()
    case = dict(_CASE_DEFAULTS)
    case.update({k: v for k, v in fields.items() if k in CASE_FIELDS and v is not None})
    case.update({
        "id": cid, "case_number": case_number, "profile_id": profile_id,
        "created_at": now, "updated_at": now,
    })
    for key in ("symptoms", "chronic_conditions", "attachment_file_ids", "employers"):
        case[key] = list(case[key])
    _cases[cid] = case
    logger.info("Memory store: created case %s", case_number)
    return case


async def get_case_by_id(case_id: UUID) -> dict | None:
    return _cases.get(case_id)


async def get_case_by_number(case_number: str) -> dict | None:
    for c in _cases.values():
        if c["case_number"] == case_number:
            return c
    return None


async def get_case_with_profile(case_id: UUID) -> dict | None:
    case = _cases.get(case_id)
    if not case:
        return None
    return {**case, "profile": _profiles.get(case["profile_id"])}


async def case_number_exists(case_number: str) -> bool:
    return await get_case_by_number(case_number) is not None


async def set_payment_pending(case_id: UUID, payment_method: str) -> dict | None:
    async with _lock:
        case = _cases.get(case_id)
        if not case or case["payment_status"] == "success":
            return None
        case.update(payment_status="pending", payment_method=payment_method, updated_at=_now())
        return case


async def record_payment_result(case_id: UUID, payment_status: str, psp_ref: str) -> dict | None:
    async with _lock:
        case = _cases.get(case_id)
        if not case or case["payment_status"] != "pending":
            return None
        case.update(payment_status=payment_status, payment_psp_ref=psp_ref, updated_at=_now())
        return case


async def submit_if_draft(case_id: UUID) -> bool:
    async with _lock:
        case = _cases.get(case_id)
        if not case or case["status"] != "draft" or case["payment_status"] != "success":
            return False
        case.update(status="submitted", updated_at=_now())
        return True


async def update_case_status(case_id: UUID, status: str, extra: dict | None = None) -> dict | None:
    case = _cases.get(case_id)
    if not case:
        return None
    case.update({k: v for k, v in (extra or {}).items() if k in VISIT_FIELDS})
    case["status"] = status
    case["updated_at"] = case["med24_last_sync_at"] = _now()
    return case


async def update_visit(case_id: UUID, fields: dict) -> None:
    case = _cases.get(case_id)
    fields = {k: v for k, v in fields.items() if k in VISIT_FIELDS}
    if case and fields:
        case.update(fields)
        case["updated_at"] = case["med24_last_sync_at"] = _now()


async def update_visit_status_by_visit_id(visit_id: str, visit_status: dict) -> int:
    updated = 0
    for case in _cases.values():
        if case["med24_visit_id"] == visit_id:
            case["med24_visit_status"] = visit_status
            case["med24_last_sync_at"] = _now()
            updated += 1
    return updated


async def append_attachment(case_id: UUID, path: str) -> None:
    case = _cases.get(case_id)
    if case and path not in case["attachment_file_ids"]:
        case["attachment_file_ids"].append(path)
        case["updated_at"] = _now()


async def delete_cases_for_user(user_id: UUID) -> int:
    owned = {pid for pid, p in _profiles.items() if p["user_id"] == user_id}
    doomed = [cid for cid, c in _cases.items() if c["profile_id"] in owned]
    for cid in doomed:
        del _cases[cid]
    return len(doomed)


# ═══════════════════════════════════════════════════════════════════════════════
# api_key_repo in-memory
# ═══════════════════════════════════════════════════════════════════════════════

async def create_api_key(name: str, key_hash: str) -> dict:
    key = {
        "id": uuid4(), "name": name, "key_hash": key_hash, "is_active": True,
        "usage_count": 0, "last_used_at": None, "created_at": _now(),
    }
    _api_keys[key_hash] = key
    return key


async def touch_active_key(key_hash: str) -> bool:
    key = _api_keys.get(key_hash)
    if not key or not key["is_active"]:
        return False
    key["usage_count"] += 1
    key["last_used_at"] = _now()
    return True


# ═══════════════════════════════════════════════════════════════════════════════
# Активация in-memory хранилища (monkey-patching)
# ═══════════════════════════════════════════════════════════════════════════════

def activate_memory_store() -> None:
    """
    Подменяет функции в ezla.db.repositories.* на in-memory реализации.

    Вызывается из ezla.main → lifespan() при недоступности PostgreSQL.
    """
    from ezla.db.repositories import api_key_repo, case_repo, profile_repo, user_repo

    # ── user_repo ──
    user_repo.create_user = create_user
    user_repo.get_user_by_id = get_user_by_id
    user_repo.get_user_by_email = get_user_by_email
    user_repo.delete_user = delete_user

    # ── profile_repo ──
    profile_repo.create_profile = create_profile
    profile_repo.get_profile_by_id = get_profile_by_id
    profile_repo.get_profile_by_user_id = get_profile_by_user_id
    profile_repo.update_consents = update_consents
    profile_repo.delete_profiles_for_user = delete_profiles_for_user

    # ── case_repo ──
    case_repo.create_case = create_case
    case_repo.get_case_by_id = get_case_by_id
    case_repo.get_case_by_number = get_case_by_number
    case_repo.get_case_with_profile = get_case_with_profile
    case_repo.case_number_exists = case_number_exists
    case_repo.set_payment_pending = set_payment_pending
    case_repo.record_payment_result = record_payment_result
    case_repo.submit_if_draft = submit_if_draft
    case_repo.update_case_status = update_case_status
    case_repo.update_visit = update_visit
    case_repo.update_visit_status_by_visit_id = update_visit_status_by_visit_id
    case_repo.append_attachment = append_attachment
    case_repo.delete_cases_for_user = delete_cases_for_user

    # ── api_key_repo ──
    api_key_repo.create_api_key = create_api_key
    api_key_repo.touch_active_key = touch_active_key

    logger.warning(
        "🧠 e-ZLA memory store ACTIVATED: all data is in-memory (lost on restart)."
    )
