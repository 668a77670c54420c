"""Pytest fixtures for the e-ZLA service tests.

Provides:
- memory store activated for the whole session, reset before every test
- client: async HTTP client bound to the FastAPI app (no lifespan, no DB)
- api_key: a registered partner API key
- guest_profile / draft_case: ready-made domain records
- itn_payload: factory of signed ITN notifications
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator, Callable
from datetime import date
from typing import Any

os.environ.update({
    "APP_ENV": "test",
    "AUTOPAY_SERVICE_ID": "100123",
    "AUTOPAY_HASH_KEY": "itn-shared-secret",
    "AUTOPAY_TEST_MODE": "true",
    "JWT_SECRET_KEY": "test-jwt-secret-0123456789",
    "STORAGE_DIR": tempfile.mkdtemp(prefix="ezla-storage-"),
    "MED24_API_URL": "",
    "MED24_API_USERNAME": "",
    "MED24_API_PASSWORD": "",
    "NATS_URL": "nats://127.0.0.1:1",
})

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from ezla import memory_store  # noqa: E402
from ezla.config import get_settings  # noqa: E402
from ezla.services import audit_logger, visit_service  # noqa: E402

get_settings.cache_clear()
memory_store.activate_memory_store()

SERVICE_ID = "100123"
HASH_KEY = "itn-shared-secret"
PARTNER_KEY = "partner-test-key"

PROFILE_DATA: dict[str, Any] = {
    "first_name": "Jan",
    "last_name": "Kowalski",
    "email": "jan.kowalski@example.com",
    "pesel": "90010112345",
    "phone": "+48600100200",
    "street": "Marszałkowska",
    "house_no": "10",
    "flat_no": "5",
    "postcode": "00-001",
    "city": "Warszawa",
    "consent_terms": True,
    "consent_truth": True,
    "consent_marketing_email": True,
}

CASE_DATA: dict[str, Any] = {
    "illness_start": "2025-01-30",
    "illness_end": "2025-02-02",
    "recipient_type": "pl_employer",
    "main_category": "cold_pain",
    "symptom_duration": "2_3",
    "free_text_reason": "Gorączka i ból gardła od dwóch dni.",
    "symptoms": ["fever", "sore_throat"],
    "employers": [{"nip": "5250001009"}],
}


@pytest.fixture(autouse=True)
def _clean_state() -> None:
    """Fresh in-memory tables and audit buffer for every test."""
    memory_store.reset()
    audit_logger._audit_logger = None


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the e-ZLA app."""
    from ezla.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await visit_service.wait_for_pending_bookings(timeout=5)


@pytest_asyncio.fixture
async def api_key() -> str:
    from ezla.db.repositories import api_key_repo
    from ezla.dependencies import hash_api_key

    await api_key_repo.create_api_key("test-partner", hash_api_key(PARTNER_KEY))
    return PARTNER_KEY


@pytest_asyncio.fixture
async def guest_profile() -> dict:
    from ezla.db.repositories import profile_repo

    return await profile_repo.create_profile(dict(PROFILE_DATA), user_id=None, is_guest=True)


@pytest_asyncio.fixture
async def draft_case(guest_profile: dict) -> dict:
    from ezla.db.repositories import case_repo

    fields = {
        **CASE_DATA,
        "illness_start": date(2025, 1, 30),
        "illness_end": date(2025, 2, 2),
    }
    return await case_repo.create_case(guest_profile["id"], "EZ-TEST00001", fields)


@pytest.fixture
def itn_payload() -> Callable[..., dict[str, str]]:
    """Factory of ITN notifications signed with the test secret."""
    from ezla.services.payment_hash import compute_webhook_hash

    def _build(
        order_id: str,
        status: str = "SUCCESS",
        *,
        remote_id: str = "RMT-0001",
        amount: str = "79.00",
        currency: str = "PLN",
        service_id: str = SERVICE_ID,
        secret: str = HASH_KEY,
    ) -> dict[str, str]:
        return {
            "serviceID": service_id,
            "orderID": order_id,
            "remoteID": remote_id,
            "amount": amount,
            "currency": currency,
            "paymentStatus": status,
            "hash": compute_webhook_hash(
                service_id, order_id, remote_id, amount, currency, status, secret,
            ),
        }

    return _build
