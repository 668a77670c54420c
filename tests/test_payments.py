"""Payment initiation: signed gateway link and payment-state guards."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest
from httpx import AsyncClient

from ezla.config import get_settings
from ezla.db.repositories import case_repo
from ezla.services.payment_hash import payment_link_hash

INITIATE_URL = "/api/v1/payments/initiate"


class TestInitiatePayment:
    @pytest.mark.asyncio
    async def test_blik_link(self, client: AsyncClient, draft_case: dict) -> None:
        response = await client.post(
            INITIATE_URL, json={"case_id": str(draft_case["id"]), "payment_method": "blik"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["case_number"] == draft_case["case_number"]

        url = urlparse(body["payment_url"])
        assert f"{url.scheme}://{url.netloc}{url.path}" == get_settings().autopay_test_url
        params = {k: v[0] for k, v in parse_qs(url.query).items()}
        assert params["ServiceID"] == "100123"
        assert params["OrderID"] == draft_case["id"].hex
        assert params["Amount"] == "79.00"
        assert params["Currency"] == "PLN"
        assert params["GatewayID"] == "509"
        assert params["Description"] == f"E-konsultacja medyczna {draft_case['case_number']}"
        assert params["Hash"] == payment_link_hash(
            "100123", draft_case["id"].hex, "79.00", "PLN", "itn-shared-secret",
        )

        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_method"] == "blik"
        assert case["payment_status"] == "pending"

    @pytest.mark.asyncio
    async def test_transfer_has_no_gateway_id(self, client: AsyncClient, draft_case: dict) -> None:
        response = await client.post(INITIATE_URL, json={"case_id": str(draft_case["id"])})

        query = parse_qs(urlparse(response.json()["payment_url"]).query)
        assert "GatewayID" not in query

    @pytest.mark.asyncio
    async def test_retry_after_failed_payment(self, client: AsyncClient, draft_case: dict) -> None:
        await case_repo.record_payment_result(draft_case["id"], "fail", "RMT-1")

        response = await client.post(
            INITIATE_URL, json={"case_id": str(draft_case["id"]), "payment_method": "card"},
        )

        assert response.status_code == 200
        assert (await case_repo.get_case_by_id(draft_case["id"]))["payment_status"] == "pending"

    @pytest.mark.asyncio
    async def test_paid_case_is_conflict(self, client: AsyncClient, draft_case: dict) -> None:
        await case_repo.record_payment_result(draft_case["id"], "success", "RMT-1")

        response = await client.post(INITIATE_URL, json={"case_id": str(draft_case["id"])})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EZLA_CONFLICT"

    @pytest.mark.asyncio
    async def test_unknown_case(self, client: AsyncClient) -> None:
        response = await client.post(INITIATE_URL, json={"case_id": str(uuid4())})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_method(self, client: AsyncClient, draft_case: dict) -> None:
        response = await client.post(
            INITIATE_URL, json={"case_id": str(draft_case["id"]), "payment_method": "cash"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_configuration(
        self, client: AsyncClient, draft_case: dict, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(get_settings(), "autopay_hash_key", "  ")

        response = await client.post(INITIATE_URL, json={"case_id": str(draft_case["id"])})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "EZLA_CONFIG_ERROR"
