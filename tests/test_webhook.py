"""ITN webhook: verification, payment state machine, submission and booking."""

from __future__ import annotations

import asyncio
import base64
import json
from uuid import UUID

import pytest
from httpx import AsyncClient

from ezla.config import get_settings
from ezla.db.repositories import case_repo
from ezla.exceptions import BadRequestError, HashVerificationError, NotFoundError
from ezla.models.enums import PaymentStatus
from ezla.services import visit_service, webhook_service
from ezla.services.audit_logger import EzlaAuditAction, get_audit_logger

WEBHOOK_URL = "/api/v1/payments/autopay/webhook"


@pytest.fixture
def bookings(monkeypatch: pytest.MonkeyPatch) -> list[UUID]:
    """Record visit booking requests instead of spawning Med24 tasks."""
    scheduled: list[UUID] = []
    monkeypatch.setattr(visit_service, "schedule_booking", scheduled.append)
    return scheduled


def _itn_xml(fields: dict[str, str]) -> str:
    tx = "".join(f"<{k}>{v}</{k}>" for k, v in fields.items() if k not in ("serviceID", "hash"))
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<transactionList>"
        f"<serviceID>{fields['serviceID']}</serviceID>"
        f"<transactions><transaction>{tx}</transaction></transactions>"
        f"<hash>{fields['hash']}</hash>"
        "</transactionList>"
    )


class TestWebhookScenarios:
    """Gateway → webhook end to end."""

    @pytest.mark.asyncio
    async def test_success_submits_case_and_books_visit(
        self, client: AsyncClient, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        response = await client.post(WEBHOOK_URL, data=itn_payload(draft_case["id"].hex))

        assert response.status_code == 200
        assert response.text == "OK"
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_status"] == "success"
        assert case["payment_psp_ref"] == "RMT-0001"
        assert case["status"] == "submitted"
        assert bookings == [draft_case["id"]]

    @pytest.mark.asyncio
    async def test_failure_marks_fail_without_booking(
        self, client: AsyncClient, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        response = await client.post(WEBHOOK_URL, data=itn_payload(draft_case["id"].hex, "FAILURE"))

        assert response.status_code == 200
        assert response.text == "OK"
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_status"] == "fail"
        assert case["status"] == "draft"
        assert bookings == []

    @pytest.mark.asyncio
    async def test_tampered_hash_is_rejected(
        self, client: AsyncClient, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        payload = itn_payload(draft_case["id"].hex)
        payload["hash"] = payload["hash"][:-1] + ("0" if payload["hash"][-1] != "0" else "1")

        response = await client.post(WEBHOOK_URL, data=payload)

        assert response.status_code == 403
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_status"] == "pending"
        assert case["status"] == "draft"
        assert case["payment_psp_ref"] is None
        assert bookings == []
        assert len(get_audit_logger().buffered(EzlaAuditAction.PAYMENT_HASH_MISMATCH)) == 1

    @pytest.mark.asyncio
    async def test_amount_changed_after_signing_is_rejected(
        self, client: AsyncClient, draft_case: dict, itn_payload,
    ) -> None:
        payload = itn_payload(draft_case["id"].hex)
        payload["amount"] = "1.00"

        response = await client.post(WEBHOOK_URL, data=payload)

        assert response.status_code == 403
        assert (await case_repo.get_case_by_id(draft_case["id"]))["payment_status"] == "pending"

    @pytest.mark.asyncio
    async def test_foreign_service_id_is_rejected(
        self, client: AsyncClient, draft_case: dict, itn_payload,
    ) -> None:
        response = await client.post(
            WEBHOOK_URL, data=itn_payload(draft_case["id"].hex, service_id="999999"),
        )
        assert response.status_code == 403
        assert response.text == "Invalid ServiceID"

    @pytest.mark.asyncio
    async def test_pending_status_keeps_case_pending(
        self, client: AsyncClient, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        response = await client.post(WEBHOOK_URL, data=itn_payload(draft_case["id"].hex, "PENDING"))

        assert response.status_code == 200
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_status"] == "pending"
        assert case["payment_psp_ref"] == "RMT-0001"
        assert case["status"] == "draft"
        assert bookings == []

    @pytest.mark.asyncio
    async def test_unknown_case_returns_404(self, client: AsyncClient, itn_payload) -> None:
        response = await client.post(WEBHOOK_URL, data=itn_payload("f" * 32))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_fields_return_400(self, client: AsyncClient, itn_payload) -> None:
        payload = itn_payload("f" * 32)
        del payload["remoteID"]
        response = await client.post(WEBHOOK_URL, data=payload)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_wrong_method_returns_405(self, client: AsyncClient) -> None:
        response = await client.get(WEBHOOK_URL)
        assert response.status_code == 405

    @pytest.mark.asyncio
    async def test_missing_configuration_returns_500(
        self, client: AsyncClient, draft_case: dict, itn_payload, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(get_settings(), "autopay_hash_key", "")

        response = await client.post(WEBHOOK_URL, data=itn_payload(draft_case["id"].hex))

        assert response.status_code == 500
        assert (await case_repo.get_case_by_id(draft_case["id"]))["payment_status"] == "pending"


class TestWebhookBodies:
    """Form, JSON and Base64 XML (``transactions``) deliveries."""

    @pytest.mark.asyncio
    async def test_json_body(
        self, client: AsyncClient, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        response = await client.post(WEBHOOK_URL, json=itn_payload(draft_case["id"].hex))
        assert response.status_code == 200
        assert (await case_repo.get_case_by_id(draft_case["id"]))["status"] == "submitted"

    @pytest.mark.asyncio
    async def test_base64_xml_transactions_field(
        self, client: AsyncClient, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        document = _itn_xml(itn_payload(draft_case["id"].hex, "FAILURE"))
        encoded = base64.b64encode(document.encode()).decode()

        response = await client.post(WEBHOOK_URL, data={"transactions": encoded})

        assert response.status_code == 200
        assert (await case_repo.get_case_by_id(draft_case["id"]))["payment_status"] == "fail"

    def test_parse_xml_extracts_nested_fields(self, itn_payload) -> None:
        fields = itn_payload("a" * 32)
        parsed = webhook_service.parse_itn_xml(_itn_xml(fields))
        assert parsed["serviceID"] == fields["serviceID"]
        assert parsed["orderID"] == "a" * 32
        assert parsed["paymentStatus"] == "SUCCESS"
        assert parsed["hash"] == fields["hash"]

    def test_space_in_transactions_is_read_as_plus(self, itn_payload) -> None:
        document = _itn_xml(itn_payload("b" * 32)).encode()
        encoded = base64.b64encode(document).decode()
        notification = webhook_service.parse_notification(
            "application/x-www-form-urlencoded",
            f"transactions={encoded.replace('+', ' ')}".encode(),
        )
        assert notification.order_id == "b" * 32

    def test_malformed_xml(self) -> None:
        encoded = base64.b64encode(b"<transactionList><oops>").decode()
        with pytest.raises(BadRequestError):
            webhook_service.decode_transactions(encoded)

    def test_invalid_base64(self) -> None:
        with pytest.raises(BadRequestError):
            webhook_service.decode_transactions("!!not-base64!!")

    def test_invalid_json(self) -> None:
        with pytest.raises(BadRequestError):
            webhook_service.parse_notification("application/json", b"{nope")

    def test_form_body_that_is_not_utf8(self) -> None:
        with pytest.raises(BadRequestError, match="UTF-8"):
            webhook_service.parse_notification("application/x-www-form-urlencoded", b"serviceID=\xff\xfe")

    @pytest.mark.asyncio
    async def test_non_utf8_form_answers_400(self, client: AsyncClient, draft_case: dict) -> None:
        response = await client.post(
            WEBHOOK_URL,
            content=b"serviceID=\xff\xfe",
            headers={"content-type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 400
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_status"] == "pending"

    def test_xml_entities_are_refused(self) -> None:
        document = (
            b'<?xml version="1.0"?><!DOCTYPE t [<!ENTITY x "1000.00">]>'
            b"<transactionList><transactions><transaction><amount>&x;</amount>"
            b"</transaction></transactions></transactionList>"
        )
        with pytest.raises(BadRequestError, match="entities"):
            webhook_service.decode_transactions(base64.b64encode(document).decode())

    def test_json_array_is_rejected(self) -> None:
        with pytest.raises(BadRequestError):
            webhook_service.parse_notification("application/json", json.dumps([1, 2]).encode())

    def test_empty_body(self) -> None:
        with pytest.raises(BadRequestError):
            webhook_service.parse_notification("application/json", b"")


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_repeated_success_is_a_no_op(
        self, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        settings = get_settings()
        notification = webhook_service.PaymentNotification.model_validate(
            itn_payload(draft_case["id"].hex),
        )

        first = await webhook_service.handle_notification(notification, settings)
        second = await webhook_service.handle_notification(notification, settings)

        assert first["updated"] and first["submitted"]
        assert not second["updated"] and not second["submitted"]
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_status"] == "success"
        assert case["status"] == "submitted"
        assert bookings == [draft_case["id"]]

    @pytest.mark.asyncio
    async def test_terminal_state_is_never_left(
        self, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        settings = get_settings()
        success = webhook_service.PaymentNotification.model_validate(
            itn_payload(draft_case["id"].hex),
        )
        failure = webhook_service.PaymentNotification.model_validate(
            itn_payload(draft_case["id"].hex, "FAILURE", remote_id="RMT-0002"),
        )

        await webhook_service.handle_notification(success, settings)
        result = await webhook_service.handle_notification(failure, settings)

        assert result["updated"] is False
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_status"] == "success"
        assert case["payment_psp_ref"] == "RMT-0001"

    @pytest.mark.asyncio
    async def test_failed_payment_is_not_overwritten_by_late_success(
        self, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        settings = get_settings()
        failure = webhook_service.PaymentNotification.model_validate(
            itn_payload(draft_case["id"].hex, "CANCELLED"),
        )
        success = webhook_service.PaymentNotification.model_validate(
            itn_payload(draft_case["id"].hex, "SUCCESS", remote_id="RMT-0002"),
        )

        await webhook_service.handle_notification(failure, settings)
        result = await webhook_service.handle_notification(success, settings)

        assert result["submitted"] is False
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["payment_status"] == "fail"
        assert case["status"] == "draft"
        assert bookings == []


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_success_submits_once(
        self, draft_case: dict, itn_payload, bookings: list[UUID],
    ) -> None:
        settings = get_settings()
        notification = webhook_service.PaymentNotification.model_validate(
            itn_payload(draft_case["id"].hex),
        )

        results = await asyncio.gather(
            *(webhook_service.handle_notification(notification, settings) for _ in range(5)),
        )

        assert sum(r["submitted"] for r in results) == 1
        assert all(r["payment_status"] is PaymentStatus.SUCCESS for r in results)
        assert bookings == [draft_case["id"]]
        assert len(get_audit_logger().buffered(EzlaAuditAction.CASE_SUBMITTED)) == 1


class TestHandlerErrors:
    @pytest.mark.asyncio
    async def test_hash_mismatch_raises(self, draft_case: dict, itn_payload) -> None:
        notification = webhook_service.PaymentNotification.model_validate(
            itn_payload(draft_case["id"].hex, secret="wrong-secret"),
        )
        with pytest.raises(HashVerificationError):
            await webhook_service.handle_notification(notification, get_settings())

    @pytest.mark.asyncio
    async def test_non_uuid_order_id_is_not_found(self, itn_payload) -> None:
        notification = webhook_service.PaymentNotification.model_validate(itn_payload("ORDER-1"))
        with pytest.raises(NotFoundError):
            await webhook_service.handle_notification(notification, get_settings())


class TestBackgroundBooking:
    @pytest.mark.asyncio
    async def test_booking_failure_does_not_affect_response(
        self,
        client: AsyncClient,
        draft_case: dict,
        itn_payload,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        calls: list[UUID] = []

        async def failing_book_visit(case_id, *args, **kwargs):
            calls.append(case_id)
            raise RuntimeError("Med24 is down")

        settings = get_settings()
        monkeypatch.setattr(settings, "med24_api_url", "https://med24.test")
        monkeypatch.setattr(settings, "med24_api_username", "user")
        monkeypatch.setattr(settings, "med24_api_password", "pass")
        monkeypatch.setattr(visit_service, "book_visit", failing_book_visit)

        response = await client.post(WEBHOOK_URL, data=itn_payload(draft_case["id"].hex))
        await visit_service.wait_for_pending_bookings(timeout=5)

        assert response.status_code == 200
        assert response.text == "OK"
        assert calls == [draft_case["id"]]
        assert (await case_repo.get_case_by_id(draft_case["id"]))["status"] == "submitted"
        assert len(get_audit_logger().buffered(EzlaAuditAction.VISIT_FAILED)) == 1
