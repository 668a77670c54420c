"""Attachment storage and the PDF case summary."""

from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import UUID

import pytest
from httpx import AsyncClient

from ezla import storage
from ezla.db.repositories import case_repo
from ezla.exceptions import BadRequestError, NotFoundError
from ezla.services import pdf_service

PARTNER_HEADERS = {"x-api-key": "partner-test-key"}


class TestStorage:
    def test_write_and_read(self) -> None:
        storage.write_bytes("cases/a/scan.jpg", b"jpeg-bytes")
        assert storage.read_bytes("cases/a/scan.jpg") == b"jpeg-bytes"

    def test_missing_file(self) -> None:
        with pytest.raises(NotFoundError):
            storage.read_bytes("cases/none.pdf")

    @pytest.mark.parametrize("key", ["../outside.pdf", "cases/../../etc/passwd"])
    def test_path_traversal(self, key: str) -> None:
        with pytest.raises(BadRequestError):
            storage.resolve(key)

    @pytest.mark.parametrize(
        ("key", "content_type"),
        [
            ("a.pdf", "application/pdf"),
            ("a.JPG", "image/jpeg"),
            ("a.jpeg", "image/jpeg"),
            ("a.png", "image/png"),
            ("a.heic", "application/octet-stream"),
            ("noext", "application/octet-stream"),
        ],
    )
    def test_content_type(self, key: str, content_type: str) -> None:
        assert storage.content_type_for(key) == content_type


class TestTextHelpers:
    def test_strip_diacritics(self) -> None:
        assert pdf_service.strip_diacritics("Zażółć gęślą jaźń ŁÓDŹ") == "Zazolc gesla jazn LODZ"

    def test_wrap_text_at_word_boundaries(self) -> None:
        text = " ".join(["slowo"] * 40)
        lines = pdf_service.wrap_text(text)
        assert all(len(line) <= 80 for line in lines)
        assert " ".join(lines) == text

    def test_wrap_text_breaks_long_words(self) -> None:
        assert pdf_service.wrap_text("x" * 170) == ["x" * 80, "x" * 80, "x" * 10]

    def test_wrap_empty(self) -> None:
        assert pdf_service.wrap_text("   ") == []


class TestCaseSummary:
    @pytest.mark.asyncio
    async def test_render_produces_pdf(self, draft_case: dict, guest_profile: dict) -> None:
        case = {**draft_case, "free_text_reason": "Ból głowy. " * 40, "chronic_conditions": ["other"]}
        pdf = pdf_service.render_case_summary(case, guest_profile, generated_on=date(2025, 1, 31))
        assert pdf.startswith(b"%PDF")

    def test_summary_key(self) -> None:
        case_id = UUID("12345678-1234-5678-1234-567812345678")
        created = datetime(2025, 1, 31, 23, 0, tzinfo=timezone.utc)
        assert pdf_service.summary_key(case_id, created) == (
            "summaries/12345678-1234-5678-1234-567812345678/Wizyta_z_dnia_2025-01-31.pdf"
        )

    @pytest.mark.asyncio
    async def test_generate_stores_and_attaches_once(self, draft_case: dict) -> None:
        key = await pdf_service.generate_case_summary(draft_case["id"])
        again = await pdf_service.generate_case_summary(draft_case["id"])

        assert key == again
        assert storage.read_bytes(key).startswith(b"%PDF")
        case = await case_repo.get_case_by_id(draft_case["id"])
        assert case["attachment_file_ids"] == [key]

    @pytest.mark.asyncio
    async def test_summary_endpoint(
        self, client: AsyncClient, api_key: str, draft_case: dict,
    ) -> None:
        response = await client.post(
            f"/api/v1/cases/{draft_case['id']}/summary-pdf", headers=PARTNER_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["pdf_path"].startswith(f"summaries/{draft_case['id']}/")


@pytest.mark.asyncio
async def test_health_in_memory_mode(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["database"] == "disconnected"
    assert body["autopay"] == "configured"
    assert body["med24"] == "missing"
