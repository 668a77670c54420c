"""Autopay signature formulas: return URL, ITN and outbound payment link."""

from __future__ import annotations

import hashlib

import pytest

from ezla.services.payment_hash import (
    compute_return_hash,
    compute_webhook_hash,
    payment_link_hash,
    verify_return_hash,
    verify_webhook_hash,
)

SECRET = "s3cret"
ITN_FIELDS = ("100123", "a" * 32, "RMT-9", "79.00", "PLN", "SUCCESS")


def _mutate(value: str) -> str:
    """Change exactly one character."""
    last = value[-1]
    return value[:-1] + ("X" if last != "X" else "Y")


class TestReturnHash:
    def test_documented_formula(self) -> None:
        expected = hashlib.sha256(b"100123|ORDER-1|s3cret").hexdigest()
        assert compute_return_hash("100123", "ORDER-1", SECRET) == expected

    def test_accepts_valid_digest_case_insensitive(self) -> None:
        digest = compute_return_hash("100123", "ORDER-1", SECRET)
        assert verify_return_hash("100123", "ORDER-1", digest, SECRET)
        assert verify_return_hash("100123", "ORDER-1", digest.upper(), SECRET)
        assert verify_return_hash("100123", "ORDER-1", f"  {digest}\n", SECRET)

    @pytest.mark.parametrize("field", ["hash", "service_id", "order_id"])
    def test_rejects_single_character_mutation(self, field: str) -> None:
        values = {"service_id": "100123", "order_id": "ORDER-1"}
        digest = compute_return_hash(values["service_id"], values["order_id"], SECRET)
        if field == "hash":
            digest = _mutate(digest)
        else:
            values[field] = _mutate(values[field])
        assert not verify_return_hash(values["service_id"], values["order_id"], digest, SECRET)

    def test_rejects_missing_or_non_ascii_hash(self) -> None:
        assert not verify_return_hash("100123", "ORDER-1", None, SECRET)
        assert not verify_return_hash("100123", "ORDER-1", "", SECRET)
        assert not verify_return_hash("100123", "ORDER-1", "zażółć", SECRET)

    def test_rejects_other_secret(self) -> None:
        digest = compute_return_hash("100123", "ORDER-1", "other")
        assert not verify_return_hash("100123", "ORDER-1", digest, SECRET)


class TestWebhookHash:
    def test_documented_formula(self) -> None:
        raw = "|".join((*ITN_FIELDS, SECRET)).encode()
        assert compute_webhook_hash(*ITN_FIELDS, SECRET) == hashlib.sha256(raw).hexdigest()

    def test_accepts_valid_digest(self) -> None:
        digest = compute_webhook_hash(*ITN_FIELDS, SECRET)
        assert verify_webhook_hash(*ITN_FIELDS, digest, SECRET)

    @pytest.mark.parametrize("index", range(len(ITN_FIELDS)))
    def test_rejects_any_altered_field(self, index: int) -> None:
        digest = compute_webhook_hash(*ITN_FIELDS, SECRET)
        altered = list(ITN_FIELDS)
        altered[index] = _mutate(altered[index])
        assert not verify_webhook_hash(*altered, digest, SECRET)

    def test_rejects_altered_secret(self) -> None:
        digest = compute_webhook_hash(*ITN_FIELDS, SECRET)
        assert not verify_webhook_hash(*ITN_FIELDS, digest, _mutate(SECRET))

    def test_return_digest_is_not_accepted_as_webhook_digest(self) -> None:
        return_digest = compute_return_hash(ITN_FIELDS[0], ITN_FIELDS[1], SECRET)
        assert not verify_webhook_hash(*ITN_FIELDS, return_digest, SECRET)


def test_payment_link_hash_formula() -> None:
    raw = b"100123|abc|79.00|PLN|s3cret"
    assert payment_link_hash("100123", "abc", "79.00", "PLN", SECRET) == hashlib.sha256(raw).hexdigest()
