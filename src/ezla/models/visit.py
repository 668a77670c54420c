"""
ezla/models/visit.py: Схемы визита Med24 (BookVisitUrgentSchema).
"""

from datetime import date
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from ezla.models.common import EzlaBase
from ezla.models.enums import BookingIntent, ChannelKind


class Med24Patient(BaseModel):
    first_name: str
    last_name: str
    pesel: str | None = None
    date_of_birth: date | None = None
    email: str | None = None
    phone_number: str | None = None
    address: str | None = None
    house_number: str | None = None
    flat_number: str | None = None
    postal_code: str | None = None
    city: str | None = None


class Med24Consent(BaseModel):
    kind: str
    is_given: bool


class Med24VisitRequest(BaseModel):
    """Тело POST /api/v2/external/visit."""
    channel_kind: ChannelKind
    service_id: str | None = None
    patient: Med24Patient
    external_tag: str | None = None
    booking_intent: BookingIntent
    queue: Literal["urgent"] = "urgent"
    consents: list[Med24Consent] = Field(default_factory=list)


class VisitCreateRequest(EzlaBase):
    case_id: UUID
    channel_kind: ChannelKind = ChannelKind.TEXT_MESSAGE
    booking_intent: BookingIntent = BookingIntent.FINALIZE


class VisitCreated(EzlaBase):
    visit_id: str
    visit_data: dict[str, Any]


class FileUploadRequest(EzlaBase):
    case_id: UUID


class FileUploadResult(EzlaBase):
    path: str
    success: bool
    med24_file_id: str | None = None
    error: str | None = None


class FileUploadSummary(EzlaBase):
    success: bool
    uploaded: int
    total: int
    results: list[FileUploadResult] = Field(default_factory=list)
