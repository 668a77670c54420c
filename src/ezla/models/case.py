"""
ezla/models/case.py: Модели дела (заявки на больничный лист).

Дело создаётся в статусе ``draft`` с платёжным статусом ``pending``
до перехода на шлюз Autopay.
"""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import Field, model_validator

from ezla.models.common import EzlaBase
from ezla.models.enums import (
    BookingIntent,
    CaseStatus,
    ChannelKind,
    MainCategory,
    PaymentStatus,
    RecipientType,
    SymptomDuration,
)
from ezla.models.profile import PESEL_PATTERN, ProfileRead

CASE_NUMBER_PATTERN = r"^EZ-[A-Z0-9]{9}$"


class Employer(EzlaBase):
    nip: str = Field(..., pattern=r"^\d{10}$")


class CaseCreate(EzlaBase):
    """Данные анкеты, переданные мастером перед оплатой."""
    profile_id: UUID
    illness_start: date
    illness_end: date
    recipient_type: RecipientType
    main_category: MainCategory
    symptom_duration: SymptomDuration
    free_text_reason: str = Field(..., min_length=1, max_length=4000)

    symptoms: list[str] = Field(default_factory=list)
    pregnant: bool | None = None
    pregnancy_leave: bool | None = None
    has_allergy: bool | None = None
    allergy_text: str | None = None
    has_meds: bool | None = None
    meds_list: str | None = None
    chronic_conditions: list[str] = Field(default_factory=list)
    chronic_other: str | None = None
    long_leave: bool | None = None
    late_justification: str | None = None
    attachment_file_ids: list[str] = Field(default_factory=list)
    pregnancy_card_file_id: str | None = None
    long_leave_docs_file_id: str | None = None
    employers: list[Employer] = Field(default_factory=list)
    uniformed_service_name: str | None = None
    uniformed_nip: str | None = None
    care_first_name: str | None = None
    care_last_name: str | None = None
    care_pesel: str | None = Field(default=None, pattern=PESEL_PATTERN)
    med24_channel_kind: ChannelKind | None = None
    med24_booking_intent: BookingIntent | None = None

    @model_validator(mode="after")
    def _check_dates(self) -> "CaseCreate":
        if self.illness_end < self.illness_start:
            raise ValueError("illness_end must not be earlier than illness_start")
        return self


class CaseRef(EzlaBase):
    """Ответ на создание дела."""
    id: UUID
    case_number: str


class CaseRead(EzlaBase):
    """Полные данные дела."""
    id: UUID
    case_number: str
    profile_id: UUID
    status: CaseStatus
    payment_status: PaymentStatus
    payment_psp_ref: str | None = None
    payment_method: str | None = None
    illness_start: date
    illness_end: date
    recipient_type: RecipientType
    main_category: MainCategory
    symptom_duration: SymptomDuration
    free_text_reason: str
    symptoms: list[str] = Field(default_factory=list)
    pregnant: bool | None = None
    pregnancy_leave: bool | None = None
    has_allergy: bool | None = None
    allergy_text: str | None = None
    has_meds: bool | None = None
    meds_list: str | None = None
    chronic_conditions: list[str] = Field(default_factory=list)
    chronic_other: str | None = None
    long_leave: bool | None = None
    late_justification: str | None = None
    attachment_file_ids: list[str] = Field(default_factory=list)
    pregnancy_card_file_id: str | None = None
    long_leave_docs_file_id: str | None = None
    employers: list[dict[str, Any]] = Field(default_factory=list)
    uniformed_service_name: str | None = None
    uniformed_nip: str | None = None
    care_first_name: str | None = None
    care_last_name: str | None = None
    care_pesel: str | None = None
    med24_visit_id: str | None = None
    med24_visit_status: dict[str, Any] | None = None
    med24_external_tag: str | None = None
    med24_channel_kind: str | None = None
    med24_booking_intent: str | None = None
    med24_last_sync_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    profile: ProfileRead | None = None


class CaseStatusQuery(EzlaBase):
    case_number: str = Field(..., min_length=1, max_length=32)


class CaseStatusRead(EzlaBase):
    """Несекретные данные дела для страницы «Status sprawy»."""
    id: UUID
    case_number: str
    status: CaseStatus
    payment_status: PaymentStatus
    illness_start: date
    illness_end: date
    created_at: datetime | None = None
    updated_at: datetime | None = None
    med24_visit_id: str | None = None
    med24_visit_status: dict[str, Any] | None = None


class CaseStatusUpdate(EzlaBase):
    """
    Обновление статуса дела из партнёрского API.

    Платёжный статус здесь не изменяется: его переводит только ITN-вебхук.
    """
    status: CaseStatus
    med24_visit_id: str | None = None
    med24_visit_status: dict[str, Any] | None = None
    med24_service_id: str | None = None
