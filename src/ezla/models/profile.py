"""
ezla/models/profile.py: Модели профиля пациента.

Профиль содержит персональные и контактные данные заявителя и его согласия.
Создаётся при гостевом оформлении или при регистрации аккаунта.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from ezla.models.common import EzlaBase

PESEL_PATTERN = r"^\d{11}$"
POSTCODE_PATTERN = r"^\d{2}-\d{3}$"


class ProfileConsents(EzlaBase):
    """Согласия, собираемые на шаге «Podsumowanie»."""
    consent_terms: bool = False
    consent_employment: bool = False
    consent_call: bool = False
    consent_no_guarantee: bool = False
    consent_truth: bool = False
    consent_marketing_email: bool = False
    consent_marketing_tel: bool = False


class ProfileCreate(ProfileConsents):
    """Схема для создания гостевого профиля."""
    first_name: str = Field(..., min_length=1, max_length=100, examples=["Jan"])
    last_name: str = Field(..., min_length=1, max_length=100, examples=["Kowalski"])
    email: str = Field(..., min_length=3, examples=["jan.kowalski@example.com"])
    pesel: str = Field(..., pattern=PESEL_PATTERN, examples=["90010112345"])
    date_of_birth: date | None = None
    phone: str = Field(..., min_length=6, max_length=20, examples=["+48600100200"])
    street: str = Field(..., min_length=1, max_length=200)
    house_no: str = Field(..., min_length=1, max_length=20)
    flat_no: str | None = Field(default=None, max_length=20)
    postcode: str = Field(..., pattern=POSTCODE_PATTERN, examples=["00-001"])
    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(default="PL", min_length=2, max_length=2)


class ProfileRead(EzlaBase):
    """Схема для возврата данных профиля."""
    id: UUID
    user_id: UUID | None = None
    is_guest: bool = True
    first_name: str
    last_name: str
    email: str
    pesel: str | None = None
    date_of_birth: date | None = None
    phone: str | None = None
    street: str | None = None
    house_no: str | None = None
    flat_no: str | None = None
    postcode: str | None = None
    city: str | None = None
    country: str = "PL"
    consent_marketing_email: bool = False
    consent_marketing_tel: bool = False
    consent_timestamp: datetime | None = None
    created_at: datetime | None = None


class ConsentUpdate(EzlaBase):
    """Схема сохранения маркетинговых согласий (партнёрский API)."""
    profile_id: UUID
    consent_marketing_email: bool | None = None
    consent_marketing_tel: bool | None = None
    consent_ip: str | None = Field(default=None, max_length=64)
