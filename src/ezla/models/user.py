"""
ezla/models/user.py: Модели аккаунта пользователя.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ezla.models.common import EzlaBase
from ezla.models.profile import ProfileCreate


class UserRegister(ProfileCreate):
    """Схема регистрации: учётные данные + данные профиля и согласия."""
    password: str = Field(..., min_length=8, max_length=128)


class UserRead(EzlaBase):
    """Схема для возврата данных пользователя (без пароля)."""
    user_id: UUID
    email: str
    status: str = "active"
    profile_id: UUID | None = None
    created_at: datetime | None = None


class LoginRequest(EzlaBase):
    email: str
    password: str


class TokenPair(EzlaBase):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccountDeleteRequest(EzlaBase):
    """Удаление аккаунта требует повторного ввода email."""
    confirm_email: str = Field(..., min_length=3)
