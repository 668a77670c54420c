"""
Аккаунты пациентов.

Пароли хранятся как bcrypt-хеш, сессия представлена парой JWT (HS256,
python-jose) с claim ``type`` = access | refresh. Регистрация сразу создаёт
не-гостевой профиль; удаление аккаунта стирает дела, профили и пользователя.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
from jose import jwt

from ezla.config import get_settings
from ezla.db.repositories import case_repo, profile_repo, user_repo
from ezla.exceptions import AuthenticationError, BadRequestError, ConflictError
from ezla.models.user import UserRead, UserRegister
from ezla.services.audit_logger import EzlaAuditAction, get_audit_logger

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))


def _sign(user_id: UUID, kind: str, lifetime: timedelta) -> str:
    settings = get_settings()
    claims = {
        "sub": str(user_id),
        "type": kind,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    lifetime = expires_delta or timedelta(minutes=get_settings().jwt_access_token_expire_minutes)
    return _sign(user_id, ACCESS, lifetime)


def create_refresh_token(user_id: UUID) -> str:
    return _sign(user_id, REFRESH, timedelta(days=get_settings().jwt_refresh_token_expire_days))


def decode_token(token: str) -> dict:
    """Claims подписанного токена; просроченный или чужой токен: AuthenticationError."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except Exception as exc:
        raise AuthenticationError(f"Invalid token: {exc}") from exc


def _token_pair(user_id: UUID) -> dict:
    return {
        "access_token": create_access_token(user_id),
        "refresh_token": create_refresh_token(user_id),
        "token_type": "bearer",
    }


def _as_user_read(account: dict, profile: dict | None) -> UserRead:
    return UserRead(
        user_id=account["user_id"],
        email=account["email"],
        status=account.get("status", "active"),
        profile_id=profile["id"] if profile else None,
        created_at=account.get("created_at"),
    )


async def register_user(data: UserRegister) -> UserRead:
    if await user_repo.get_user_by_email(data.email) is not None:
        raise ConflictError("An account with this email already exists", details={"field": "email"})

    account = await user_repo.create_user(email=data.email, password_hash=hash_password(data.password))
    profile = await profile_repo.create_profile(
        data.model_dump(exclude={"password"}), user_id=account["user_id"], is_guest=False,
    )
    await get_audit_logger().log(
        EzlaAuditAction.ACCOUNT_REGISTER, "user", str(account["user_id"]),
        user_id=str(account["user_id"]),
    )
    logger.info("Account %s registered with profile %s", account["user_id"], profile["id"])
    return _as_user_read(account, profile)


async def authenticate(email: str, password: str) -> dict:
    """Вход по email и паролю: пара токенов и данные аккаунта."""
    account = await user_repo.get_user_by_email(email)
    # одинаковый ответ для неизвестного email и неверного пароля
    if account is None or not verify_password(password, account["password_hash"]):
        raise AuthenticationError("Invalid email or password")
    if account.get("status") == "blocked":
        raise AuthenticationError("Account is blocked")

    profile = await profile_repo.get_profile_by_user_id(account["user_id"])
    return {**_token_pair(account["user_id"]), "user": _as_user_read(account, profile)}


async def refresh_access_token(refresh_token: str) -> dict:
    claims = decode_token(refresh_token)
    if claims.get("type") != REFRESH:
        raise AuthenticationError("Refresh token required")
    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError as exc:
        raise AuthenticationError("Token subject is not a user id") from exc
    if await user_repo.get_user_by_id(user_id) is None:
        raise AuthenticationError("Account no longer exists")
    return _token_pair(user_id)


async def delete_account(user: UserRead, confirm_email: str) -> dict:
    """
    Стирает аккаунт вместе с делами и профилями.

    Подтверждением служит email аккаунта (без учёта регистра); при
    несовпадении ничего не удаляется и поднимается BadRequestError.
    """
    if confirm_email.strip().lower() != user.email.lower():
        raise BadRequestError("Email confirmation does not match", details={"field": "confirm_email"})

    cases = await case_repo.delete_cases_for_user(user.user_id)
    profiles = await profile_repo.delete_profiles_for_user(user.user_id)
    await user_repo.delete_user(user.user_id)

    await get_audit_logger().log(
        EzlaAuditAction.ACCOUNT_DELETED, "user", str(user.user_id),
        details={"cases": cases, "profiles": profiles},
    )
    logger.info("Account %s erased (%d cases, %d profiles)", user.user_id, cases, profiles)
    return {"deleted": True, "cases_deleted": cases, "profiles_deleted": profiles}
