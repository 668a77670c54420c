"""
FastAPI-зависимости e-ZLA.

    • get_current_user() : владелец аккаунта по Bearer access-токену
    • get_optional_user(): то же, но гостевое оформление проходит без токена
    • require_api_key()  : партнёрский ключ в заголовке ``x-api-key``
"""

from __future__ import annotations

import hashlib
import logging
from uuid import UUID

from fastapi import Header, HTTPException, status

from ezla.db.repositories import api_key_repo, profile_repo, user_repo
from ezla.exceptions import AuthenticationError
from ezla.models.user import UserRead
from ezla.services.auth_service import decode_token

logger = logging.getLogger(__name__)

_BEARER = "bearer "


def _reject(detail: str, code: int = status.HTTP_401_UNAUTHORIZED) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=code, detail=detail, headers=headers)


def _access_subject(authorization: str) -> UUID:
    """user_id из access-токена; refresh-токены сюда не подходят."""
    if not authorization.lower().startswith(_BEARER):
        raise _reject("Expected 'Bearer <token>' authorization")
    try:
        claims = decode_token(authorization[len(_BEARER):].strip())
    except AuthenticationError as exc:
        raise _reject(exc.message) from exc

    if claims.get("type") != "access":
        raise _reject("Access token required")
    try:
        return UUID(str(claims.get("sub")))
    except ValueError as exc:
        raise _reject("Token subject is not a user id") from exc


async def get_current_user(authorization: str | None = Header(None)) -> UserRead:
    if not authorization:
        raise _reject("Authorization header is required")

    account = await user_repo.get_user_by_id(_access_subject(authorization))
    if account is None:
        raise _reject("Account no longer exists")
    if account.get("status") == "blocked":
        raise _reject("Account is blocked", status.HTTP_403_FORBIDDEN)

    profile = await profile_repo.get_profile_by_user_id(account["user_id"])
    return UserRead(
        user_id=account["user_id"],
        email=account["email"],
        status=account.get("status", "active"),
        profile_id=profile["id"] if profile else None,
        created_at=account.get("created_at"),
    )


async def get_optional_user(authorization: str | None = Header(None)) -> UserRead | None:
    if not authorization:
        return None
    return await get_current_user(authorization)


def hash_api_key(api_key: str) -> str:
    """В таблице ``api_keys`` лежит только SHA-256 ключа."""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


async def require_api_key(x_api_key: str | None = Header(None)) -> None:
    """Пропускает запрос только с активным партнёрским ключом (и считает вызов)."""
    if not x_api_key:
        raise _reject("Missing API key")
    if not await api_key_repo.touch_active_key(hash_api_key(x_api_key)):
        logger.warning("Partner request rejected: unknown or revoked API key")
        raise _reject("Invalid API key")
