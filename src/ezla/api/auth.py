"""
ezla/api/auth.py: Эндпоинты аккаунта пациента.
"""

from fastapi import APIRouter, Body, Depends, status

from ezla.dependencies import get_current_user
from ezla.models.user import AccountDeleteRequest, LoginRequest, TokenPair, UserRead, UserRegister
from ezla.services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Регистрация аккаунта с профилем",
)
async def register(body: UserRegister):
    return await auth_service.register_user(body)


@router.post("/login", summary="Вход по email + пароль → JWT-токены")
async def login(body: LoginRequest):
    return await auth_service.authenticate(body.email, body.password)


@router.post("/token/refresh", response_model=TokenPair, summary="Обновить JWT-токен")
async def refresh_token(refresh_token: str = Body(..., embed=True)):
    """Выдать новую пару токенов по refresh_token."""
    return await auth_service.refresh_access_token(refresh_token)


@router.delete("/account", summary="Удалить аккаунт и все данные")
async def delete_account(
    body: AccountDeleteRequest,
    user: UserRead = Depends(get_current_user),
):
    return await auth_service.delete_account(user, body.confirm_email)
