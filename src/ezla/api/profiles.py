"""
ezla/api/profiles.py: Эндпоинты профилей пациентов.
"""

from fastapi import APIRouter, Depends, status

from ezla.dependencies import get_current_user
from ezla.models.profile import ProfileCreate, ProfileRead
from ezla.models.user import UserRead
from ezla.services import profile_service

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post(
    "/guest",
    response_model=ProfileRead,
    status_code=status.HTTP_201_CREATED,
    summary="Гостевой профиль",
)
async def create_guest_profile(body: ProfileCreate):
    return await profile_service.create_guest_profile(body)


@router.get("/me", response_model=ProfileRead, summary="Профиль текущего пользователя")
async def my_profile(user: UserRead = Depends(get_current_user)):
    return await profile_service.get_profile_for_user(user.user_id)
