"""
ezla/api/partner.py: Партнёрский API (заголовок ``x-api-key``).

    POST  /partner/auth/register
    POST  /partner/cases
    GET   /partner/cases/{case_id}
    PATCH /partner/cases/{case_id}/status
    POST  /partner/consents
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from ezla.dependencies import require_api_key
from ezla.models.case import CaseCreate, CaseRead, CaseRef, CaseStatusUpdate
from ezla.models.profile import ConsentUpdate, ProfileRead
from ezla.models.user import UserRegister
from ezla.services import auth_service, case_service, profile_service

router = APIRouter(
    prefix="/partner",
    tags=["partner"],
    dependencies=[Depends(require_api_key)],
)


@router.post("/auth/register", status_code=status.HTTP_201_CREATED, summary="Регистрация пользователя")
async def register(body: UserRegister):
    user = await auth_service.register_user(body)
    return {"success": True, "user_id": user.user_id, "email": user.email}


@router.post(
    "/cases",
    response_model=CaseRef,
    status_code=status.HTTP_201_CREATED,
    summary="Создать дело",
)
async def create_case(body: CaseCreate):
    return await case_service.create_case(body, partner=True)


@router.get("/cases/{case_id}", response_model=CaseRead, summary="Дело с профилем")
async def get_case(case_id: UUID):
    return await case_service.get_case(case_id)


@router.patch("/cases/{case_id}/status", response_model=CaseRead, summary="Обновить статус дела")
async def update_case_status(case_id: UUID, body: CaseStatusUpdate):
    return await case_service.update_status(case_id, body)


@router.post("/consents", response_model=ProfileRead, summary="Сохранить согласия")
async def save_consents(body: ConsentUpdate, request: Request):
    if body.consent_ip is None and request.client:
        body = body.model_copy(update={"consent_ip": request.client.host})
    return await profile_service.save_consents(body)
