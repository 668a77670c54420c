"""
ezla/api/cases.py: Эндпоинты дел.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from ezla.dependencies import get_optional_user, require_api_key
from ezla.models.case import CaseCreate, CaseRef, CaseStatusQuery, CaseStatusRead
from ezla.models.user import UserRead
from ezla.services import case_service, pdf_service

router = APIRouter(prefix="/cases", tags=["cases"])


@router.post(
    "",
    response_model=CaseRef,
    status_code=status.HTTP_201_CREATED,
    summary="Создать дело перед оплатой",
)
async def create_case(body: CaseCreate, user: UserRead | None = Depends(get_optional_user)):
    """Гостевой профиль: без токена; профиль аккаунта: только владельцу."""
    return await case_service.create_case(body, user)


@router.post(
    "/status",
    response_model=CaseStatusRead,
    summary="Статус дела по номеру",
)
async def case_status(body: CaseStatusQuery):
    return await case_service.get_case_status(body.case_number)


@router.post(
    "/{case_id}/summary-pdf",
    dependencies=[Depends(require_api_key)],
    summary="Сформировать PDF-сводку дела",
)
async def summary_pdf(case_id: UUID):
    path = await pdf_service.generate_case_summary(case_id)
    return {"success": True, "pdf_path": path}
