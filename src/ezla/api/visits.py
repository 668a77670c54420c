"""
ezla/api/visits.py: Внутренние эндпоинты визитов Med24 (``x-api-key``).
"""

from fastapi import APIRouter, Depends, status

from ezla.dependencies import require_api_key
from ezla.models.visit import FileUploadRequest, FileUploadSummary, VisitCreated, VisitCreateRequest
from ezla.services import visit_service

router = APIRouter(
    prefix="/visits",
    tags=["visits"],
    dependencies=[Depends(require_api_key)],
)


@router.post(
    "",
    response_model=VisitCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Создать визит Med24 по делу",
)
async def create_visit(body: VisitCreateRequest):
    visit = await visit_service.book_visit(body.case_id, body.channel_kind, body.booking_intent)
    return VisitCreated(visit_id=str(visit["id"]), visit_data=visit)


@router.get("/{visit_id}", summary="Статус визита Med24")
async def get_visit(visit_id: str):
    return await visit_service.sync_visit(visit_id)


@router.post(
    "/{visit_id}/files",
    response_model=FileUploadSummary,
    summary="Загрузить файлы дела в визит",
)
async def upload_files(visit_id: str, body: FileUploadRequest):
    return await visit_service.upload_case_files(body.case_id, visit_id)
