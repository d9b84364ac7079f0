"""CSV export endpoints for students and admissions."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.core.auth import get_current_caller
from app.dependencies import get_export_service
from app.schemas.auth import CallerContext
from app.services.export_service import ExportService

router = APIRouter()

Caller = Annotated[CallerContext, Depends(get_current_caller)]
Service = Annotated[ExportService, Depends(get_export_service)]


def csv_attachment(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/students/export", summary="Export students as CSV", operation_id="export_students_csv")
async def export_students(caller: Caller, service: Service) -> Response:
    return csv_attachment(await service.export_students(caller), "students.csv")


@router.get("/admissions/export", summary="Export admissions as CSV", operation_id="export_admissions_csv")
async def export_admissions(caller: Caller, service: Service) -> Response:
    return csv_attachment(await service.export_admissions(caller), "admissions.csv")
