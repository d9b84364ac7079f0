"""CSV exports of organization records."""

from app.core.policy import Action
from app.repositories.profile_repository import AdmissionRepository, StudentRepository
from app.schemas.auth import CallerContext
from app.utils.csv_export import render_records
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

STUDENT_EXPORT_HEADERS = ("id", "first_name", "last_name", "email", "batch_id", "created_at")
ADMISSION_EXPORT_HEADERS = (
    "id",
    "organization_id",
    "school_id",
    "program_id",
    "section_id",
    "school_year_id",
    "first_name",
    "last_name",
    "email",
    "status",
    "created_at",
)


class ExportService:
    def __init__(self, students: StudentRepository, admissions: AdmissionRepository):
        self.students = students
        self.admissions = admissions

    async def export_students(self, caller: CallerContext) -> str:
        caller.require(Action.EXPORT_RECORDS)
        students = await self.students.list_for_export(caller.require_organization())
        LOGGER.info(f"Exporting {len(students)} students for organization {caller.organization_id}")
        return render_records(STUDENT_EXPORT_HEADERS, students)

    async def export_admissions(self, caller: CallerContext) -> str:
        caller.require(Action.EXPORT_RECORDS)
        admissions = await self.admissions.list_for_export(caller.require_organization())
        LOGGER.info(f"Exporting {len(admissions)} admissions for organization {caller.organization_id}")
        return render_records(ADMISSION_EXPORT_HEADERS, admissions)
