import csv
import io
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.core.exceptions import ForbiddenError
from app.core.policy import Role
from app.database.models import Admission, Student
from app.repositories.profile_repository import AdmissionRepository, StudentRepository
from app.services.export_service import ADMISSION_EXPORT_HEADERS, STUDENT_EXPORT_HEADERS, ExportService


@pytest.fixture
def repositories():
    return AsyncMock(spec=StudentRepository), AsyncMock(spec=AdmissionRepository)


@pytest.fixture
def service(repositories):
    return ExportService(*repositories)


@pytest.mark.asyncio
async def test_export_students(service, repositories, make_caller, org_id):
    students, _ = repositories
    student = Student(
        id=uuid4(),
        organization_id=org_id,
        first_name="Ana, Jr.",
        last_name="Reyes",
        email=None,
        created_at=datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc),
    )
    students.list_for_export.return_value = [student]

    content = await service.export_students(make_caller(Role.REGISTRAR))

    rows = list(csv.reader(io.StringIO(content)))
    assert rows[0] == list(STUDENT_EXPORT_HEADERS)
    assert rows[1] == [str(student.id), "Ana, Jr.", "Reyes", "", "", "2026-01-05T08:00:00+00:00"]
    assert '"Ana, Jr."' in content
    students.list_for_export.assert_awaited_once_with(org_id)


@pytest.mark.asyncio
async def test_export_admissions(service, repositories, principal, org_id):
    _, admissions = repositories
    admissions.list_for_export.return_value = [
        Admission(id=uuid4(), organization_id=org_id, first_name="Luis", last_name="Tan", status="pending")
    ]

    content = await service.export_admissions(principal)

    header, row = content.strip().split("\n")
    assert header == ",".join(ADMISSION_EXPORT_HEADERS)
    assert row.endswith(",Luis,Tan,,pending,")


@pytest.mark.asyncio
async def test_empty_export_has_header_only(service, repositories, principal):
    students, _ = repositories
    students.list_for_export.return_value = []

    assert await service.export_students(principal) == "id,first_name,last_name,email,batch_id,created_at\n"


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [Role.TEACHER, Role.MENTOR, Role.STUDENT])
async def test_export_requires_registrar_or_leadership(service, repositories, make_caller, role):
    with pytest.raises(ForbiddenError):
        await service.export_students(make_caller(role))

    repositories[0].list_for_export.assert_not_called()
