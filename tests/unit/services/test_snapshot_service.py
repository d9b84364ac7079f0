from datetime import date, datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.core.exceptions import ForbiddenError, ValidationError
from app.core.policy import Role
from app.database.enums import EvidenceType, MasteryStatus
from app.database.models import Student
from app.repositories.evidence_repository import EvidenceRecord, EvidenceRepository
from app.repositories.profile_repository import StudentRepository
from app.services.mastery.snapshot_service import MasterySnapshotService


@pytest.fixture
def students():
    return AsyncMock(spec=StudentRepository)


@pytest.fixture
def evidence():
    return AsyncMock(spec=EvidenceRepository)


@pytest.fixture
def service(snapshot_store, students, evidence):
    return MasterySnapshotService(snapshot_store, students, evidence)


async def _approved(store, caller_org, learner_id, teacher_id, reviewer_id, level_id, day):
    return await store.create(
        organization_id=caller_org,
        learner_id=learner_id,
        competency_id=uuid4(),
        teacher_id=teacher_id,
        mastery_level_id=level_id,
        rationale_text="Approved",
        snapshot_date=date(2026, 3, day),
        status=MasteryStatus.APPROVED,
        reviewed_by=reviewer_id,
        reviewed_at=datetime(2026, 3, day, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_student_sees_only_own_record(
    service, snapshot_store, students, make_caller, teacher, principal, level_by_label
):
    student_caller = make_caller(Role.STUDENT)
    own = Student(id=uuid4(), organization_id=student_caller.organization_id, first_name="Ana", last_name="Reyes")
    students.get_by_profile_id.return_value = own
    level = level_by_label["Proficient"].id
    mine = await _approved(snapshot_store, own.organization_id, own.id, teacher.user_id, principal.user_id, level, 3)
    await _approved(snapshot_store, own.organization_id, uuid4(), teacher.user_id, principal.user_id, level, 4)

    current = await service.get_current_snapshots(student_caller)

    assert current == [mine]
    students.get_by_profile_id.assert_awaited_once_with(student_caller.user_id, student_caller.organization_id)


@pytest.mark.asyncio
async def test_student_cannot_ask_for_another_learner(service, students, make_caller):
    student_caller = make_caller(Role.STUDENT)
    students.get_by_profile_id.return_value = Student(
        id=uuid4(), organization_id=student_caller.organization_id, first_name="Ana", last_name="Reyes"
    )

    with pytest.raises(ForbiddenError):
        await service.get_current_snapshots(student_caller, learner_id=uuid4())


@pytest.mark.asyncio
async def test_student_without_record_is_forbidden(service, students, make_caller):
    students.get_by_profile_id.return_value = None

    with pytest.raises(ForbiddenError):
        await service.get_current_snapshots(make_caller(Role.STUDENT))


@pytest.mark.asyncio
async def test_self_approved_snapshot_is_hidden(service, snapshot_store, teacher, principal, level_by_label):
    learner = uuid4()
    level = level_by_label["Mastered"].id
    await _approved(snapshot_store, principal.organization_id, learner, principal.user_id, principal.user_id, level, 5)

    assert await service.get_current_snapshots(principal, learner_id=learner) == []


@pytest.mark.asyncio
async def test_evidence_pack_requires_both_ids(service, teacher):
    with pytest.raises(ValidationError, match="Missing required fields: learner_id, competency_id"):
        await service.get_evidence_pack(teacher, uuid4(), None)


@pytest.mark.asyncio
async def test_evidence_pack_lists_newest_first(service, evidence, teacher):
    learner_id, competency_id = uuid4(), uuid4()
    older = EvidenceRecord(
        evidence_type=EvidenceType.OBSERVATION,
        id=uuid4(),
        learner_id=learner_id,
        competency_id=competency_id,
        occurred_at=datetime(2026, 1, 10, tzinfo=timezone.utc),
        title="Observation",
        description="Led the group discussion",
        author_id=teacher.user_id,
    )
    newer = EvidenceRecord(
        evidence_type=EvidenceType.ASSESSMENT,
        id=uuid4(),
        learner_id=learner_id,
        competency_id=competency_id,
        occurred_at=datetime(2026, 2, 10, tzinfo=timezone.utc),
        title="Unit test",
        description=None,
        author_id=None,
    )
    evidence.collect_evidence.return_value = [older, newer]

    pack = await service.get_evidence_pack(teacher, learner_id, competency_id)

    assert [item.id for item in pack.items] == [newer.id, older.id]
    assert pack.items[1].type is EvidenceType.OBSERVATION
    evidence.collect_evidence.assert_awaited_once_with(teacher.organization_id, [learner_id], [competency_id])


@pytest.mark.asyncio
async def test_students_cannot_read_evidence(service, make_caller):
    with pytest.raises(ForbiddenError):
        await service.get_evidence_pack(make_caller(Role.STUDENT), uuid4(), uuid4())
