from datetime import date, datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.core.config import settings
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.policy import Role
from app.database.enums import EvidenceType, MasteryStatus, ScopeType
from app.database.models import MasterySnapshotRun
from app.repositories.evidence_repository import EvidenceRecord, EvidenceRepository
from app.repositories.mastery_setup_repository import (
    MasteryLevelRepository,
    MasteryModelRepository,
    MasteryRunRepository,
)
from app.repositories.mastery_snapshot_repository import MasterySnapshotRepository
from app.schemas.mastery import SnapshotRunRequest
from app.services.mastery.run_service import (
    INVALID_SCOPE,
    MISSING_RUN_FIELDS,
    NO_LEARNERS,
    MasteryRunService,
    group_evidence,
)

LEARNER_A = uuid4()
LEARNER_B = uuid4()
COMPETENCY = uuid4()


def _record(evidence_type, learner_id, competency_id=COMPETENCY):
    return EvidenceRecord(
        evidence_type=evidence_type,
        id=uuid4(),
        learner_id=learner_id,
        competency_id=competency_id,
        occurred_at=datetime(2026, 2, 10, tzinfo=timezone.utc),
        title="Evidence",
        description=None,
        author_id=None,
    )


@pytest.fixture
def repositories(mastery_model, mastery_levels):
    runs = AsyncMock(spec=MasteryRunRepository)
    runs.create.side_effect = lambda **kwargs: MasterySnapshotRun(id=uuid4(), **kwargs)

    def _update(run, **changes):
        for key, value in changes.items():
            setattr(run, key, value)
        return run

    runs.update.side_effect = _update

    models = AsyncMock(spec=MasteryModelRepository)
    models.get_by_id.return_value = mastery_model
    levels = AsyncMock(spec=MasteryLevelRepository)
    levels.list_for_model.return_value = mastery_levels

    evidence = AsyncMock(spec=EvidenceRepository)
    evidence.learners_for_scope.return_value = [LEARNER_A, LEARNER_B]
    evidence.competencies_for_scope.return_value = [COMPETENCY]
    evidence.collect_evidence.return_value = [
        _record(EvidenceType.ASSESSMENT, LEARNER_A),
        _record(EvidenceType.OBSERVATION, LEARNER_A),
        _record(EvidenceType.LESSON_LOG, LEARNER_A, competency_id=None),
    ]

    return {
        "runs": runs,
        "snapshots": AsyncMock(spec=MasterySnapshotRepository),
        "models": models,
        "levels": levels,
        "evidence": evidence,
    }


@pytest.fixture
def service(repositories):
    return MasteryRunService(**repositories)


@pytest.fixture
def run_request(mastery_model):
    def _make(**overrides):
        values = dict(scope_type="section", scope_id=uuid4(), mastery_model_id=mastery_model.id)
        values.update(overrides)
        return SnapshotRunRequest(**values)

    return _make


@pytest.mark.asyncio
async def test_generates_one_submitted_proposal_per_pair(service, repositories, run_request, teacher, level_by_label):
    result = await service.execute(run_request(snapshot_date=date(2026, 3, 31)), teacher)

    assert result.snapshot_count == 2
    assert result.message == "Generated 2 mastery snapshots"

    snapshots, links = repositories["snapshots"].add_generated.call_args.args
    by_learner = {s.learner_id: s for s in snapshots}
    assert all(s.status == MasteryStatus.SUBMITTED for s in snapshots)
    assert all(s.teacher_id == teacher.user_id and s.reviewed_by is None for s in snapshots)
    assert all(s.snapshot_run_id == result.snapshot_run_id for s in snapshots)

    # learner-wide lesson log counts toward the competency
    assert by_learner[LEARNER_A].evidence_count == 3
    assert by_learner[LEARNER_A].mastery_level_id == level_by_label["Proficient"].id
    assert by_learner[LEARNER_A].rationale_text == "3 evidence items incl 1 assessment + 1 observation"
    assert by_learner[LEARNER_B].mastery_level_id == level_by_label["Not Started"].id
    assert by_learner[LEARNER_B].evidence_count == 0
    assert len(links) == 3

    run_changes = repositories["runs"].update.call_args.kwargs
    assert run_changes == {"snapshot_count": 2}
    repositories["runs"].commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_syllabus_runs_collect_lesson_logs(service, repositories, run_request, teacher):
    request = run_request(scope_type="SYLLABUS")

    await service.execute(request, teacher)

    assert repositories["evidence"].collect_evidence.call_args.kwargs["syllabus_id"] == request.scope_id
    assert repositories["runs"].create.call_args.kwargs["scope_type"] is ScopeType.SYLLABUS


@pytest.mark.asyncio
async def test_invalid_scope_type(service, repositories, run_request, teacher):
    with pytest.raises(ValidationError) as exc_info:
        await service.execute(run_request(scope_type="galaxy"), teacher)

    assert exc_info.value.message == INVALID_SCOPE
    repositories["models"].get_by_id.assert_not_called()


@pytest.mark.asyncio
async def test_missing_fields(service, run_request, teacher):
    with pytest.raises(ValidationError) as exc_info:
        await service.execute(run_request(scope_id=None), teacher)

    assert exc_info.value.message == MISSING_RUN_FIELDS


@pytest.mark.asyncio
async def test_scope_without_learners(service, repositories, run_request, teacher):
    repositories["evidence"].learners_for_scope.return_value = []

    with pytest.raises(ValidationError) as exc_info:
        await service.execute(run_request(), teacher)

    assert exc_info.value.message == NO_LEARNERS
    repositories["runs"].create.assert_not_called()


@pytest.mark.asyncio
async def test_scope_without_competencies(service, repositories, run_request, teacher):
    repositories["evidence"].competencies_for_scope.return_value = []

    with pytest.raises(ValidationError, match="No competencies found for this section"):
        await service.execute(run_request(), teacher)


@pytest.mark.asyncio
async def test_scope_too_large(service, repositories, run_request, teacher, monkeypatch):
    monkeypatch.setattr(settings, "max_snapshot_pairs", 1)

    with pytest.raises(ValidationError, match="Scope too large"):
        await service.execute(run_request(), teacher)

    repositories["runs"].create.assert_not_called()


@pytest.mark.asyncio
async def test_model_from_another_organization(service, repositories, run_request, teacher, mastery_model):
    mastery_model.organization_id = uuid4()

    with pytest.raises(NotFoundError, match="Mastery model not found"):
        await service.execute(run_request(), teacher)


@pytest.mark.asyncio
async def test_students_cannot_generate(service, run_request, make_caller):
    with pytest.raises(ForbiddenError):
        await service.execute(run_request(), make_caller(Role.STUDENT))


@pytest.mark.asyncio
async def test_get_run_hides_archived(service, repositories, teacher):
    repositories["runs"].get_by_id.return_value = MasterySnapshotRun(
        id=uuid4(),
        organization_id=teacher.organization_id,
        archived_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )

    with pytest.raises(NotFoundError, match="Snapshot run not found"):
        await service.get_run(uuid4(), teacher)


def test_group_evidence_separates_learner_wide_items():
    pair_item = _record(EvidenceType.ASSESSMENT, LEARNER_A)
    learner_item = _record(EvidenceType.LESSON_LOG, LEARNER_A, competency_id=None)

    by_pair, by_learner = group_evidence([pair_item, learner_item])

    assert by_pair == {(LEARNER_A, COMPETENCY): [pair_item]}
    assert by_learner == {LEARNER_A: [learner_item]}
