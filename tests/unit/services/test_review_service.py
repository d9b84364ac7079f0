from datetime import date, datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.core.exceptions import (
    ForbiddenError,
    InvalidActionError,
    InvalidTransitionError,
    MissingOverrideFieldsError,
    NotFoundError,
)
from app.core.policy import Role
from app.database.enums import MasteryStatus
from app.repositories.mastery_setup_repository import MasteryLevelRepository
from app.repositories.mastery_snapshot_repository import MasterySnapshotRepository
from app.schemas.mastery import ReviewRequest
from app.services.mastery.review_service import MasteryReviewService


@pytest.fixture
def level_repository(mastery_levels):
    by_id = {level.id: level for level in mastery_levels}
    repository = AsyncMock(spec=MasteryLevelRepository)
    repository.get_by_id.side_effect = lambda level_id: by_id.get(level_id)
    return repository


@pytest.fixture
def service(snapshot_store, level_repository):
    return MasteryReviewService(snapshot_store, level_repository)


@pytest.fixture
def submitted(snapshot_store, teacher, level_by_label):
    async def _make(status=MasteryStatus.SUBMITTED):
        return await snapshot_store.create(
            organization_id=teacher.organization_id,
            learner_id=uuid4(),
            competency_id=uuid4(),
            teacher_id=teacher.user_id,
            mastery_level_id=level_by_label["Developing"].id,
            rationale_text="Solves multi-step problems with prompting",
            snapshot_date=date(2026, 3, 1),
            status=status,
            submitted_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )

    return _make


@pytest.mark.asyncio
async def test_unknown_action_is_rejected_before_any_lookup(level_repository, principal):
    snapshots = AsyncMock(spec=MasterySnapshotRepository)
    service = MasteryReviewService(snapshots, level_repository)

    with pytest.raises(InvalidActionError) as exc_info:
        await service.execute(uuid4(), ReviewRequest(action="bogus"), principal)

    assert exc_info.value.message == "Invalid action. Must be: approve, request_changes, or override"
    assert snapshots.mock_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {},
        {"override_justification": "Portfolio shows independence"},
        {"override_level_id": uuid4()},
        {"override_level_id": uuid4(), "override_justification": "   "},
    ],
)
async def test_override_requires_level_and_justification(level_repository, principal, fields):
    snapshots = AsyncMock(spec=MasterySnapshotRepository)
    service = MasteryReviewService(snapshots, level_repository)

    with pytest.raises(MissingOverrideFieldsError, match="Override requires override_level_id and override_justification"):
        await service.execute(uuid4(), ReviewRequest(action="override", **fields), principal)

    assert snapshots.mock_calls == []
    level_repository.get_by_id.assert_not_called()


@pytest.mark.asyncio
async def test_approve_keeps_teacher_level(service, submitted, principal, level_by_label):
    proposal = await submitted()

    approved = await service.execute(proposal.id, ReviewRequest(action="approve"), principal)

    assert approved.status == MasteryStatus.APPROVED
    assert approved.reviewed_by == principal.user_id
    assert approved.reviewed_at is not None
    assert approved.mastery_level_id == level_by_label["Developing"].id
    assert approved.override_justification is None


@pytest.mark.asyncio
async def test_override_replaces_level_and_logs(service, snapshot_store, submitted, principal, level_by_label):
    proposal = await submitted()
    proficient = level_by_label["Proficient"]

    overridden = await service.execute(
        proposal.id,
        ReviewRequest(
            action="override",
            override_level_id=proficient.id,
            override_justification="  Independent work in portfolio  ",
        ),
        principal,
    )

    assert overridden.status == MasteryStatus.APPROVED
    assert overridden.mastery_level_id == proficient.id
    assert overridden.override_justification == "Independent work in portfolio"
    assert overridden.reviewed_by == principal.user_id

    [log] = snapshot_store.override_logs
    assert log.previous_mastery_level_id == level_by_label["Developing"].id
    assert log.new_mastery_level_id == proficient.id
    assert log.created_by == principal.user_id


@pytest.mark.asyncio
async def test_override_with_unknown_level(service, submitted, principal):
    proposal = await submitted()

    with pytest.raises(NotFoundError, match="Mastery level not found"):
        await service.execute(
            proposal.id,
            ReviewRequest(action="override", override_level_id=uuid4(), override_justification="Because"),
            principal,
        )

    assert proposal.status == MasteryStatus.SUBMITTED


@pytest.mark.asyncio
async def test_request_changes_returns_proposal_to_teacher(service, submitted, principal):
    proposal = await submitted()

    returned = await service.execute(proposal.id, ReviewRequest(action="request_changes"), principal)

    assert returned.status == MasteryStatus.CHANGES_REQUESTED
    assert returned.reviewer_notes == "Changes requested"
    assert returned.reviewed_by is None
    assert returned.rationale_text == "Solves multi-step problems with prompting"


@pytest.mark.asyncio
async def test_request_changes_keeps_reviewer_notes(service, submitted, principal):
    proposal = await submitted()

    returned = await service.execute(
        proposal.id,
        ReviewRequest(action="request_changes", reviewer_notes="Cite the March observation"),
        principal,
    )

    assert returned.reviewer_notes == "Cite the March observation"


@pytest.mark.asyncio
async def test_teachers_cannot_review(service, submitted, make_caller):
    proposal = await submitted()

    with pytest.raises(ForbiddenError):
        await service.execute(proposal.id, ReviewRequest(action="approve"), make_caller(Role.TEACHER))


@pytest.mark.asyncio
async def test_reviewer_cannot_review_own_proposal(service, snapshot_store, principal, level_by_label):
    own = await snapshot_store.create(
        organization_id=principal.organization_id,
        learner_id=uuid4(),
        competency_id=uuid4(),
        teacher_id=principal.user_id,
        mastery_level_id=level_by_label["Mastered"].id,
        rationale_text="Self-assessed",
        snapshot_date=date(2026, 3, 1),
        status=MasteryStatus.SUBMITTED,
    )

    with pytest.raises(ForbiddenError, match="Reviewers cannot review their own proposals"):
        await service.execute(own.id, ReviewRequest(action="approve"), principal)

    assert own.status == MasteryStatus.SUBMITTED


@pytest.mark.asyncio
async def test_reviewing_a_draft_conflicts(service, submitted, principal):
    draft = await submitted(status=MasteryStatus.DRAFT)

    with pytest.raises(InvalidTransitionError, match="Cannot move proposal from draft to approved"):
        await service.execute(draft.id, ReviewRequest(action="approve"), principal)


@pytest.mark.asyncio
async def test_repeated_decision_is_a_no_op(service, snapshot_store, submitted, principal):
    proposal = await submitted()
    await service.execute(proposal.id, ReviewRequest(action="approve"), principal)
    commits = snapshot_store.commits
    reviewed_at = proposal.reviewed_at

    again = await service.execute(proposal.id, ReviewRequest(action="approve"), principal)

    assert again.status == MasteryStatus.APPROVED
    assert again.reviewed_at == reviewed_at
    assert snapshot_store.commits == commits


@pytest.mark.asyncio
async def test_changing_decided_outcome_conflicts(service, submitted, principal):
    proposal = await submitted()
    await service.execute(proposal.id, ReviewRequest(action="approve"), principal)

    with pytest.raises(InvalidTransitionError):
        await service.execute(proposal.id, ReviewRequest(action="request_changes"), principal)


@pytest.mark.asyncio
async def test_proposal_in_other_organization(service, submitted, make_caller):
    proposal = await submitted()
    outsider = make_caller(Role.PRINCIPAL, organization_id=uuid4())

    with pytest.raises(ForbiddenError):
        await service.execute(proposal.id, ReviewRequest(action="approve"), outsider)


@pytest.mark.asyncio
async def test_unknown_proposal(service, principal):
    with pytest.raises(NotFoundError, match="Proposal not found"):
        await service.execute(uuid4(), ReviewRequest(action="approve"), principal)


@pytest.mark.asyncio
async def test_repeating_approval_on_archived_proposal_conflicts(service, snapshot_store, submitted, principal):
    proposal = await submitted()
    await service.execute(proposal.id, ReviewRequest(action="approve"), principal)
    proposal.archived_at = datetime(2026, 4, 1, tzinfo=timezone.utc)
    commits = snapshot_store.commits

    with pytest.raises(InvalidTransitionError, match="Archived proposals cannot be reviewed"):
        await service.execute(proposal.id, ReviewRequest(action="approve"), principal)

    assert snapshot_store.commits == commits


@pytest.mark.asyncio
@pytest.mark.parametrize("action", [5, ["approve"], {"name": "approve"}])
async def test_non_string_action_is_invalid(level_repository, principal, action):
    snapshots = AsyncMock(spec=MasterySnapshotRepository)
    service = MasteryReviewService(snapshots, level_repository)

    with pytest.raises(InvalidActionError):
        await service.execute(uuid4(), ReviewRequest(action=action), principal)

    assert snapshots.mock_calls == []
