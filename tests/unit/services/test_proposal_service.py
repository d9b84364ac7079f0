from uuid import uuid4

import pytest

from app.core.exceptions import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from app.core.policy import Role
from app.database.enums import EvidenceType, MasteryStatus
from app.schemas.mastery import MasteryDraftRequest
from app.services.mastery.proposal_service import MISSING_DRAFT_FIELDS, MasteryProposalService


@pytest.fixture
def service(snapshot_store):
    return MasteryProposalService(snapshot_store)


@pytest.fixture
def draft_request(level_by_label):
    def _make(level="Developing", **overrides):
        values = dict(
            learner_id=uuid4(),
            competency_id=uuid4(),
            mastery_level_id=level_by_label[level].id,
            rationale_text="Explains reasoning with support",
        )
        values.update(overrides)
        return MasteryDraftRequest(**values)

    return _make


@pytest.mark.asyncio
async def test_upsert_creates_draft(service, snapshot_store, teacher, draft_request, org_id):
    snapshot = await service.upsert_draft(draft_request(), teacher)

    assert snapshot.status == MasteryStatus.DRAFT
    assert snapshot.teacher_id == teacher.user_id
    assert snapshot.organization_id == org_id
    assert snapshot.reviewed_by is None
    assert snapshot_store.commits == 1


@pytest.mark.asyncio
async def test_upsert_twice_edits_the_same_draft(service, snapshot_store, teacher, draft_request, level_by_label):
    request = draft_request()
    first = await service.upsert_draft(request, teacher)

    second = await service.upsert_draft(
        request.model_copy(
            update={"mastery_level_id": level_by_label["Proficient"].id, "rationale_text": "  Now independent  "}
        ),
        teacher,
    )

    assert second.id == first.id
    assert len(snapshot_store.rows) == 1
    assert second.mastery_level_id == level_by_label["Proficient"].id
    assert second.rationale_text == "Now independent"
    assert second.status == MasteryStatus.DRAFT


@pytest.mark.asyncio
async def test_other_teachers_get_their_own_draft(service, snapshot_store, make_caller, draft_request):
    request = draft_request()

    await service.upsert_draft(request, make_caller(Role.TEACHER))
    await service.upsert_draft(request, make_caller(Role.MENTOR))

    assert len(snapshot_store.rows) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["learner_id", "competency_id", "mastery_level_id", "rationale_text"])
async def test_upsert_requires_fields(service, snapshot_store, teacher, draft_request, missing):
    with pytest.raises(ValidationError) as exc_info:
        await service.upsert_draft(draft_request(**{missing: None}), teacher)

    assert exc_info.value.message == MISSING_DRAFT_FIELDS
    assert snapshot_store.rows == {}


@pytest.mark.asyncio
async def test_blank_rationale_is_missing(service, teacher, draft_request):
    with pytest.raises(ValidationError, match="Missing required fields"):
        await service.upsert_draft(draft_request(rationale_text="   "), teacher)


@pytest.mark.asyncio
async def test_students_cannot_draft(service, make_caller, draft_request):
    with pytest.raises(ForbiddenError):
        await service.upsert_draft(draft_request(), make_caller(Role.STUDENT))


@pytest.mark.asyncio
async def test_highlighted_evidence_replaces_links(service, snapshot_store, teacher, draft_request):
    artifact_id, log_id = uuid4(), uuid4()
    request = draft_request(
        highlight_evidence_ids=[
            {"type": "portfolio_artifact", "id": str(artifact_id)},
            {"type": "reflection", "id": str(log_id)},
        ]
    )

    snapshot = await service.upsert_draft(request, teacher)

    assert snapshot_store.links[snapshot.id] == [
        (EvidenceType.PORTFOLIO_ARTIFACT, artifact_id),
        (EvidenceType.LESSON_LOG, log_id),
    ]
    assert snapshot.evidence_count == 2


@pytest.mark.asyncio
async def test_submit_moves_draft_to_review_queue(service, snapshot_store, teacher, principal, draft_request):
    draft = await service.upsert_draft(draft_request(), teacher)

    submitted = await service.submit(draft.id, teacher)

    assert submitted.status == MasteryStatus.SUBMITTED
    assert submitted.submitted_at is not None
    assert [p.id for p in await service.list_for_review(principal)] == [draft.id]
    assert await service.list_drafts(teacher) == []


@pytest.mark.asyncio
async def test_submit_is_idempotent(service, snapshot_store, teacher, draft_request):
    draft = await service.upsert_draft(draft_request(), teacher)
    first = await service.submit(draft.id, teacher)
    submitted_at = first.submitted_at
    commits = snapshot_store.commits

    again = await service.submit(draft.id, teacher)

    assert again.status == MasteryStatus.SUBMITTED
    assert again.submitted_at == submitted_at
    assert snapshot_store.commits == commits


@pytest.mark.asyncio
async def test_submit_someone_elses_proposal(service, make_caller, teacher, principal, draft_request):
    draft = await service.upsert_draft(draft_request(), teacher)

    with pytest.raises(ForbiddenError):
        await service.submit(draft.id, make_caller(Role.TEACHER))

    submitted = await service.submit(draft.id, principal)
    assert submitted.status == MasteryStatus.SUBMITTED


@pytest.mark.asyncio
async def test_submit_decided_proposal_conflicts(service, teacher, draft_request):
    draft = await service.upsert_draft(draft_request(), teacher)
    draft.status = MasteryStatus.APPROVED

    with pytest.raises(InvalidTransitionError):
        await service.submit(draft.id, teacher)


@pytest.mark.asyncio
async def test_submit_unknown_proposal(service, teacher):
    with pytest.raises(NotFoundError, match="Proposal not found"):
        await service.submit(uuid4(), teacher)


@pytest.mark.asyncio
async def test_returned_proposal_is_edited_in_place(service, snapshot_store, teacher, draft_request, level_by_label):
    request = draft_request()
    draft = await service.upsert_draft(request, teacher)
    draft.status = MasteryStatus.CHANGES_REQUESTED

    edited = await service.upsert_draft(
        request.model_copy(update={"mastery_level_id": level_by_label["Emerging"].id}), teacher
    )

    assert edited.id == draft.id
    assert edited.status == MasteryStatus.CHANGES_REQUESTED
    assert (await service.submit(edited.id, teacher)).status == MasteryStatus.SUBMITTED


@pytest.mark.asyncio
async def test_list_drafts_of_another_teacher(service, teacher, principal, draft_request):
    draft = await service.upsert_draft(draft_request(), teacher)

    with pytest.raises(ForbiddenError):
        await service.list_drafts(teacher, teacher_id=principal.user_id)

    assert [d.id for d in await service.list_drafts(principal, teacher_id=teacher.user_id)] == [draft.id]


@pytest.mark.asyncio
async def test_teachers_cannot_list_review_queue(service, teacher):
    with pytest.raises(ForbiddenError):
        await service.list_for_review(teacher)
