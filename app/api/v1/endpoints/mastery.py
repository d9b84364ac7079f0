"""Mastery proposal, review, snapshot and run endpoints."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_caller
from app.core.exceptions import ValidationError
from app.dependencies import (
    get_proposal_service,
    get_review_service,
    get_run_service,
    get_snapshot_service,
)
from app.schemas.auth import CallerContext
from app.schemas.mastery import (
    CurrentSnapshotsResponse,
    EvidencePackResponse,
    MasteryDraftRequest,
    MasterySnapshotResponse,
    ProposalEnvelope,
    ProposalListResponse,
    ReviewRequest,
    RunEnvelope,
    RunGenerationResult,
    RunListResponse,
    SnapshotRunRequest,
    SnapshotRunResponse,
)
from app.services.mastery.proposal_service import MasteryProposalService
from app.services.mastery.review_service import MasteryReviewService
from app.services.mastery.run_service import MasteryRunService
from app.services.mastery.snapshot_service import MasterySnapshotService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()

Caller = Annotated[CallerContext, Depends(get_current_caller)]


@router.get(
    "/proposals",
    response_model=ProposalListResponse,
    summary="List mastery proposals",
    description="type=review lists the organization's review queue; type=drafts lists editable proposals",
    operation_id="list_mastery_proposals",
)
async def list_proposals(
    caller: Caller,
    service: Annotated[MasteryProposalService, Depends(get_proposal_service)],
    type: str = Query("drafts", description="review | drafts"),
    teacher_id: Optional[UUID] = Query(None, description="Teacher whose drafts to list"),
) -> ProposalListResponse:
    if type == "review":
        proposals = await service.list_for_review(caller)
    elif type == "drafts":
        proposals = await service.list_drafts(caller, teacher_id=teacher_id)
    else:
        raise ValidationError("Invalid type. Must be: review or drafts")

    return ProposalListResponse(proposals=[MasterySnapshotResponse.model_validate(p) for p in proposals])


@router.post(
    "/proposals",
    response_model=ProposalEnvelope,
    summary="Create or update a mastery draft",
    operation_id="upsert_mastery_draft",
)
async def upsert_draft(
    body: MasteryDraftRequest,
    caller: Caller,
    service: Annotated[MasteryProposalService, Depends(get_proposal_service)],
) -> ProposalEnvelope:
    snapshot = await service.upsert_draft(body, caller)
    return ProposalEnvelope(proposal=MasterySnapshotResponse.model_validate(snapshot))


@router.post(
    "/proposals/{snapshot_id}/submit",
    response_model=ProposalEnvelope,
    summary="Submit a mastery draft for review",
    operation_id="submit_mastery_proposal",
)
async def submit_proposal(
    snapshot_id: UUID,
    caller: Caller,
    service: Annotated[MasteryProposalService, Depends(get_proposal_service)],
) -> ProposalEnvelope:
    snapshot = await service.submit(snapshot_id, caller)
    return ProposalEnvelope(proposal=MasterySnapshotResponse.model_validate(snapshot))


@router.post(
    "/proposals/{snapshot_id}/review",
    response_model=ProposalEnvelope,
    summary="Approve, request changes on, or override a proposal",
    operation_id="review_mastery_proposal",
)
async def review_proposal(
    snapshot_id: UUID,
    body: ReviewRequest,
    caller: Caller,
    service: Annotated[MasteryReviewService, Depends(get_review_service)],
) -> ProposalEnvelope:
    snapshot = await service.execute(snapshot_id, body, caller)
    return ProposalEnvelope(proposal=MasterySnapshotResponse.model_validate(snapshot))


@router.get(
    "/snapshots/current",
    response_model=CurrentSnapshotsResponse,
    summary="Current approved mastery per learner and competency",
    operation_id="get_current_mastery_snapshots",
)
async def get_current_snapshots(
    caller: Caller,
    service: Annotated[MasterySnapshotService, Depends(get_snapshot_service)],
    learner_id: Optional[UUID] = None,
    competency_id: Optional[UUID] = None,
    outcome_id: Optional[UUID] = None,
    school_year_id: Optional[UUID] = None,
    organization_id: Optional[UUID] = None,
) -> CurrentSnapshotsResponse:
    snapshots = await service.get_current_snapshots(
        caller,
        learner_id=learner_id,
        competency_id=competency_id,
        outcome_id=outcome_id,
        school_year_id=school_year_id,
        organization_id=organization_id,
    )
    return CurrentSnapshotsResponse(snapshots=[MasterySnapshotResponse.model_validate(s) for s in snapshots])


@router.get(
    "/evidence-pack",
    response_model=EvidencePackResponse,
    summary="Evidence available for a learner and competency",
    operation_id="get_mastery_evidence_pack",
)
async def get_evidence_pack(
    caller: Caller,
    service: Annotated[MasterySnapshotService, Depends(get_snapshot_service)],
    learner_id: Optional[UUID] = None,
    competency_id: Optional[UUID] = None,
) -> EvidencePackResponse:
    return await service.get_evidence_pack(caller, learner_id, competency_id)


@router.get(
    "/runs",
    response_model=RunListResponse,
    summary="List snapshot runs",
    operation_id="list_mastery_snapshot_runs",
)
async def list_runs(
    caller: Caller,
    service: Annotated[MasteryRunService, Depends(get_run_service)],
    organization_id: Optional[UUID] = None,
    school_id: Optional[UUID] = None,
    scope_type: Optional[str] = None,
    scope_id: Optional[UUID] = None,
    school_year_id: Optional[UUID] = None,
) -> RunListResponse:
    runs = await service.list_runs(
        caller,
        organization_id=organization_id,
        school_id=school_id,
        scope_type=scope_type,
        scope_id=scope_id,
        school_year_id=school_year_id,
    )
    return RunListResponse(runs=[SnapshotRunResponse.model_validate(r) for r in runs])


@router.get(
    "/runs/{run_id}",
    response_model=RunEnvelope,
    summary="Get a snapshot run",
    operation_id="get_mastery_snapshot_run",
)
async def get_run(
    run_id: UUID,
    caller: Caller,
    service: Annotated[MasteryRunService, Depends(get_run_service)],
) -> RunEnvelope:
    run = await service.get_run(run_id, caller)
    return RunEnvelope(run=SnapshotRunResponse.model_validate(run))


@router.post(
    "/snapshot/run",
    response_model=RunGenerationResult,
    summary="Generate mastery proposals for a scope",
    operation_id="generate_mastery_snapshot_run",
)
async def generate_run(
    body: SnapshotRunRequest,
    caller: Caller,
    service: Annotated[MasteryRunService, Depends(get_run_service)],
) -> RunGenerationResult:
    return await service.execute(body, caller)
