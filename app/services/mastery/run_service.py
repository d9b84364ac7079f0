"""Snapshot runs: batch proposal generation for a scope, plus run listing."""

import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.core.policy import Action
from app.database.enums import EvidenceType, MasteryStatus, ScopeType
from app.database.models import (
    MasterySnapshot,
    MasterySnapshotEvidenceLink,
    MasterySnapshotRun,
)
from app.repositories.evidence_repository import EvidenceRecord, EvidenceRepository
from app.repositories.mastery_setup_repository import (
    MasteryLevelRepository,
    MasteryModelRepository,
    MasteryRunRepository,
)
from app.repositories.mastery_snapshot_repository import MasterySnapshotRepository, build_evidence_link
from app.schemas.auth import CallerContext
from app.schemas.mastery import RunGenerationResult, SnapshotRunRequest
from app.services.base_service import BaseService
from app.services.mastery.levels import describe_evidence, determine_mastery_level

MISSING_RUN_FIELDS = "Missing required fields: scope_type, scope_id, mastery_model_id"
INVALID_SCOPE = "Invalid scope_type. Must be: experience, syllabus, program, or section"
NO_LEARNERS = "No learners found for this scope"


def parse_scope_type(raw: Optional[str]) -> ScopeType:
    try:
        return ScopeType((raw or "").strip().lower())
    except ValueError as e:
        raise ValidationError(INVALID_SCOPE) from e


class MasteryRunService(BaseService):
    """Generates one submitted proposal per learner and competency in a scope.

    Generated proposals are authored by the caller and enter the review
    queue; nothing becomes student-visible until a different reviewer
    approves it.
    """

    def __init__(
        self,
        runs: MasteryRunRepository,
        snapshots: MasterySnapshotRepository,
        models: MasteryModelRepository,
        levels: MasteryLevelRepository,
        evidence: EvidenceRepository,
    ):
        super().__init__()
        self.runs = runs
        self.snapshots = snapshots
        self.models = models
        self.levels = levels
        self.evidence = evidence

    async def list_runs(
        self,
        caller: CallerContext,
        organization_id: Optional[UUID] = None,
        school_id: Optional[UUID] = None,
        scope_type: Optional[str] = None,
        scope_id: Optional[UUID] = None,
        school_year_id: Optional[UUID] = None,
    ) -> List[MasterySnapshotRun]:
        caller.require(Action.LIST_RUNS)
        return await self.runs.list_runs(
            caller.resolve_organization(organization_id),
            school_id=school_id,
            scope_type=parse_scope_type(scope_type) if scope_type else None,
            scope_id=scope_id,
            school_year_id=school_year_id,
        )

    async def get_run(self, run_id: UUID, caller: CallerContext) -> MasterySnapshotRun:
        caller.require(Action.LIST_RUNS)
        run = await self.runs.get_by_id(run_id)
        if run is None or run.archived_at is not None:
            raise NotFoundError("Snapshot run not found")
        caller.ensure_same_organization(run.organization_id)
        return run

    def validate(self, request: SnapshotRunRequest, caller: CallerContext) -> None:
        if not (request.scope_type and request.scope_id and request.mastery_model_id):
            raise ValidationError(MISSING_RUN_FIELDS)
        parse_scope_type(request.scope_type)

    async def run(self, request: SnapshotRunRequest, caller: CallerContext) -> RunGenerationResult:
        caller.require(Action.GENERATE_RUN)
        scope_type = parse_scope_type(request.scope_type)
        organization_id = caller.resolve_organization(request.organization_id)

        model = await self.models.get_by_id(request.mastery_model_id)
        if model is None or model.archived_at is not None or model.organization_id != organization_id:
            raise NotFoundError("Mastery model not found")
        levels = await self.levels.list_for_model(model.id)
        if not levels:
            raise ValidationError("Mastery model has no levels")

        learner_ids = await self.evidence.learners_for_scope(organization_id, scope_type, request.scope_id)
        if not learner_ids:
            raise ValidationError(NO_LEARNERS)
        competency_ids = await self.evidence.competencies_for_scope(organization_id, scope_type, request.scope_id)
        if not competency_ids:
            raise ValidationError(f"No competencies found for this {scope_type.value}")

        pairs = len(learner_ids) * len(competency_ids)
        if pairs > settings.max_snapshot_pairs:
            raise ValidationError(
                f"Scope too large: {pairs} learner/competency pairs exceeds {settings.max_snapshot_pairs}"
            )

        now = datetime.now(timezone.utc)
        snapshot_date = request.snapshot_date or now.date()
        run = await self.runs.create(
            organization_id=organization_id,
            school_id=request.school_id or caller.school_id,
            mastery_model_id=model.id,
            scope_type=scope_type,
            scope_id=request.scope_id,
            school_year_id=request.school_year_id,
            quarter=request.quarter,
            term=request.term,
            snapshot_date=snapshot_date,
            snapshot_count=0,
            created_by=caller.user_id,
            created_at=now,
            updated_at=now,
        )

        records = await self.evidence.collect_evidence(
            organization_id,
            learner_ids,
            competency_ids,
            syllabus_id=request.scope_id if scope_type is ScopeType.SYLLABUS else None,
        )
        by_pair, by_learner = group_evidence(records)

        snapshots: List[MasterySnapshot] = []
        links: List[MasterySnapshotEvidenceLink] = []
        for learner_id in learner_ids:
            for competency_id in competency_ids:
                items = by_pair.get((learner_id, competency_id), []) + by_learner.get(learner_id, [])
                assessments = sum(1 for r in items if r.evidence_type is EvidenceType.ASSESSMENT)
                observations = sum(1 for r in items if r.evidence_type is EvidenceType.OBSERVATION)

                level = determine_mastery_level(len(items), assessments > 0, observations > 0, model, levels)
                if level is None:
                    continue

                snapshot = MasterySnapshot(
                    id=uuid.uuid4(),
                    organization_id=organization_id,
                    school_id=run.school_id,
                    snapshot_run_id=run.id,
                    learner_id=learner_id,
                    competency_id=competency_id,
                    teacher_id=caller.user_id,
                    mastery_level_id=level.id,
                    rationale_text=describe_evidence(len(items), assessments, observations),
                    evidence_count=len(items),
                    last_evidence_at=max((r.occurred_at for r in items if r.occurred_at), default=None),
                    snapshot_date=snapshot_date,
                    status=MasteryStatus.SUBMITTED,
                    submitted_at=now,
                    created_by=caller.user_id,
                    updated_by=caller.user_id,
                    created_at=now,
                    updated_at=now,
                )
                snapshots.append(snapshot)
                links.extend(
                    build_evidence_link(snapshot, r.evidence_type, r.id, caller.user_id) for r in items
                )

        await self.snapshots.add_generated(snapshots, links)
        run = await self.runs.update(run, snapshot_count=len(snapshots))
        await self.runs.commit()

        self.logger.info(
            f"Snapshot run {run.id} generated {len(snapshots)} proposals for {scope_type.value} {request.scope_id}"
        )
        return RunGenerationResult(
            snapshot_run_id=run.id,
            snapshot_count=len(snapshots),
            message=f"Generated {len(snapshots)} mastery snapshots",
        )


def group_evidence(
    records: List[EvidenceRecord],
) -> Tuple[Dict[Tuple[UUID, UUID], List[EvidenceRecord]], Dict[UUID, List[EvidenceRecord]]]:
    """Split evidence into per-(learner, competency) and learner-wide buckets."""
    by_pair: Dict[Tuple[UUID, UUID], List[EvidenceRecord]] = defaultdict(list)
    by_learner: Dict[UUID, List[EvidenceRecord]] = defaultdict(list)
    for record in records:
        if record.competency_id is None:
            by_learner[record.learner_id].append(record)
        else:
            by_pair[(record.learner_id, record.competency_id)].append(record)
    return by_pair, by_learner
