"""Student-facing projection of approved mastery snapshots, and evidence packs."""

from typing import List, Optional
from uuid import UUID

from app.core.exceptions import ForbiddenError, ValidationError
from app.core.policy import Action
from app.database.models import MasterySnapshot
from app.repositories.evidence_repository import EvidenceRepository
from app.repositories.mastery_snapshot_repository import MasterySnapshotRepository
from app.repositories.profile_repository import StudentRepository
from app.schemas.auth import CallerContext
from app.schemas.mastery import EvidenceItem, EvidencePackResponse
from app.services.mastery.workflow import select_current_snapshots
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class MasterySnapshotService:
    """Read side of the mastery workflow."""

    def __init__(
        self,
        snapshots: MasterySnapshotRepository,
        students: StudentRepository,
        evidence: EvidenceRepository,
    ):
        self.snapshots = snapshots
        self.students = students
        self.evidence = evidence

    async def get_current_snapshots(
        self,
        caller: CallerContext,
        learner_id: Optional[UUID] = None,
        competency_id: Optional[UUID] = None,
        outcome_id: Optional[UUID] = None,
        school_year_id: Optional[UUID] = None,
        organization_id: Optional[UUID] = None,
    ) -> List[MasterySnapshot]:
        """Latest approved snapshot per learner and competency.

        Drafts, pending and returned proposals, archived rows and proposals
        approved by their own author never appear. Students only see their
        own record.
        """
        caller.require(Action.VIEW_CURRENT_SNAPSHOTS)
        organization_id = caller.resolve_organization(organization_id)

        if not caller.can(Action.VIEW_ANY_LEARNER):
            student = await self.students.get_by_profile_id(caller.user_id, organization_id)
            if student is None or (learner_id is not None and learner_id != student.id):
                raise ForbiddenError()
            learner_id = student.id

        rows = await self.snapshots.list_approved(
            organization_id,
            learner_id=learner_id,
            competency_id=competency_id,
            outcome_id=outcome_id,
            school_year_id=school_year_id,
        )
        return select_current_snapshots(rows)

    async def get_evidence_pack(
        self,
        caller: CallerContext,
        learner_id: Optional[UUID],
        competency_id: Optional[UUID],
    ) -> EvidencePackResponse:
        """Evidence a teacher can cite for a learner and competency, newest first."""
        caller.require(Action.VIEW_EVIDENCE)
        if learner_id is None or competency_id is None:
            raise ValidationError("Missing required fields: learner_id, competency_id")

        organization_id = caller.require_organization()
        records = await self.evidence.collect_evidence(organization_id, [learner_id], [competency_id])
        records.sort(key=lambda r: (r.occurred_at is not None, r.occurred_at), reverse=True)

        return EvidencePackResponse(
            learner_id=learner_id,
            competency_id=competency_id,
            items=[
                EvidenceItem(
                    type=r.evidence_type,
                    id=r.id,
                    title=r.title,
                    description=r.description,
                    occurred_at=r.occurred_at,
                    author_id=r.author_id,
                )
                for r in records
            ],
        )
