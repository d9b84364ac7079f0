"""Drafting, submitting and listing mastery proposals."""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from app.core.exceptions import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from app.core.policy import Action
from app.database.enums import MasteryStatus
from app.database.models import MasterySnapshot
from app.repositories.mastery_snapshot_repository import MasterySnapshotRepository
from app.schemas.auth import CallerContext
from app.schemas.mastery import MasteryDraftRequest
from app.services.mastery.workflow import ensure_transition
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

MISSING_DRAFT_FIELDS = "Missing required fields: learner_id, competency_id, mastery_level_id, rationale_text"


class MasteryProposalService:
    """Teacher-side operations on mastery proposals.

    Each public method is its own operation, so this is a plain service
    rather than a single validate-then-run ``BaseService``.
    """

    def __init__(self, snapshots: MasterySnapshotRepository):
        """Initialize service.

        Args:
            snapshots: Repository for snapshot rows and their evidence links
        """
        self.snapshots = snapshots

    async def upsert_draft(self, request: MasteryDraftRequest, caller: CallerContext) -> MasterySnapshot:
        """Create the caller's draft for a learner and competency, or edit the open one.

        An open draft, or a proposal returned with changes requested, is
        edited in place and keeps its status. Highlighted evidence, when
        given, replaces the evidence previously cited.

        Args:
            request: Draft fields
            caller: Authenticated caller

        Returns:
            The created or updated snapshot

        Raises:
            ValidationError: If a required field is missing or blank
            ForbiddenError: If the caller may not draft in the organization
        """
        caller.require(Action.DRAFT_PROPOSAL)

        rationale = (request.rationale_text or "").strip()
        if not (request.learner_id and request.competency_id and request.mastery_level_id and rationale):
            raise ValidationError(MISSING_DRAFT_FIELDS)

        organization_id = caller.resolve_organization(request.organization_id)
        now = datetime.now(timezone.utc)

        snapshot = await self.snapshots.find_editable(
            organization_id, request.learner_id, request.competency_id, caller.user_id
        )
        if snapshot is not None:
            changes = {
                "mastery_level_id": request.mastery_level_id,
                "rationale_text": rationale,
                "updated_by": caller.user_id,
            }
            if request.outcome_id is not None:
                changes["outcome_id"] = request.outcome_id
            if request.school_id is not None:
                changes["school_id"] = request.school_id
            snapshot = await self.snapshots.update(snapshot, **changes)
            LOGGER.info(f"Updated mastery draft {snapshot.id} ({snapshot.status.value})")
        else:
            snapshot = await self.snapshots.create(
                organization_id=organization_id,
                school_id=request.school_id or caller.school_id,
                learner_id=request.learner_id,
                competency_id=request.competency_id,
                outcome_id=request.outcome_id,
                teacher_id=caller.user_id,
                mastery_level_id=request.mastery_level_id,
                rationale_text=rationale,
                evidence_count=len(request.highlight_evidence_ids or []),
                snapshot_date=now.date(),
                status=MasteryStatus.DRAFT,
                created_by=caller.user_id,
                updated_by=caller.user_id,
                created_at=now,
                updated_at=now,
            )
            LOGGER.info(f"Created mastery draft {snapshot.id} for learner {request.learner_id}")

        if request.highlight_evidence_ids is not None:
            highlights = [(h.type, h.id) for h in request.highlight_evidence_ids]
            await self.snapshots.replace_evidence_links(snapshot, highlights, caller.user_id)
            snapshot.evidence_count = len(highlights)
            snapshot.last_evidence_at = now if highlights else snapshot.last_evidence_at

        await self.snapshots.commit()
        return snapshot

    async def submit(self, snapshot_id: UUID, caller: CallerContext) -> MasterySnapshot:
        """Send a draft (or a returned proposal) to the review queue.

        Submitting an already submitted proposal returns it unchanged.

        Raises:
            NotFoundError: If the proposal does not exist
            ForbiddenError: If the caller neither owns it nor may submit for others
            InvalidTransitionError: If the proposal was already decided or archived
        """
        caller.require(Action.SUBMIT_OWN_PROPOSAL)
        snapshot = await self._get_in_organization(snapshot_id, caller)

        if snapshot.teacher_id != caller.user_id and not caller.can(Action.SUBMIT_ANY_PROPOSAL):
            LOGGER.warning(f"User {caller.user_id} tried to submit proposal {snapshot_id} owned by {snapshot.teacher_id}")
            raise ForbiddenError()

        if snapshot.archived_at is not None:
            raise InvalidTransitionError("Archived proposals cannot be submitted")
        if snapshot.status == MasteryStatus.SUBMITTED:
            return snapshot

        ensure_transition(snapshot.status, MasteryStatus.SUBMITTED)
        snapshot = await self.snapshots.update(
            snapshot,
            status=MasteryStatus.SUBMITTED,
            submitted_at=datetime.now(timezone.utc),
            updated_by=caller.user_id,
        )
        await self.snapshots.commit()

        LOGGER.info(f"Submitted mastery proposal {snapshot.id}")
        return snapshot

    async def list_drafts(self, caller: CallerContext, teacher_id: Optional[UUID] = None) -> List[MasterySnapshot]:
        """Editable proposals of a teacher, most recently edited first.

        Teachers see their own; principals and admins may name another teacher.
        """
        target = teacher_id or caller.user_id
        if target == caller.user_id:
            caller.require(Action.LIST_OWN_DRAFTS)
        else:
            caller.require(Action.LIST_ANY_DRAFTS)
        return await self.snapshots.list_drafts(caller.require_organization(), target)

    async def list_for_review(self, caller: CallerContext) -> List[MasterySnapshot]:
        """Submitted proposals of the caller's organization, newest first."""
        caller.require(Action.REVIEW_PROPOSAL)
        return await self.snapshots.list_for_review(caller.require_organization())

    async def _get_in_organization(self, snapshot_id: UUID, caller: CallerContext) -> MasterySnapshot:
        snapshot = await self.snapshots.get_by_id(snapshot_id)
        if snapshot is None:
            raise NotFoundError("Proposal not found")
        caller.ensure_same_organization(snapshot.organization_id)
        return snapshot
