"""Reviewer decisions on submitted mastery proposals."""

from datetime import datetime, timezone
from uuid import UUID

from app.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    MissingOverrideFieldsError,
    NotFoundError,
)
from app.core.policy import Action
from app.database.enums import MasteryStatus
from app.database.models import MasterySnapshot
from app.repositories.mastery_setup_repository import MasteryLevelRepository
from app.repositories.mastery_snapshot_repository import MasterySnapshotRepository
from app.schemas.auth import CallerContext
from app.schemas.mastery import ReviewRequest
from app.services.base_service import BaseService
from app.services.mastery.workflow import ReviewAction, ensure_transition

DEFAULT_CHANGES_NOTE = "Changes requested"


class MasteryReviewService(BaseService):
    """Applies approve, request_changes or override to one proposal.

    Decisions:
        approve: status becomes approved and the reviewer is recorded; the
            teacher's level stands.
        request_changes: status becomes changes_requested and the notes are
            stored; the teacher edits and resubmits.
        override: the reviewer's level replaces the teacher's, an override
            log row is written, and the proposal is approved.

    Re-sending a decision whose outcome already holds returns the proposal
    unchanged and writes nothing.
    """

    def __init__(self, snapshots: MasterySnapshotRepository, levels: MasteryLevelRepository):
        super().__init__()
        self.snapshots = snapshots
        self.levels = levels

    def validate(self, snapshot_id: UUID, request: ReviewRequest, caller: CallerContext) -> None:
        action = ReviewAction.parse(request.action)
        if action is ReviewAction.OVERRIDE and not (
            request.override_level_id and (request.override_justification or "").strip()
        ):
            raise MissingOverrideFieldsError()

    async def run(self, snapshot_id: UUID, request: ReviewRequest, caller: CallerContext) -> MasterySnapshot:
        action = ReviewAction.parse(request.action)
        caller.require(Action.REVIEW_PROPOSAL)

        snapshot = await self.snapshots.get_by_id(snapshot_id)
        if snapshot is None:
            raise NotFoundError("Proposal not found")
        caller.ensure_same_organization(snapshot.organization_id)

        if snapshot.teacher_id == caller.user_id:
            self.logger.warning(f"Reviewer {caller.user_id} tried to review own proposal {snapshot.id}")
            raise ForbiddenError("Reviewers cannot review their own proposals")

        if snapshot.archived_at is not None:
            raise InvalidTransitionError("Archived proposals cannot be reviewed")

        if self._already_applied(snapshot, action, request):
            self.logger.info(f"Review {action.value} already applied to proposal {snapshot.id}")
            return snapshot

        ensure_transition(snapshot.status, action.end_status)

        now = datetime.now(timezone.utc)
        notes = (request.reviewer_notes or "").strip() or None

        if action is ReviewAction.APPROVE:
            changes = {
                "status": MasteryStatus.APPROVED,
                "reviewed_by": caller.user_id,
                "reviewed_at": now,
            }
            if notes:
                changes["reviewer_notes"] = notes

        elif action is ReviewAction.REQUEST_CHANGES:
            changes = {
                "status": MasteryStatus.CHANGES_REQUESTED,
                "reviewer_notes": notes or DEFAULT_CHANGES_NOTE,
                "reviewed_by": None,
                "reviewed_at": None,
            }

        else:
            level = await self.levels.get_by_id(request.override_level_id)
            if level is None or level.archived_at is not None:
                raise NotFoundError("Mastery level not found")
            caller.ensure_same_organization(level.organization_id)

            justification = request.override_justification.strip()
            await self.snapshots.add_override_log(snapshot, level.id, justification, caller.user_id)
            changes = {
                "status": MasteryStatus.APPROVED,
                "mastery_level_id": level.id,
                "override_justification": justification,
                "reviewed_by": caller.user_id,
                "reviewed_at": now,
            }
            if notes:
                changes["reviewer_notes"] = notes

        changes["updated_by"] = caller.user_id
        snapshot = await self.snapshots.update(snapshot, **changes)
        await self.snapshots.commit()

        self.logger.info(f"Applied {action.value} to mastery proposal {snapshot.id}")
        return snapshot

    @staticmethod
    def _already_applied(snapshot: MasterySnapshot, action: ReviewAction, request: ReviewRequest) -> bool:
        if action is ReviewAction.REQUEST_CHANGES:
            return snapshot.status == MasteryStatus.CHANGES_REQUESTED
        if snapshot.status != MasteryStatus.APPROVED or snapshot.reviewed_by is None:
            return False
        if action is ReviewAction.APPROVE:
            return True
        return (
            snapshot.mastery_level_id == request.override_level_id
            and (snapshot.override_justification or "") == request.override_justification.strip()
        )
