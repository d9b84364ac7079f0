"""Repository for mastery snapshots, their evidence links and override logs."""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.enums import EvidenceType, MasteryStatus
from app.database.models import (
    MasteryOverrideLog,
    MasterySnapshot,
    MasterySnapshotEvidenceLink,
    MasterySnapshotRun,
)
from app.repositories.base_repository import BaseRepository

EVIDENCE_ID_COLUMNS = {
    EvidenceType.ASSESSMENT: "assessment_id",
    EvidenceType.OBSERVATION: "observation_id",
    EvidenceType.PORTFOLIO_ARTIFACT: "portfolio_artifact_id",
    EvidenceType.LESSON_LOG: "lesson_log_id",
    EvidenceType.ATTENDANCE_SESSION: "attendance_session_id",
}

EDITABLE = (MasteryStatus.DRAFT, MasteryStatus.CHANGES_REQUESTED)


def build_evidence_link(
    snapshot: MasterySnapshot,
    evidence_type: EvidenceType,
    evidence_id: UUID,
    created_by: Optional[UUID],
) -> MasterySnapshotEvidenceLink:
    """Evidence link row with the id column matching ``evidence_type`` set."""
    link = MasterySnapshotEvidenceLink(
        organization_id=snapshot.organization_id,
        snapshot_id=snapshot.id,
        evidence_type=evidence_type,
        created_by=created_by,
    )
    setattr(link, EVIDENCE_ID_COLUMNS[evidence_type], evidence_id)
    return link


class MasterySnapshotRepository(BaseRepository[MasterySnapshot]):
    """Data access for the mastery proposal workflow."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, MasterySnapshot)

    async def find_editable(
        self,
        organization_id: UUID,
        learner_id: UUID,
        competency_id: UUID,
        teacher_id: UUID,
    ) -> Optional[MasterySnapshot]:
        """The teacher's open draft (or returned proposal) for a learner and competency."""
        try:
            query = (
                select(MasterySnapshot)
                .where(
                    MasterySnapshot.organization_id == organization_id,
                    MasterySnapshot.learner_id == learner_id,
                    MasterySnapshot.competency_id == competency_id,
                    MasterySnapshot.teacher_id == teacher_id,
                    MasterySnapshot.status.in_(EDITABLE),
                    MasterySnapshot.archived_at.is_(None),
                )
                .order_by(MasterySnapshot.updated_at.desc())
                .limit(1)
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            raise self._fail("retrieving", e) from e

    async def list_drafts(self, organization_id: UUID, teacher_id: UUID) -> List[MasterySnapshot]:
        """Editable proposals of one teacher, most recently edited first."""
        try:
            query = (
                select(MasterySnapshot)
                .where(
                    MasterySnapshot.organization_id == organization_id,
                    MasterySnapshot.teacher_id == teacher_id,
                    MasterySnapshot.status.in_(EDITABLE),
                    MasterySnapshot.archived_at.is_(None),
                )
                .order_by(MasterySnapshot.updated_at.desc())
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e

    async def list_for_review(self, organization_id: UUID) -> List[MasterySnapshot]:
        """Submitted proposals awaiting a decision, newest first."""
        try:
            query = (
                select(MasterySnapshot)
                .where(
                    MasterySnapshot.organization_id == organization_id,
                    MasterySnapshot.status == MasteryStatus.SUBMITTED,
                    MasterySnapshot.archived_at.is_(None),
                )
                .order_by(MasterySnapshot.submitted_at.desc().nulls_last(), MasterySnapshot.created_at.desc())
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e

    async def list_approved(
        self,
        organization_id: UUID,
        learner_id: Optional[UUID] = None,
        competency_id: Optional[UUID] = None,
        outcome_id: Optional[UUID] = None,
        school_year_id: Optional[UUID] = None,
    ) -> List[MasterySnapshot]:
        """Approved, unarchived snapshots reviewed by someone other than the author."""
        try:
            query = select(MasterySnapshot).where(
                MasterySnapshot.organization_id == organization_id,
                MasterySnapshot.status == MasteryStatus.APPROVED,
                MasterySnapshot.archived_at.is_(None),
                MasterySnapshot.reviewed_by.is_not(None),
                MasterySnapshot.reviewed_by != MasterySnapshot.teacher_id,
            )
            if learner_id is not None:
                query = query.where(MasterySnapshot.learner_id == learner_id)
            if competency_id is not None:
                query = query.where(MasterySnapshot.competency_id == competency_id)
            if outcome_id is not None:
                query = query.where(MasterySnapshot.outcome_id == outcome_id)
            if school_year_id is not None:
                query = query.join(
                    MasterySnapshotRun, MasterySnapshotRun.id == MasterySnapshot.snapshot_run_id
                ).where(MasterySnapshotRun.school_year_id == school_year_id)
            query = query.order_by(MasterySnapshot.snapshot_date.desc())
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e

    async def replace_evidence_links(
        self,
        snapshot: MasterySnapshot,
        highlights: Sequence[tuple[EvidenceType, UUID]],
        actor_id: UUID,
    ) -> List[MasterySnapshotEvidenceLink]:
        """Archive the snapshot's current links and cite ``highlights`` instead."""
        try:
            await self.session.execute(
                update(MasterySnapshotEvidenceLink)
                .where(
                    MasterySnapshotEvidenceLink.snapshot_id == snapshot.id,
                    MasterySnapshotEvidenceLink.archived_at.is_(None),
                )
                .values(archived_at=datetime.now(timezone.utc))
            )
            links = [build_evidence_link(snapshot, kind, evidence_id, actor_id) for kind, evidence_id in highlights]
            self.session.add_all(links)
            await self.session.flush()
            return links
        except SQLAlchemyError as e:
            raise self._fail("replacing evidence links for", e) from e

    async def add_override_log(
        self,
        snapshot: MasterySnapshot,
        new_level_id: UUID,
        justification: str,
        actor_id: UUID,
    ) -> MasteryOverrideLog:
        try:
            log = MasteryOverrideLog(
                organization_id=snapshot.organization_id,
                snapshot_id=snapshot.id,
                previous_mastery_level_id=snapshot.mastery_level_id,
                new_mastery_level_id=new_level_id,
                justification_text=justification,
                created_by=actor_id,
            )
            self.session.add(log)
            await self.session.flush()
            return log
        except SQLAlchemyError as e:
            raise self._fail("logging override for", e) from e

    async def add_generated(
        self,
        snapshots: Iterable[MasterySnapshot],
        links: Iterable[MasterySnapshotEvidenceLink],
    ) -> None:
        """Insert run-generated snapshots and their evidence links."""
        try:
            self.session.add_all(list(snapshots))
            await self.session.flush()
            self.session.add_all(list(links))
            await self.session.flush()
        except SQLAlchemyError as e:
            raise self._fail("inserting generated", e) from e
