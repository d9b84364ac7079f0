"""Read-only access to rosters, competencies and evidence sources.

Used by snapshot run generation and the evidence pack. Nothing here writes.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError
from app.database.enums import EvidenceType, ScopeType
from app.database.models import (
    Assessment,
    Competency,
    ExperienceCompetencyLink,
    LessonLogLearnerVerification,
    Observation,
    PortfolioArtifact,
    PortfolioArtifactTag,
    Section,
    SectionStudent,
    SyllabusWeek,
    SyllabusWeekCompetencyLink,
    WeeklyLessonLog,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class EvidenceRecord:
    """One evidence item for a learner.

    ``competency_id`` is None for evidence that counts toward every competency
    in scope (lesson-log verifications of a syllabus).
    """

    evidence_type: EvidenceType
    id: UUID
    learner_id: UUID
    competency_id: Optional[UUID]
    occurred_at: Optional[datetime]
    title: Optional[str] = None
    description: Optional[str] = None
    author_id: Optional[UUID] = None


class EvidenceRepository:
    """Queries over the roster and evidence tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _scalars(self, query) -> list:
        try:
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            LOGGER.error(f"Evidence query failed: {e}", exc_info=True)
            raise DatabaseError("Failed reading evidence", original_error=e) from e

    async def _rows(self, query) -> list:
        try:
            result = await self.session.execute(query)
            return list(result.all())
        except SQLAlchemyError as e:
            LOGGER.error(f"Evidence query failed: {e}", exc_info=True)
            raise DatabaseError("Failed reading evidence", original_error=e) from e

    async def learners_for_scope(self, organization_id: UUID, scope_type: ScopeType, scope_id: UUID) -> List[UUID]:
        """Learner ids enrolled in, observed in, or verified for the scope."""
        if scope_type is ScopeType.SECTION:
            query = select(SectionStudent.student_id).where(
                SectionStudent.organization_id == organization_id,
                SectionStudent.section_id == scope_id,
                SectionStudent.archived_at.is_(None),
            )
        elif scope_type is ScopeType.PROGRAM:
            query = (
                select(SectionStudent.student_id)
                .join(Section, Section.id == SectionStudent.section_id)
                .where(
                    Section.organization_id == organization_id,
                    Section.program_id == scope_id,
                    Section.archived_at.is_(None),
                    SectionStudent.archived_at.is_(None),
                )
            )
        elif scope_type is ScopeType.EXPERIENCE:
            query = select(Observation.learner_id).where(
                Observation.organization_id == organization_id,
                Observation.experience_id == scope_id,
                Observation.archived_at.is_(None),
            )
        else:
            query = (
                select(LessonLogLearnerVerification.learner_id)
                .join(WeeklyLessonLog, WeeklyLessonLog.id == LessonLogLearnerVerification.lesson_log_id)
                .where(
                    WeeklyLessonLog.organization_id == organization_id,
                    WeeklyLessonLog.syllabus_id == scope_id,
                    WeeklyLessonLog.archived_at.is_(None),
                    LessonLogLearnerVerification.archived_at.is_(None),
                )
            )
        return _unique(await self._scalars(query.distinct()))

    async def competencies_for_scope(
        self, organization_id: UUID, scope_type: ScopeType, scope_id: UUID
    ) -> List[UUID]:
        """Competency ids linked to an experience or syllabus; all of them for program and section."""
        if scope_type is ScopeType.EXPERIENCE:
            query = select(ExperienceCompetencyLink.competency_id).where(
                ExperienceCompetencyLink.organization_id == organization_id,
                ExperienceCompetencyLink.experience_id == scope_id,
                ExperienceCompetencyLink.archived_at.is_(None),
            )
        elif scope_type is ScopeType.SYLLABUS:
            query = (
                select(SyllabusWeekCompetencyLink.competency_id)
                .join(SyllabusWeek, SyllabusWeek.id == SyllabusWeekCompetencyLink.syllabus_week_id)
                .where(
                    SyllabusWeek.organization_id == organization_id,
                    SyllabusWeek.syllabus_id == scope_id,
                    SyllabusWeek.archived_at.is_(None),
                    SyllabusWeekCompetencyLink.archived_at.is_(None),
                )
            )
        else:
            query = select(Competency.id).where(
                Competency.organization_id == organization_id,
                Competency.archived_at.is_(None),
            )
        return _unique(await self._scalars(query.distinct()))

    async def collect_evidence(
        self,
        organization_id: UUID,
        learner_ids: Sequence[UUID],
        competency_ids: Sequence[UUID],
        syllabus_id: Optional[UUID] = None,
    ) -> List[EvidenceRecord]:
        """All evidence for the given learners and competencies.

        Completed assessments, observations and tagged portfolio artifacts are
        always included; accomplished lesson-log verifications only when a
        syllabus is given.
        """
        if not learner_ids or not competency_ids:
            return []

        records: List[EvidenceRecord] = []

        assessments = await self._scalars(
            select(Assessment).where(
                Assessment.organization_id == organization_id,
                Assessment.learner_id.in_(learner_ids),
                Assessment.competency_id.in_(competency_ids),
                Assessment.status == "completed",
                Assessment.archived_at.is_(None),
            )
        )
        records.extend(
            EvidenceRecord(
                evidence_type=EvidenceType.ASSESSMENT,
                id=a.id,
                learner_id=a.learner_id,
                competency_id=a.competency_id,
                occurred_at=a.assessed_at,
                title=a.title,
                author_id=a.created_by,
            )
            for a in assessments
        )

        observations = await self._scalars(
            select(Observation).where(
                Observation.organization_id == organization_id,
                Observation.learner_id.in_(learner_ids),
                Observation.competency_id.in_(competency_ids),
                Observation.archived_at.is_(None),
            )
        )
        records.extend(
            EvidenceRecord(
                evidence_type=EvidenceType.OBSERVATION,
                id=o.id,
                learner_id=o.learner_id,
                competency_id=o.competency_id,
                occurred_at=o.observed_at,
                title="Observation",
                description=o.notes,
                author_id=o.created_by,
            )
            for o in observations
        )

        artifact_rows = await self._rows(
            select(PortfolioArtifact, PortfolioArtifactTag.competency_id)
            .join(PortfolioArtifactTag, PortfolioArtifactTag.artifact_id == PortfolioArtifact.id)
            .where(
                PortfolioArtifact.organization_id == organization_id,
                PortfolioArtifact.student_id.in_(learner_ids),
                PortfolioArtifactTag.competency_id.in_(competency_ids),
                PortfolioArtifact.archived_at.is_(None),
                PortfolioArtifactTag.archived_at.is_(None),
            )
        )
        records.extend(
            EvidenceRecord(
                evidence_type=EvidenceType.PORTFOLIO_ARTIFACT,
                id=artifact.id,
                learner_id=artifact.student_id,
                competency_id=competency_id,
                occurred_at=artifact.created_at,
                title=artifact.title,
                description=artifact.description,
                author_id=artifact.created_by,
            )
            for artifact, competency_id in artifact_rows
        )

        if syllabus_id is not None:
            verification_rows = await self._rows(
                select(LessonLogLearnerVerification, WeeklyLessonLog.created_by)
                .join(WeeklyLessonLog, WeeklyLessonLog.id == LessonLogLearnerVerification.lesson_log_id)
                .where(
                    WeeklyLessonLog.organization_id == organization_id,
                    WeeklyLessonLog.syllabus_id == syllabus_id,
                    LessonLogLearnerVerification.learner_id.in_(learner_ids),
                    LessonLogLearnerVerification.accomplished.is_(True),
                    LessonLogLearnerVerification.archived_at.is_(None),
                )
            )
            records.extend(
                EvidenceRecord(
                    evidence_type=EvidenceType.LESSON_LOG,
                    id=verification.lesson_log_id,
                    learner_id=verification.learner_id,
                    competency_id=None,
                    occurred_at=verification.created_at,
                    title="Lesson log",
                    description=verification.evidence_text,
                    author_id=author_id,
                )
                for verification, author_id in verification_rows
            )

        return records


def _unique(ids: list) -> List[UUID]:
    return list(dict.fromkeys(i for i in ids if i is not None))
