"""Repositories for assessment label sets and labels."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import AssessmentLabel, AssessmentLabelSet
from app.repositories.base_repository import BaseRepository


class AssessmentLabelSetRepository(BaseRepository[AssessmentLabelSet]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, AssessmentLabelSet)

    async def list_sets(
        self,
        organization_id: UUID,
        school_id: Optional[UUID] = None,
        include_inactive: bool = True,
    ) -> List[AssessmentLabelSet]:
        try:
            query = select(AssessmentLabelSet).where(
                AssessmentLabelSet.organization_id == organization_id,
                AssessmentLabelSet.archived_at.is_(None),
            )
            if school_id is not None:
                query = query.where(AssessmentLabelSet.school_id == school_id)
            if not include_inactive:
                query = query.where(AssessmentLabelSet.is_active.is_(True))
            result = await self.session.execute(query.order_by(AssessmentLabelSet.name))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e


class AssessmentLabelRepository(BaseRepository[AssessmentLabel]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, AssessmentLabel)

    async def list_for_set(self, label_set_id: UUID) -> List[AssessmentLabel]:
        try:
            query = (
                select(AssessmentLabel)
                .where(
                    AssessmentLabel.label_set_id == label_set_id,
                    AssessmentLabel.archived_at.is_(None),
                )
                .order_by(AssessmentLabel.display_order, AssessmentLabel.label_text)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e
