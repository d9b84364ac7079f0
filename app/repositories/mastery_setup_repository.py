"""Repositories for mastery models, levels and snapshot runs."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.enums import ScopeType
from app.database.models import MasteryLevel, MasteryModel, MasterySnapshotRun
from app.repositories.base_repository import BaseRepository


class MasteryModelRepository(BaseRepository[MasteryModel]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, MasteryModel)

    async def list_models(
        self,
        organization_id: UUID,
        school_id: Optional[UUID] = None,
        active_only: bool = False,
    ) -> List[MasteryModel]:
        try:
            query = select(MasteryModel).where(
                MasteryModel.organization_id == organization_id,
                MasteryModel.archived_at.is_(None),
            )
            if school_id is not None:
                query = query.where(MasteryModel.school_id == school_id)
            if active_only:
                query = query.where(MasteryModel.is_active.is_(True))
            result = await self.session.execute(query.order_by(MasteryModel.name))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e


class MasteryLevelRepository(BaseRepository[MasteryLevel]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, MasteryLevel)

    async def list_for_model(self, mastery_model_id: UUID) -> List[MasteryLevel]:
        """Non-archived levels of a model in ``display_order``."""
        try:
            query = (
                select(MasteryLevel)
                .where(
                    MasteryLevel.mastery_model_id == mastery_model_id,
                    MasteryLevel.archived_at.is_(None),
                )
                .order_by(MasteryLevel.display_order, MasteryLevel.label)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e


class MasteryRunRepository(BaseRepository[MasterySnapshotRun]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, MasterySnapshotRun)

    async def list_runs(
        self,
        organization_id: UUID,
        school_id: Optional[UUID] = None,
        scope_type: Optional[ScopeType] = None,
        scope_id: Optional[UUID] = None,
        school_year_id: Optional[UUID] = None,
    ) -> List[MasterySnapshotRun]:
        """Non-archived runs, newest first."""
        try:
            query = select(MasterySnapshotRun).where(
                MasterySnapshotRun.organization_id == organization_id,
                MasterySnapshotRun.archived_at.is_(None),
            )
            if school_id is not None:
                query = query.where(MasterySnapshotRun.school_id == school_id)
            if scope_type is not None:
                query = query.where(MasterySnapshotRun.scope_type == scope_type)
            if scope_id is not None:
                query = query.where(MasterySnapshotRun.scope_id == scope_id)
            if school_year_id is not None:
                query = query.where(MasterySnapshotRun.school_year_id == school_year_id)
            result = await self.session.execute(query.order_by(MasterySnapshotRun.created_at.desc()))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e
