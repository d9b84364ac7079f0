"""Repository for profile and roster lookups."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Admission, Profile, Student
from app.repositories.base_repository import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    """Profiles are read-only from the service's point of view."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Profile)


class StudentRepository(BaseRepository[Student]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Student)

    async def get_by_profile_id(self, profile_id: UUID, organization_id: UUID) -> Optional[Student]:
        """Student record linked to a login, if any."""
        try:
            query = select(Student).where(
                Student.profile_id == profile_id,
                Student.organization_id == organization_id,
                Student.archived_at.is_(None),
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            raise self._fail("retrieving", e) from e

    async def list_for_export(self, organization_id: UUID) -> List[Student]:
        try:
            query = (
                select(Student)
                .where(Student.organization_id == organization_id, Student.archived_at.is_(None))
                .order_by(Student.last_name, Student.first_name, Student.id)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e


class AdmissionRepository(BaseRepository[Admission]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Admission)

    async def list_for_export(self, organization_id: UUID) -> List[Admission]:
        try:
            query = (
                select(Admission)
                .where(Admission.organization_id == organization_id)
                .order_by(Admission.created_at.desc(), Admission.id)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e
