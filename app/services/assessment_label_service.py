"""Assessment label sets and their ordered labels."""

from typing import List, Tuple
from uuid import UUID

from app.core.exceptions import NotFoundError
from app.core.policy import Action
from app.database.models import AssessmentLabel, AssessmentLabelSet
from app.repositories.assessment_label_repository import (
    AssessmentLabelRepository,
    AssessmentLabelSetRepository,
)
from app.schemas.assessment_labels import LabelCreate, LabelSetCreate, LabelSetUpdate, LabelUpdate
from app.schemas.auth import CallerContext
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AssessmentLabelService:
    """CRUD for assessment label sets and labels, one method per endpoint."""

    def __init__(self, label_sets: AssessmentLabelSetRepository, labels: AssessmentLabelRepository):
        self.label_sets = label_sets
        self.labels = labels

    async def list_sets(self, caller: CallerContext, include_inactive: bool = True) -> List[AssessmentLabelSet]:
        caller.require(Action.READ_LABEL_SETS)
        return await self.label_sets.list_sets(caller.require_organization(), include_inactive=include_inactive)

    async def get_set(self, set_id: UUID, caller: CallerContext) -> Tuple[AssessmentLabelSet, List[AssessmentLabel]]:
        caller.require(Action.READ_LABEL_SETS)
        label_set = await self._load_set(set_id, caller)
        return label_set, await self.labels.list_for_set(label_set.id)

    async def create_set(self, request: LabelSetCreate, caller: CallerContext) -> AssessmentLabelSet:
        caller.require(Action.MANAGE_LABEL_SETS)
        label_set = await self.label_sets.create(
            organization_id=caller.require_organization(),
            school_id=request.school_id or caller.school_id,
            name=request.name.strip(),
            description=request.description,
            is_active=request.is_active,
            created_by=caller.user_id,
            updated_by=caller.user_id,
        )
        await self.label_sets.commit()
        LOGGER.info(f"Created assessment label set {label_set.id}")
        return label_set

    async def update_set(self, set_id: UUID, request: LabelSetUpdate, caller: CallerContext) -> AssessmentLabelSet:
        caller.require(Action.MANAGE_LABEL_SETS)
        label_set = await self._load_set(set_id, caller)
        label_set = await self.label_sets.update(
            label_set, updated_by=caller.user_id, **request.model_dump(exclude_unset=True, exclude_none=True)
        )
        await self.label_sets.commit()
        return label_set

    async def archive_set(self, set_id: UUID, caller: CallerContext) -> AssessmentLabelSet:
        caller.require(Action.MANAGE_LABEL_SETS)
        label_set = await self._load_set(set_id, caller)
        label_set = await self.label_sets.archive(label_set, archived_by=caller.user_id)
        await self.label_sets.commit()
        return label_set

    async def list_labels(self, set_id: UUID, caller: CallerContext) -> List[AssessmentLabel]:
        caller.require(Action.READ_LABEL_SETS)
        label_set = await self._load_set(set_id, caller)
        return await self.labels.list_for_set(label_set.id)

    async def create_label(self, set_id: UUID, request: LabelCreate, caller: CallerContext) -> AssessmentLabel:
        caller.require(Action.MANAGE_LABEL_SETS)
        label_set = await self._load_set(set_id, caller)
        label = await self.labels.create(
            organization_id=label_set.organization_id,
            label_set_id=label_set.id,
            label_text=request.label_text.strip(),
            description=request.description,
            display_order=request.display_order,
            created_by=caller.user_id,
            updated_by=caller.user_id,
        )
        await self.labels.commit()
        return label

    async def update_label(self, label_id: UUID, request: LabelUpdate, caller: CallerContext) -> AssessmentLabel:
        caller.require(Action.MANAGE_LABEL_SETS)
        label = await self._load_label(label_id, caller)
        label = await self.labels.update(
            label, updated_by=caller.user_id, **request.model_dump(exclude_unset=True, exclude_none=True)
        )
        await self.labels.commit()
        return label

    async def archive_label(self, label_id: UUID, caller: CallerContext) -> AssessmentLabel:
        caller.require(Action.MANAGE_LABEL_SETS)
        label = await self._load_label(label_id, caller)
        label = await self.labels.archive(label, archived_by=caller.user_id)
        await self.labels.commit()
        return label

    async def _load_set(self, set_id: UUID, caller: CallerContext) -> AssessmentLabelSet:
        label_set = await self.label_sets.get_by_id(set_id)
        if label_set is None or label_set.archived_at is not None:
            raise NotFoundError("Label set not found")
        caller.ensure_same_organization(label_set.organization_id)
        return label_set

    async def _load_label(self, label_id: UUID, caller: CallerContext) -> AssessmentLabel:
        label = await self.labels.get_by_id(label_id)
        if label is None or label.archived_at is not None:
            raise NotFoundError("Label not found")
        caller.ensure_same_organization(label.organization_id)
        return label
