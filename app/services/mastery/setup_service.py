"""Mastery model and level configuration."""

from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from app.core.exceptions import NotFoundError, ValidationError
from app.core.policy import Action
from app.database.models import MasteryLevel, MasteryModel
from app.repositories.mastery_setup_repository import MasteryLevelRepository, MasteryModelRepository
from app.schemas.auth import CallerContext
from app.schemas.mastery import (
    MasteryLevelCreate,
    MasteryLevelUpdate,
    MasteryModelCreate,
    MasteryModelUpdate,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

THRESHOLD_FIELDS = (
    "threshold_not_started",
    "threshold_emerging",
    "threshold_developing",
    "threshold_proficient",
    "threshold_mastered",
)
DEFAULT_THRESHOLDS = dict(zip(THRESHOLD_FIELDS, (Decimal(0), Decimal(1), Decimal(2), Decimal(3), Decimal(4))))


def validate_thresholds(values: dict) -> None:
    """Thresholds must be non-negative and non-decreasing from not_started to mastered."""
    ordered = [Decimal(values[name]) for name in THRESHOLD_FIELDS]
    if any(value < 0 for value in ordered):
        raise ValidationError("Thresholds must be non-negative")
    if any(later < earlier for earlier, later in zip(ordered, ordered[1:])):
        raise ValidationError("Thresholds must not decrease from not_started to mastered")


class MasterySetupService:
    """CRUD for mastery models and their levels. Archive, never delete.

    One method per endpoint; no shared validate-then-run flow, so no
    ``BaseService``.
    """

    def __init__(self, models: MasteryModelRepository, levels: MasteryLevelRepository):
        self.models = models
        self.levels = levels

    async def list_models(
        self, caller: CallerContext, school_id: Optional[UUID] = None, active_only: bool = False
    ) -> List[MasteryModel]:
        caller.require(Action.READ_MASTERY_SETUP)
        return await self.models.list_models(caller.require_organization(), school_id, active_only)

    async def get_model(self, model_id: UUID, caller: CallerContext) -> Tuple[MasteryModel, List[MasteryLevel]]:
        caller.require(Action.READ_MASTERY_SETUP)
        model = await self._load_model(model_id, caller)
        return model, await self.levels.list_for_model(model.id)

    async def create_model(self, request: MasteryModelCreate, caller: CallerContext) -> MasteryModel:
        caller.require(Action.MANAGE_MASTERY_SETUP)
        values = request.model_dump(exclude_none=True)
        for name, default in DEFAULT_THRESHOLDS.items():
            values.setdefault(name, default)
        values.setdefault("is_active", True)
        validate_thresholds(values)

        model = await self.models.create(
            organization_id=caller.require_organization(),
            created_by=caller.user_id,
            updated_by=caller.user_id,
            **values,
        )
        await self.models.commit()
        LOGGER.info(f"Created mastery model {model.id} ({model.name})")
        return model

    async def update_model(self, model_id: UUID, request: MasteryModelUpdate, caller: CallerContext) -> MasteryModel:
        caller.require(Action.MANAGE_MASTERY_SETUP)
        model = await self._load_model(model_id, caller)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes and not changes["name"].strip():
            raise ValidationError("name must not be blank")
        merged = {name: changes.get(name, getattr(model, name)) for name in THRESHOLD_FIELDS}
        validate_thresholds(merged)

        model = await self.models.update(model, updated_by=caller.user_id, **changes)
        await self.models.commit()
        return model

    async def archive_model(self, model_id: UUID, caller: CallerContext) -> MasteryModel:
        caller.require(Action.MANAGE_MASTERY_SETUP)
        model = await self._load_model(model_id, caller)
        model = await self.models.archive(model, archived_by=caller.user_id)
        await self.models.commit()
        LOGGER.info(f"Archived mastery model {model.id}")
        return model

    async def list_levels(self, model_id: UUID, caller: CallerContext) -> List[MasteryLevel]:
        caller.require(Action.READ_MASTERY_SETUP)
        model = await self._load_model(model_id, caller)
        return await self.levels.list_for_model(model.id)

    async def create_level(self, model_id: UUID, request: MasteryLevelCreate, caller: CallerContext) -> MasteryLevel:
        caller.require(Action.MANAGE_MASTERY_SETUP)
        model = await self._load_model(model_id, caller)
        level = await self.levels.create(
            organization_id=model.organization_id,
            mastery_model_id=model.id,
            label=request.label.strip(),
            description=request.description,
            display_order=request.display_order,
            is_terminal=request.is_terminal,
            created_by=caller.user_id,
            updated_by=caller.user_id,
        )
        await self.levels.commit()
        return level

    async def update_level(self, level_id: UUID, request: MasteryLevelUpdate, caller: CallerContext) -> MasteryLevel:
        caller.require(Action.MANAGE_MASTERY_SETUP)
        level = await self._load_level(level_id, caller)
        level = await self.levels.update(
            level, updated_by=caller.user_id, **request.model_dump(exclude_unset=True, exclude_none=True)
        )
        await self.levels.commit()
        return level

    async def archive_level(self, level_id: UUID, caller: CallerContext) -> MasteryLevel:
        caller.require(Action.MANAGE_MASTERY_SETUP)
        level = await self._load_level(level_id, caller)
        level = await self.levels.archive(level, archived_by=caller.user_id)
        await self.levels.commit()
        return level

    async def _load_model(self, model_id: UUID, caller: CallerContext) -> MasteryModel:
        model = await self.models.get_by_id(model_id)
        if model is None or model.archived_at is not None:
            raise NotFoundError("Mastery model not found")
        caller.ensure_same_organization(model.organization_id)
        return model

    async def _load_level(self, level_id: UUID, caller: CallerContext) -> MasteryLevel:
        level = await self.levels.get_by_id(level_id)
        if level is None or level.archived_at is not None:
            raise NotFoundError("Mastery level not found")
        caller.ensure_same_organization(level.organization_id)
        return level
