"""Mastery model and level configuration endpoints."""

from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from app.core.auth import get_current_caller
from app.dependencies import get_setup_service
from app.schemas.auth import CallerContext
from app.schemas.mastery import (
    MasteryLevelCreate,
    MasteryLevelResponse,
    MasteryLevelUpdate,
    MasteryModelCreate,
    MasteryModelDetail,
    MasteryModelResponse,
    MasteryModelUpdate,
)
from app.services.mastery.setup_service import MasterySetupService

router = APIRouter()

Caller = Annotated[CallerContext, Depends(get_current_caller)]
Service = Annotated[MasterySetupService, Depends(get_setup_service)]


@router.get("/models", response_model=List[MasteryModelResponse], operation_id="list_mastery_models")
async def list_models(
    caller: Caller,
    service: Service,
    school_id: Optional[UUID] = None,
    active_only: bool = False,
) -> List[MasteryModelResponse]:
    models = await service.list_models(caller, school_id=school_id, active_only=active_only)
    return [MasteryModelResponse.model_validate(m) for m in models]


@router.post("/models", response_model=MasteryModelResponse, status_code=201, operation_id="create_mastery_model")
async def create_model(body: MasteryModelCreate, caller: Caller, service: Service) -> MasteryModelResponse:
    return MasteryModelResponse.model_validate(await service.create_model(body, caller))


@router.get("/models/{model_id}", response_model=MasteryModelDetail, operation_id="get_mastery_model")
async def get_model(model_id: UUID, caller: Caller, service: Service) -> MasteryModelDetail:
    model, levels = await service.get_model(model_id, caller)
    return MasteryModelDetail(
        model=MasteryModelResponse.model_validate(model),
        levels=[MasteryLevelResponse.model_validate(level) for level in levels],
    )


@router.patch("/models/{model_id}", response_model=MasteryModelResponse, operation_id="update_mastery_model")
async def update_model(
    model_id: UUID, body: MasteryModelUpdate, caller: Caller, service: Service
) -> MasteryModelResponse:
    return MasteryModelResponse.model_validate(await service.update_model(model_id, body, caller))


@router.delete("/models/{model_id}", response_model=MasteryModelResponse, operation_id="archive_mastery_model")
async def archive_model(model_id: UUID, caller: Caller, service: Service) -> MasteryModelResponse:
    return MasteryModelResponse.model_validate(await service.archive_model(model_id, caller))


@router.get(
    "/models/{model_id}/levels", response_model=List[MasteryLevelResponse], operation_id="list_mastery_levels"
)
async def list_levels(model_id: UUID, caller: Caller, service: Service) -> List[MasteryLevelResponse]:
    return [MasteryLevelResponse.model_validate(level) for level in await service.list_levels(model_id, caller)]


@router.post(
    "/models/{model_id}/levels",
    response_model=MasteryLevelResponse,
    status_code=201,
    operation_id="create_mastery_level",
)
async def create_level(
    model_id: UUID, body: MasteryLevelCreate, caller: Caller, service: Service
) -> MasteryLevelResponse:
    return MasteryLevelResponse.model_validate(await service.create_level(model_id, body, caller))


@router.patch("/levels/{level_id}", response_model=MasteryLevelResponse, operation_id="update_mastery_level")
async def update_level(
    level_id: UUID, body: MasteryLevelUpdate, caller: Caller, service: Service
) -> MasteryLevelResponse:
    return MasteryLevelResponse.model_validate(await service.update_level(level_id, body, caller))


@router.delete("/levels/{level_id}", response_model=MasteryLevelResponse, operation_id="archive_mastery_level")
async def archive_level(level_id: UUID, caller: Caller, service: Service) -> MasteryLevelResponse:
    return MasteryLevelResponse.model_validate(await service.archive_level(level_id, caller))
