"""Assessment label set endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from app.core.auth import get_current_caller
from app.dependencies import get_assessment_label_service
from app.schemas.assessment_labels import (
    LabelCreate,
    LabelListResponse,
    LabelResponse,
    LabelSetCreate,
    LabelSetDetail,
    LabelSetListResponse,
    LabelSetResponse,
    LabelSetUpdate,
    LabelUpdate,
)
from app.schemas.auth import CallerContext
from app.services.assessment_label_service import AssessmentLabelService

router = APIRouter()

Caller = Annotated[CallerContext, Depends(get_current_caller)]
Service = Annotated[AssessmentLabelService, Depends(get_assessment_label_service)]


@router.get("/label-sets", response_model=LabelSetListResponse, operation_id="list_assessment_label_sets")
async def list_label_sets(caller: Caller, service: Service, include_inactive: bool = True) -> LabelSetListResponse:
    label_sets = await service.list_sets(caller, include_inactive=include_inactive)
    return LabelSetListResponse(label_sets=[LabelSetResponse.model_validate(s) for s in label_sets])


@router.post(
    "/label-sets", response_model=LabelSetResponse, status_code=201, operation_id="create_assessment_label_set"
)
async def create_label_set(body: LabelSetCreate, caller: Caller, service: Service) -> LabelSetResponse:
    return LabelSetResponse.model_validate(await service.create_set(body, caller))


@router.get("/label-sets/{set_id}", response_model=LabelSetDetail, operation_id="get_assessment_label_set")
async def get_label_set(set_id: UUID, caller: Caller, service: Service) -> LabelSetDetail:
    label_set, labels = await service.get_set(set_id, caller)
    return LabelSetDetail(
        label_set=LabelSetResponse.model_validate(label_set),
        labels=[LabelResponse.model_validate(label) for label in labels],
    )


@router.patch("/label-sets/{set_id}", response_model=LabelSetResponse, operation_id="update_assessment_label_set")
async def update_label_set(set_id: UUID, body: LabelSetUpdate, caller: Caller, service: Service) -> LabelSetResponse:
    return LabelSetResponse.model_validate(await service.update_set(set_id, body, caller))


@router.delete("/label-sets/{set_id}", response_model=LabelSetResponse, operation_id="archive_assessment_label_set")
async def archive_label_set(set_id: UUID, caller: Caller, service: Service) -> LabelSetResponse:
    return LabelSetResponse.model_validate(await service.archive_set(set_id, caller))


@router.get("/label-sets/{set_id}/labels", response_model=LabelListResponse, operation_id="list_assessment_labels")
async def list_labels(set_id: UUID, caller: Caller, service: Service) -> LabelListResponse:
    labels = await service.list_labels(set_id, caller)
    return LabelListResponse(labels=[LabelResponse.model_validate(label) for label in labels])


@router.post(
    "/label-sets/{set_id}/labels",
    response_model=LabelResponse,
    status_code=201,
    operation_id="create_assessment_label",
)
async def create_label(set_id: UUID, body: LabelCreate, caller: Caller, service: Service) -> LabelResponse:
    return LabelResponse.model_validate(await service.create_label(set_id, body, caller))


@router.patch("/labels/{label_id}", response_model=LabelResponse, operation_id="update_assessment_label")
async def update_label(label_id: UUID, body: LabelUpdate, caller: Caller, service: Service) -> LabelResponse:
    return LabelResponse.model_validate(await service.update_label(label_id, body, caller))


@router.delete("/labels/{label_id}", response_model=LabelResponse, operation_id="archive_assessment_label")
async def archive_label(label_id: UUID, caller: Caller, service: Service) -> LabelResponse:
    return LabelResponse.model_validate(await service.archive_label(label_id, caller))
