"""Schemas for assessment label sets."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LabelSetCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    school_id: Optional[UUID] = None
    is_active: bool = True


class LabelSetUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class LabelCreate(BaseModel):
    label_text: str = Field(..., min_length=1)
    description: Optional[str] = None
    display_order: int = 0


class LabelUpdate(BaseModel):
    label_text: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    display_order: Optional[int] = None


class LabelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    label_set_id: UUID
    label_text: str
    description: Optional[str] = None
    display_order: int


class LabelSetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    school_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LabelSetDetail(BaseModel):
    label_set: LabelSetResponse
    labels: List[LabelResponse]


class LabelSetListResponse(BaseModel):
    label_sets: List[LabelSetResponse]


class LabelListResponse(BaseModel):
    labels: List[LabelResponse]
