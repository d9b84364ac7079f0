"""Request and response schemas for the mastery endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.database.enums import EvidenceType, MasteryStatus, ScopeType

# "reflection" is how the authoring UI labels lesson-log evidence
_HIGHLIGHT_ALIASES = {"reflection": EvidenceType.LESSON_LOG}


class EvidenceHighlight(BaseModel):
    """Evidence item a teacher highlights when drafting a proposal."""

    type: EvidenceType
    id: UUID

    @field_validator("type", mode="before")
    @classmethod
    def map_aliases(cls, value):
        if isinstance(value, str):
            return _HIGHLIGHT_ALIASES.get(value.strip().lower(), value.strip().lower())
        return value


class MasteryDraftRequest(BaseModel):
    """Body of ``POST /mastery/proposals``.

    Required fields are checked by the service so every caller gets the same
    error message.
    """

    learner_id: Optional[UUID] = None
    competency_id: Optional[UUID] = None
    mastery_level_id: Optional[UUID] = None
    rationale_text: Optional[str] = None
    outcome_id: Optional[UUID] = None
    school_id: Optional[UUID] = None
    organization_id: Optional[UUID] = None
    highlight_evidence_ids: Optional[List[EvidenceHighlight]] = None


class ReviewRequest(BaseModel):
    """Body of ``POST /mastery/proposals/{id}/review``."""

    action: Optional[Any] = None
    reviewer_notes: Optional[str] = None
    override_level_id: Optional[UUID] = None
    override_justification: Optional[str] = None


class MasterySnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    school_id: Optional[UUID] = None
    snapshot_run_id: Optional[UUID] = None
    learner_id: UUID
    competency_id: Optional[UUID] = None
    outcome_id: Optional[UUID] = None
    teacher_id: UUID
    mastery_level_id: UUID
    rationale_text: str
    evidence_count: int = 0
    last_evidence_at: Optional[datetime] = None
    snapshot_date: Optional[date] = None
    status: MasteryStatus
    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    reviewer_notes: Optional[str] = None
    override_justification: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None


class ProposalEnvelope(BaseModel):
    proposal: MasterySnapshotResponse


class ProposalListResponse(BaseModel):
    proposals: List[MasterySnapshotResponse]


class CurrentSnapshotsResponse(BaseModel):
    snapshots: List[MasterySnapshotResponse]


# --- Runs -------------------------------------------------------------------


class SnapshotRunRequest(BaseModel):
    """Body of ``POST /mastery/snapshot/run``."""

    scope_type: Optional[str] = None
    scope_id: Optional[UUID] = None
    mastery_model_id: Optional[UUID] = None
    school_year_id: Optional[UUID] = None
    school_id: Optional[UUID] = None
    organization_id: Optional[UUID] = None
    quarter: Optional[str] = None
    term: Optional[str] = None
    snapshot_date: Optional[date] = None


class SnapshotRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    school_id: Optional[UUID] = None
    mastery_model_id: Optional[UUID] = None
    scope_type: ScopeType
    scope_id: UUID
    school_year_id: Optional[UUID] = None
    quarter: Optional[str] = None
    term: Optional[str] = None
    snapshot_date: date
    snapshot_count: int = 0
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None


class RunListResponse(BaseModel):
    runs: List[SnapshotRunResponse]


class RunEnvelope(BaseModel):
    run: SnapshotRunResponse


class RunGenerationResult(BaseModel):
    snapshot_run_id: UUID
    snapshot_count: int
    message: str


# --- Evidence pack -----------------------------------------------------------


class EvidenceItem(BaseModel):
    type: EvidenceType
    id: UUID
    title: Optional[str] = None
    description: Optional[str] = None
    occurred_at: Optional[datetime] = None
    author_id: Optional[UUID] = None


class EvidencePackResponse(BaseModel):
    learner_id: UUID
    competency_id: UUID
    items: List[EvidenceItem]


# --- Models and levels -------------------------------------------------------


class MasteryModelBase(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    school_id: Optional[UUID] = None
    program_id: Optional[UUID] = None
    threshold_not_started: Optional[Decimal] = None
    threshold_emerging: Optional[Decimal] = None
    threshold_developing: Optional[Decimal] = None
    threshold_proficient: Optional[Decimal] = None
    threshold_mastered: Optional[Decimal] = None
    is_active: Optional[bool] = None


class MasteryModelCreate(MasteryModelBase):
    name: str = Field(..., min_length=1)


class MasteryModelUpdate(MasteryModelBase):
    pass


class MasteryModelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    school_id: Optional[UUID] = None
    program_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    threshold_not_started: Decimal
    threshold_emerging: Decimal
    threshold_developing: Decimal
    threshold_proficient: Decimal
    threshold_mastered: Decimal
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MasteryLevelCreate(BaseModel):
    label: str = Field(..., min_length=1)
    description: Optional[str] = None
    display_order: int = 0
    is_terminal: bool = False


class MasteryLevelUpdate(BaseModel):
    label: Optional[str] = None
    description: Optional[str] = None
    display_order: Optional[int] = None
    is_terminal: Optional[bool] = None

    @model_validator(mode="after")
    def label_not_blank(self):
        if self.label is not None and not self.label.strip():
            raise ValueError("label must not be blank")
        return self


class MasteryLevelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    mastery_model_id: UUID
    label: str
    description: Optional[str] = None
    display_order: int
    is_terminal: bool


class MasteryModelDetail(BaseModel):
    model: MasteryModelResponse
    levels: List[MasteryLevelResponse]
