"""Centralized dependency injection for FastAPI application.

Business services act through a user-credential session so the database's
row-level security sees the caller's identity; only profile resolution uses
the service credential.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_caller
from app.database.session import session_for_claims
from app.repositories.assessment_label_repository import (
    AssessmentLabelRepository,
    AssessmentLabelSetRepository,
)
from app.repositories.evidence_repository import EvidenceRepository
from app.repositories.mastery_setup_repository import (
    MasteryLevelRepository,
    MasteryModelRepository,
    MasteryRunRepository,
)
from app.repositories.mastery_snapshot_repository import MasterySnapshotRepository
from app.repositories.profile_repository import AdmissionRepository, StudentRepository
from app.schemas.auth import CallerContext
from app.services.assessment_label_service import AssessmentLabelService
from app.services.export_service import ExportService
from app.services.mastery.proposal_service import MasteryProposalService
from app.services.mastery.review_service import MasteryReviewService
from app.services.mastery.run_service import MasteryRunService
from app.services.mastery.setup_service import MasterySetupService
from app.services.mastery.snapshot_service import MasterySnapshotService


async def get_user_session(
    caller: Annotated[CallerContext, Depends(get_current_caller)],
) -> AsyncGenerator[AsyncSession, None]:
    """Session that acts with the caller's JWT claims.

    Yields:
        AsyncSession: RLS-enforced database session
    """
    async for session in session_for_claims(caller.claims):
        yield session


UserSession = Annotated[AsyncSession, Depends(get_user_session)]


async def get_proposal_service(session: UserSession) -> MasteryProposalService:
    """Get mastery proposal service instance.

    Returns:
        MasteryProposalService: Drafting, submission and listing of proposals
    """
    return MasteryProposalService(MasterySnapshotRepository(session))


async def get_review_service(session: UserSession) -> MasteryReviewService:
    """Get review decision service instance.

    Returns:
        MasteryReviewService: Applies reviewer decisions
    """
    return MasteryReviewService(MasterySnapshotRepository(session), MasteryLevelRepository(session))


async def get_snapshot_service(session: UserSession) -> MasterySnapshotService:
    return MasterySnapshotService(
        MasterySnapshotRepository(session),
        StudentRepository(session),
        EvidenceRepository(session),
    )


async def get_run_service(session: UserSession) -> MasteryRunService:
    return MasteryRunService(
        runs=MasteryRunRepository(session),
        snapshots=MasterySnapshotRepository(session),
        models=MasteryModelRepository(session),
        levels=MasteryLevelRepository(session),
        evidence=EvidenceRepository(session),
    )


async def get_setup_service(session: UserSession) -> MasterySetupService:
    return MasterySetupService(MasteryModelRepository(session), MasteryLevelRepository(session))


async def get_assessment_label_service(session: UserSession) -> AssessmentLabelService:
    return AssessmentLabelService(AssessmentLabelSetRepository(session), AssessmentLabelRepository(session))


async def get_export_service(session: UserSession) -> ExportService:
    return ExportService(StudentRepository(session), AdmissionRepository(session))
