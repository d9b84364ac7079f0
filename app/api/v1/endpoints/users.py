"""User endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.auth import get_current_caller
from app.schemas.auth import CallerContext, ProfileResponse

router = APIRouter()


@router.get(
    "/whoami",
    response_model=ProfileResponse,
    summary="Get current user profile",
    description="Get the authenticated caller's profile, organization and normalized role",
    operation_id="get_current_user_profile",
)
async def get_current_user_profile(
    caller: Annotated[CallerContext, Depends(get_current_caller)],
) -> ProfileResponse:
    return ProfileResponse(
        id=caller.user_id,
        email=caller.email,
        organization_id=caller.organization_id,
        school_id=caller.school_id,
        role=caller.role,
        is_super_admin=caller.is_super_admin,
    )
