"""Authentication dependencies for FastAPI routes.

Resolves the bearer token to a verified user, then to the caller's profile.
Any failure along the way is ``UnauthorizedError``.
"""

from typing import Annotated, Optional
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UnauthorizedError
from app.core.jwt import jwt_verifier
from app.core.policy import Action, normalize_role
from app.database.session import get_service_session
from app.repositories.profile_repository import ProfileRepository
from app.schemas.auth import CallerContext, CurrentUser
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Verify the bearer token.

    Raises:
        UnauthorizedError: If the header is missing, empty, or the token is invalid
    """
    if not credentials or not credentials.credentials.strip():
        LOGGER.warning("No authorization credentials provided")
        raise UnauthorizedError()

    try:
        claims = await jwt_verifier.verify_token(credentials.credentials.strip())
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(original_error=e) from e

    return CurrentUser(
        id=claims.sub,
        email=claims.email,
        role=claims.role or "authenticated",
        app_metadata=claims.app_metadata,
        user_metadata=claims.user_metadata,
        claims=claims.model_dump(exclude_none=True),
    )


async def get_current_caller(
    user: Annotated[CurrentUser, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_service_session)],
) -> CallerContext:
    """Load the caller's profile with the service credential.

    Raises:
        UnauthorizedError: If the token subject has no profile
    """
    try:
        user_id = UUID(user.id)
    except ValueError as e:
        raise UnauthorizedError(original_error=e) from e

    profile = await ProfileRepository(session).get_by_id(user_id)
    if profile is None:
        LOGGER.warning(f"No profile for authenticated user {user.id}")
        raise UnauthorizedError()

    role = normalize_role(profile.role)
    if role is None and profile.role:
        LOGGER.warning(f"Profile {profile.id} has unrecognized role {profile.role!r}")

    return CallerContext(
        user_id=profile.id,
        email=profile.email or user.email,
        organization_id=profile.organization_id,
        school_id=profile.school_id,
        role=role,
        raw_role=profile.role,
        is_super_admin=bool(profile.is_super_admin),
        claims=user.claims,
    )


def require_action(action: Action):
    """Create a dependency that admits only callers allowed to perform ``action``.

    Example:
        reviewers_only = require_action(Action.REVIEW_PROPOSAL)

        @router.get("/queue")
        async def queue(caller: CallerContext = Depends(reviewers_only)):
            ...
    """

    async def action_checker(
        caller: Annotated[CallerContext, Depends(get_current_caller)],
    ) -> CallerContext:
        caller.require(action)
        return caller

    return action_checker
