"""Authentication schemas: the verified token holder and their resolved profile."""

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.exceptions import ForbiddenError
from app.core.policy import Action, Role, ensure_allowed, is_allowed


class CurrentUser(BaseModel):
    """Current authenticated user information."""

    id: str = Field(..., description="Supabase user ID")
    email: Optional[str] = Field(None, description="User email")
    role: str = Field(default="authenticated", description="Token role claim")
    app_metadata: Optional[Dict[str, Any]] = Field(None, description="Application metadata")
    user_metadata: Optional[Dict[str, Any]] = Field(None, description="User metadata")
    claims: Dict[str, Any] = Field(default_factory=dict, exclude=True, description="Raw verified claims")


class CallerContext(BaseModel):
    """Authenticated user joined with their profile row.

    Every business operation receives one of these and checks it against the
    role x action table before touching data.
    """

    user_id: UUID
    email: Optional[str] = None
    organization_id: Optional[UUID] = None
    school_id: Optional[UUID] = None
    role: Optional[Role] = None
    raw_role: Optional[str] = None
    is_super_admin: bool = False
    claims: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    def can(self, action: Action) -> bool:
        return is_allowed(self.role, action, self.is_super_admin)

    def require(self, action: Action) -> None:
        ensure_allowed(self.role, action, self.is_super_admin)

    def require_organization(self) -> UUID:
        """Return the caller's organization or raise ForbiddenError."""
        if self.organization_id is None:
            raise ForbiddenError("Profile is not assigned to an organization")
        return self.organization_id

    def resolve_organization(self, requested: Optional[UUID] = None) -> UUID:
        """Organization an operation acts on. Only super admins may name another one."""
        if requested is None or requested == self.organization_id:
            return self.require_organization()
        if not self.is_super_admin:
            raise ForbiddenError()
        return requested

    def ensure_same_organization(self, organization_id: UUID) -> None:
        if self.is_super_admin:
            return
        if organization_id != self.organization_id:
            raise ForbiddenError()


class ProfileResponse(BaseModel):
    """Caller profile returned by ``/users/whoami``."""

    id: UUID
    email: Optional[str] = None
    organization_id: Optional[UUID] = None
    school_id: Optional[UUID] = None
    role: Optional[Role] = None
    is_super_admin: bool = False
