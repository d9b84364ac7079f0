"""Role normalization and the role x action authorization table.

Row-level security in the database remains the outer enforcement layer;
these rules are checked in-process before any write so that a misconfigured
policy cannot silently widen access.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional

from app.core.exceptions import ForbiddenError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Role(str, Enum):
    """Closed set of profile roles."""

    PRINCIPAL = "principal"
    ADMIN = "admin"
    REGISTRAR = "registrar"
    TEACHER = "teacher"
    MENTOR = "mentor"
    STUDENT = "student"


class Action(str, Enum):
    """Operations gated by role."""

    DRAFT_PROPOSAL = "draft_proposal"
    SUBMIT_OWN_PROPOSAL = "submit_own_proposal"
    SUBMIT_ANY_PROPOSAL = "submit_any_proposal"
    LIST_OWN_DRAFTS = "list_own_drafts"
    LIST_ANY_DRAFTS = "list_any_drafts"
    REVIEW_PROPOSAL = "review_proposal"
    VIEW_CURRENT_SNAPSHOTS = "view_current_snapshots"
    VIEW_ANY_LEARNER = "view_any_learner"
    VIEW_EVIDENCE = "view_evidence"
    GENERATE_RUN = "generate_run"
    LIST_RUNS = "list_runs"
    READ_MASTERY_SETUP = "read_mastery_setup"
    MANAGE_MASTERY_SETUP = "manage_mastery_setup"
    READ_LABEL_SETS = "read_label_sets"
    MANAGE_LABEL_SETS = "manage_label_sets"
    EXPORT_RECORDS = "export_records"


_ROLE_ALIASES: Dict[str, Role] = {
    "faculty": Role.TEACHER,
    "instructor": Role.TEACHER,
    "school_admin": Role.ADMIN,
    "administrator": Role.ADMIN,
    "learner": Role.STUDENT,
}

_STAFF: FrozenSet[Role] = frozenset(
    {Role.PRINCIPAL, Role.ADMIN, Role.REGISTRAR, Role.TEACHER, Role.MENTOR}
)
_LEADERSHIP: FrozenSet[Role] = frozenset({Role.PRINCIPAL, Role.ADMIN})
_AUTHORS: FrozenSet[Role] = frozenset({Role.PRINCIPAL, Role.ADMIN, Role.TEACHER, Role.MENTOR})

POLICY: Dict[Action, FrozenSet[Role]] = {
    Action.DRAFT_PROPOSAL: _AUTHORS,
    Action.SUBMIT_OWN_PROPOSAL: _AUTHORS,
    Action.SUBMIT_ANY_PROPOSAL: _LEADERSHIP,
    Action.LIST_OWN_DRAFTS: _AUTHORS,
    Action.LIST_ANY_DRAFTS: _LEADERSHIP,
    Action.REVIEW_PROPOSAL: _LEADERSHIP,
    Action.VIEW_CURRENT_SNAPSHOTS: _STAFF | {Role.STUDENT},
    Action.VIEW_ANY_LEARNER: _STAFF,
    Action.VIEW_EVIDENCE: _AUTHORS,
    Action.GENERATE_RUN: _AUTHORS,
    Action.LIST_RUNS: _STAFF,
    Action.READ_MASTERY_SETUP: _STAFF,
    Action.MANAGE_MASTERY_SETUP: _LEADERSHIP,
    Action.READ_LABEL_SETS: _STAFF,
    Action.MANAGE_LABEL_SETS: _LEADERSHIP,
    Action.EXPORT_RECORDS: _LEADERSHIP | {Role.REGISTRAR},
}


def normalize_role(raw: Optional[str]) -> Optional[Role]:
    """Map a stored role string onto the closed Role enum.

    Matching ignores case, surrounding whitespace, and treats ``-`` and
    spaces as ``_``. Returns None for empty or unknown values.
    """
    if raw is None:
        return None
    key = raw.strip().lower().replace("-", "_").replace(" ", "_")
    if not key:
        return None
    if key in _ROLE_ALIASES:
        return _ROLE_ALIASES[key]
    try:
        return Role(key)
    except ValueError:
        return None


def is_allowed(role: Optional[Role], action: Action, is_super_admin: bool = False) -> bool:
    """Check the rule table. Super admins pass every rule."""
    if is_super_admin:
        return True
    if role is None:
        return False
    return role in POLICY.get(action, frozenset())


def ensure_allowed(role: Optional[Role], action: Action, is_super_admin: bool = False) -> None:
    """Raise ForbiddenError unless the role may perform the action."""
    if not is_allowed(role, action, is_super_admin):
        LOGGER.warning(f"Denied {action.value} for role {role.value if role else None}")
        raise ForbiddenError()
