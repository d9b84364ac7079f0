"""Closed value sets stored in mastery tables."""

from enum import Enum


class MasteryStatus(str, Enum):
    """Lifecycle of a mastery proposal."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"


class ScopeType(str, Enum):
    """What a snapshot run covers."""

    EXPERIENCE = "experience"
    SYLLABUS = "syllabus"
    PROGRAM = "program"
    SECTION = "section"


class EvidenceType(str, Enum):
    """Kinds of evidence a snapshot can cite."""

    ASSESSMENT = "assessment"
    OBSERVATION = "observation"
    PORTFOLIO_ARTIFACT = "portfolio_artifact"
    LESSON_LOG = "lesson_log"
    ATTENDANCE_SESSION = "attendance_session"


def enum_values(enum_cls) -> list[str]:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]
