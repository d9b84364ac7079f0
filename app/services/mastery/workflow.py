"""Mastery proposal lifecycle rules.

Pure functions over snapshot records: the transition table, the review
action parser, and the student-visibility projection.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Hashable, Iterable, List, Tuple

from app.core.exceptions import InvalidActionError, InvalidTransitionError
from app.database.enums import MasteryStatus
from app.database.models import MasterySnapshot

MASTERY_TRANSITIONS: Dict[MasteryStatus, FrozenSet[MasteryStatus]] = {
    MasteryStatus.DRAFT: frozenset({MasteryStatus.SUBMITTED}),
    MasteryStatus.CHANGES_REQUESTED: frozenset({MasteryStatus.SUBMITTED}),
    MasteryStatus.SUBMITTED: frozenset({MasteryStatus.APPROVED, MasteryStatus.CHANGES_REQUESTED}),
    MasteryStatus.APPROVED: frozenset(),
}

# Statuses the authoring teacher may still edit
EDITABLE_STATUSES: FrozenSet[MasteryStatus] = frozenset(
    {MasteryStatus.DRAFT, MasteryStatus.CHANGES_REQUESTED}
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class ReviewAction(str, Enum):
    """Reviewer decisions on a submitted proposal."""

    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    OVERRIDE = "override"

    @classmethod
    def parse(cls, raw) -> "ReviewAction":
        """Parse a request value, raising InvalidActionError for anything else."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw)
        except (TypeError, ValueError) as e:
            raise InvalidActionError() from e

    @property
    def end_status(self) -> MasteryStatus:
        if self is ReviewAction.REQUEST_CHANGES:
            return MasteryStatus.CHANGES_REQUESTED
        return MasteryStatus.APPROVED


def can_transition(current: MasteryStatus, target: MasteryStatus) -> bool:
    return target in MASTERY_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: MasteryStatus, target: MasteryStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move proposal from {current.value} to {target.value}"
        )


def is_student_visible(snapshot: MasterySnapshot) -> bool:
    """Approved by someone other than the author and not archived."""
    return (
        snapshot.status == MasteryStatus.APPROVED
        and snapshot.archived_at is None
        and snapshot.reviewed_by is not None
        and snapshot.reviewed_by != snapshot.teacher_id
    )


def _subject_key(snapshot: MasterySnapshot) -> Tuple[Hashable, Hashable]:
    return snapshot.learner_id, snapshot.competency_id or snapshot.outcome_id


def _recency_key(snapshot: MasterySnapshot) -> Tuple:
    return (
        snapshot.snapshot_date,
        snapshot.reviewed_at or _EPOCH,
        snapshot.updated_at or _EPOCH,
    )


def select_current_snapshots(snapshots: Iterable[MasterySnapshot]) -> List[MasterySnapshot]:
    """Keep the most recent visible snapshot per learner and competency (or outcome).

    Returns:
        Current snapshots, newest ``snapshot_date`` first
    """
    current: Dict[Tuple[Hashable, Hashable], MasterySnapshot] = {}
    for snapshot in snapshots:
        if not is_student_visible(snapshot):
            continue
        key = _subject_key(snapshot)
        held = current.get(key)
        if held is None or _recency_key(snapshot) > _recency_key(held):
            current[key] = snapshot

    return sorted(current.values(), key=_recency_key, reverse=True)
