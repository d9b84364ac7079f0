"""Evidence-threshold rule that proposes a mastery level for a learner."""

from typing import Optional, Sequence

from app.database.models import MasteryLevel, MasteryModel


def _normalize_label(label: str) -> str:
    return label.strip().lower().replace(" ", "_").replace("-", "_")


def _find(levels: Sequence[MasteryLevel], label: str) -> Optional[MasteryLevel]:
    for level in levels:
        if _normalize_label(level.label) == label:
            return level
    return None


def determine_mastery_level(
    evidence_count: int,
    has_assessment: bool,
    has_observation: bool,
    model: MasteryModel,
    levels: Sequence[MasteryLevel],
) -> Optional[MasteryLevel]:
    """Pick a level from evidence volume and mix.

    Levels are matched by label (``not_started``, ``emerging``, ``developing``,
    ``proficient``, ``mastered``); when a label is missing the rule falls back
    to a position in ``display_order``.

    Args:
        evidence_count: Evidence items found for the learner and competency
        has_assessment: Whether a completed assessment is among them
        has_observation: Whether an observation is among them
        model: Mastery model carrying the thresholds
        levels: Non-archived levels of the model

    Returns:
        The proposed level, or None when the model has no levels
    """
    ordered = sorted(levels, key=lambda level: level.display_order)
    if not ordered:
        return None
    last = ordered[-1]

    if evidence_count == 0:
        return _find(ordered, "not_started") or ordered[0]

    if evidence_count >= model.threshold_mastered and has_assessment and has_observation:
        return _find(ordered, "mastered") or last

    if evidence_count >= model.threshold_proficient and (has_assessment or has_observation):
        return _find(ordered, "proficient") or last

    if evidence_count >= model.threshold_developing:
        return _find(ordered, "developing") or ordered[min(2, len(ordered) - 1)]

    if evidence_count >= model.threshold_emerging:
        return _find(ordered, "emerging") or ordered[min(1, len(ordered) - 1)]

    return ordered[0]


def describe_evidence(evidence_count: int, assessment_count: int, observation_count: int) -> str:
    """Rationale text attached to generated snapshots."""
    noun = "item" if evidence_count == 1 else "items"
    text = f"{evidence_count} evidence {noun}"
    parts = []
    if assessment_count:
        parts.append(f"{assessment_count} assessment{'s' if assessment_count != 1 else ''}")
    if observation_count:
        parts.append(f"{observation_count} observation{'s' if observation_count != 1 else ''}")
    if parts:
        text += " incl " + " + ".join(parts)
    return text
