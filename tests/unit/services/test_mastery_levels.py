from uuid import uuid4

import pytest

from app.database.models import MasteryLevel
from app.services.mastery.levels import describe_evidence, determine_mastery_level


@pytest.mark.parametrize(
    "count, has_assessment, has_observation, expected",
    [
        (0, False, False, "Not Started"),
        (1, False, False, "Emerging"),
        (2, False, True, "Developing"),
        (3, True, False, "Proficient"),
        (3, False, False, "Developing"),
        (4, True, False, "Proficient"),
        (4, True, True, "Mastered"),
        (9, False, True, "Proficient"),
    ],
)
def test_determine_mastery_level(mastery_model, mastery_levels, count, has_assessment, has_observation, expected):
    level = determine_mastery_level(count, has_assessment, has_observation, mastery_model, mastery_levels)

    assert level.label == expected


def test_labels_match_loosely(mastery_model, org_id):
    levels = [
        MasteryLevel(id=uuid4(), organization_id=org_id, label="not-started", display_order=0),
        MasteryLevel(id=uuid4(), organization_id=org_id, label="  MASTERED ", display_order=1),
    ]

    assert determine_mastery_level(0, False, False, mastery_model, levels).label == "not-started"
    assert determine_mastery_level(5, True, True, mastery_model, levels).label == "  MASTERED "


def test_unlabelled_scale_falls_back_to_position(mastery_model, org_id):
    labels = ["Beginning", "Approaching", "Meeting", "Exceeding"]
    levels = [
        MasteryLevel(id=uuid4(), organization_id=org_id, label=label, display_order=order)
        for order, label in reversed(list(enumerate(labels)))
    ]

    def pick(count, assessment=False, observation=False):
        return determine_mastery_level(count, assessment, observation, mastery_model, levels).label

    assert pick(0) == "Beginning"
    assert pick(1) == "Approaching"
    assert pick(2) == "Meeting"
    assert pick(3, assessment=True) == "Exceeding"
    assert pick(6, assessment=True, observation=True) == "Exceeding"


def test_model_without_levels(mastery_model):
    assert determine_mastery_level(3, True, True, mastery_model, []) is None


def test_describe_evidence():
    assert describe_evidence(0, 0, 0) == "0 evidence items"
    assert describe_evidence(1, 0, 0) == "1 evidence item"
    assert describe_evidence(3, 1, 1) == "3 evidence items incl 1 assessment + 1 observation"
    assert describe_evidence(5, 2, 0) == "5 evidence items incl 2 assessments"
    assert describe_evidence(4, 0, 3) == "4 evidence items incl 3 observations"
