from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi import status

from app.core.auth import get_current_caller
from app.dependencies import (
    get_proposal_service,
    get_review_service,
    get_run_service,
    get_snapshot_service,
)
from app.main import app
from app.repositories.evidence_repository import EvidenceRepository
from app.repositories.mastery_setup_repository import (
    MasteryLevelRepository,
    MasteryModelRepository,
    MasteryRunRepository,
)
from app.repositories.mastery_snapshot_repository import MasterySnapshotRepository
from app.repositories.profile_repository import StudentRepository
from app.services.mastery.proposal_service import MasteryProposalService
from app.services.mastery.review_service import MasteryReviewService
from app.services.mastery.run_service import MasteryRunService
from app.services.mastery.snapshot_service import MasterySnapshotService


def act_as(caller):
    app.dependency_overrides[get_current_caller] = lambda: caller


@pytest.fixture
def level_repository(mastery_levels):
    by_id = {level.id: level for level in mastery_levels}
    repository = AsyncMock(spec=MasteryLevelRepository)
    repository.get_by_id.side_effect = lambda level_id: by_id.get(level_id)
    return repository


@pytest.fixture
def wired_services(snapshot_store, level_repository):
    """Route the proposal, review and snapshot endpoints to one in-memory store."""
    students = AsyncMock(spec=StudentRepository)
    evidence = AsyncMock(spec=EvidenceRepository)
    app.dependency_overrides[get_proposal_service] = lambda: MasteryProposalService(snapshot_store)
    app.dependency_overrides[get_review_service] = lambda: MasteryReviewService(snapshot_store, level_repository)
    app.dependency_overrides[get_snapshot_service] = lambda: MasterySnapshotService(
        snapshot_store, students, evidence
    )
    return snapshot_store


def test_draft_submit_override_then_current_view(test_client, wired_services, teacher, principal, level_by_label):
    learner_id, competency_id = uuid4(), uuid4()

    act_as(teacher)
    response = test_client.post(
        "/api/v1/mastery/proposals",
        json={
            "learner_id": str(learner_id),
            "competency_id": str(competency_id),
            "mastery_level_id": str(level_by_label["Developing"].id),
            "rationale_text": "Explains steps with prompting",
        },
    )
    assert response.status_code == status.HTTP_200_OK
    proposal = response.json()["proposal"]
    assert proposal["status"] == "draft"

    response = test_client.post(f"/api/v1/mastery/proposals/{proposal['id']}/submit")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["proposal"]["status"] == "submitted"

    act_as(principal)
    queue = test_client.get("/api/v1/mastery/proposals", params={"type": "review"}).json()["proposals"]
    assert [p["id"] for p in queue] == [proposal["id"]]
    assert test_client.get("/api/v1/mastery/snapshots/current").json() == {"snapshots": []}

    response = test_client.post(
        f"/api/v1/mastery/proposals/{proposal['id']}/review",
        json={
            "action": "override",
            "override_level_id": str(level_by_label["Proficient"].id),
            "override_justification": "Portfolio shows independent work",
        },
    )
    assert response.status_code == status.HTTP_200_OK
    reviewed = response.json()["proposal"]
    assert reviewed["status"] == "approved"
    assert reviewed["reviewed_by"] == str(principal.user_id)

    current = test_client.get("/api/v1/mastery/snapshots/current").json()["snapshots"]
    assert len(current) == 1
    assert current[0]["mastery_level_id"] == str(level_by_label["Proficient"].id)
    assert current[0]["learner_id"] == str(learner_id)
    assert len(wired_services.override_logs) == 1


def test_request_changes_then_resubmit(test_client, wired_services, teacher, principal, level_by_label):
    act_as(teacher)
    body = {
        "learner_id": str(uuid4()),
        "competency_id": str(uuid4()),
        "mastery_level_id": str(level_by_label["Emerging"].id),
        "rationale_text": "First attempt",
    }
    proposal_id = test_client.post("/api/v1/mastery/proposals", json=body).json()["proposal"]["id"]
    test_client.post(f"/api/v1/mastery/proposals/{proposal_id}/submit")

    act_as(principal)
    response = test_client.post(
        f"/api/v1/mastery/proposals/{proposal_id}/review",
        json={"action": "request_changes", "reviewer_notes": "Add an observation"},
    )
    assert response.json()["proposal"]["status"] == "changes_requested"
    assert response.json()["proposal"]["reviewer_notes"] == "Add an observation"

    act_as(teacher)
    drafts = test_client.get("/api/v1/mastery/proposals", params={"type": "drafts"}).json()["proposals"]
    assert [d["id"] for d in drafts] == [proposal_id]

    edited = test_client.post("/api/v1/mastery/proposals", json={**body, "rationale_text": "Observed twice"})
    assert edited.json()["proposal"]["id"] == proposal_id
    resubmitted = test_client.post(f"/api/v1/mastery/proposals/{proposal_id}/submit")
    assert resubmitted.json()["proposal"]["status"] == "submitted"


def test_review_with_unknown_action(test_client, principal, level_repository):
    snapshots = AsyncMock(spec=MasterySnapshotRepository)
    act_as(principal)
    app.dependency_overrides[get_review_service] = lambda: MasteryReviewService(snapshots, level_repository)

    response = test_client.post(f"/api/v1/mastery/proposals/{uuid4()}/review", json={"action": "bogus"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Invalid action. Must be: approve, request_changes, or override"}
    assert snapshots.mock_calls == []


def test_review_with_numeric_action(test_client, principal, level_repository):
    snapshots = AsyncMock(spec=MasterySnapshotRepository)
    act_as(principal)
    app.dependency_overrides[get_review_service] = lambda: MasteryReviewService(snapshots, level_repository)

    response = test_client.post(f"/api/v1/mastery/proposals/{uuid4()}/review", json={"action": 5})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Invalid action. Must be: approve, request_changes, or override"}
    assert snapshots.mock_calls == []


def test_override_without_justification(test_client, principal, level_repository):
    act_as(principal)
    app.dependency_overrides[get_review_service] = lambda: MasteryReviewService(
        AsyncMock(spec=MasterySnapshotRepository), level_repository
    )

    response = test_client.post(
        f"/api/v1/mastery/proposals/{uuid4()}/review",
        json={"action": "override", "override_level_id": str(uuid4())},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Override requires override_level_id and override_justification"}


def test_teacher_review_is_forbidden(test_client, wired_services, teacher):
    act_as(teacher)

    response = test_client.post(f"/api/v1/mastery/proposals/{uuid4()}/review", json={"action": "approve"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"error": "Forbidden"}


def test_submit_unknown_proposal(test_client, wired_services, teacher):
    act_as(teacher)

    response = test_client.post(f"/api/v1/mastery/proposals/{uuid4()}/submit")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Proposal not found"}


def test_draft_with_missing_fields(test_client, wired_services, teacher):
    act_as(teacher)

    response = test_client.post("/api/v1/mastery/proposals", json={"learner_id": str(uuid4())})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {
        "error": "Missing required fields: learner_id, competency_id, mastery_level_id, rationale_text"
    }


def test_list_proposals_with_invalid_type(test_client, wired_services, teacher):
    act_as(teacher)

    response = test_client.get("/api/v1/mastery/proposals", params={"type": "archived"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Invalid type. Must be: review or drafts"}


def test_malformed_proposal_id(test_client, wired_services, teacher):
    act_as(teacher)

    response = test_client.post("/api/v1/mastery/proposals/not-a-uuid/submit")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "snapshot_id" in response.json()["error"]


def test_snapshot_run_with_invalid_scope(test_client, teacher):
    repositories = dict(
        runs=AsyncMock(spec=MasteryRunRepository),
        snapshots=AsyncMock(spec=MasterySnapshotRepository),
        models=AsyncMock(spec=MasteryModelRepository),
        levels=AsyncMock(spec=MasteryLevelRepository),
        evidence=AsyncMock(spec=EvidenceRepository),
    )
    act_as(teacher)
    app.dependency_overrides[get_run_service] = lambda: MasteryRunService(**repositories)

    response = test_client.post(
        "/api/v1/mastery/snapshot/run",
        json={"scope_type": "galaxy", "scope_id": str(uuid4()), "mastery_model_id": str(uuid4())},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Invalid scope_type. Must be: experience, syllabus, program, or section"}
    assert repositories["models"].mock_calls == []
