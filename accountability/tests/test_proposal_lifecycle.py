"""
Integration tests for the proposal lifecycle.

Covers every transition, actor checks, terminal states and the
notifications each transition emits.
"""

import pytest
from datetime import datetime, timedelta, timezone

from accountability.app.core.exceptions import ProposalNotFoundError
from accountability.app.domain.lifecycle.lifecycle_engine import LifecycleEngine
from accountability.app.services.notification_service import (
    ProposalCreated, StatusChanged, Completed, Failed
)


@pytest.mark.asyncio
async def test_create_proposal_assigns_partner(client, pair, sink):
    alice, bob = pair["alice"], pair["bob"]
    deadline = datetime.now(timezone.utc) + timedelta(days=2)

    response = await client.post("/v1/proposals", json={
        "title": "Read 30 pages",
        "description": "Any book",
        "deadline": deadline.isoformat(),
        "penalty_amount": 12.5
    }, headers=alice["headers"])

    assert response.status_code == 201
    proposal = response.json()["proposal"]
    assert proposal["status"] == "pending"
    assert proposal["created_by"] == alice["id"]
    assert proposal["assigned_to"] == bob["id"]
    assert proposal["deadline"] == int(deadline.timestamp())
    assert proposal["penalty_amount"] == 12.5
    assert proposal["accepted_at"] is None
    assert proposal["completed_at"] is None

    assert sink.events == [ProposalCreated(
        recipient="bob@example.com", proposer_name="Alice", title="Read 30 pages", penalty=12.5
    )]


@pytest.mark.asyncio
async def test_create_requires_partner(client):
    register = await client.post("/v1/auth/register", json={
        "email": "alice@example.com", "name": "Alice", "password": "password123"
    })
    headers = {"Authorization": f"Bearer {register.json()['access_token']}"}

    response = await client.post("/v1/proposals", json={
        "title": "Lonely task",
        "deadline": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        "penalty_amount": 5
    }, headers=headers)

    assert response.status_code == 400
    assert response.json()["message"] == "No partner found. Both users must be registered."


@pytest.mark.asyncio
async def test_create_rejects_past_deadline(client, pair, sink):
    response = await client.post("/v1/proposals", json={
        "title": "Too late",
        "deadline": (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat(),
        "penalty_amount": 5
    }, headers=pair["alice"]["headers"])

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_VALIDATION_001"
    assert response.json()["message"] == "Deadline must be a valid future date"
    assert sink.events == []


@pytest.mark.asyncio
async def test_create_rejects_negative_penalty(client, pair):
    response = await client.post("/v1/proposals", json={
        "title": "Negative",
        "deadline": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        "penalty_amount": -1
    }, headers=pair["alice"]["headers"])

    assert response.status_code == 400
    assert response.json()["message"] == "Penalty amount must be non-negative"


@pytest.mark.asyncio
@pytest.mark.parametrize("penalty", ["inf", "-inf", "nan"])
async def test_create_rejects_non_finite_penalty(client, pair, sink, penalty):
    response = await client.post("/v1/proposals", json={
        "title": "Unbounded",
        "deadline": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        "penalty_amount": penalty
    }, headers=pair["alice"]["headers"])

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"
    assert sink.events == []

    listing = await client.get("/v1/proposals", headers=pair["bob"]["headers"])
    assert listing.json()["proposals"] == []


@pytest.mark.asyncio
async def test_create_accepts_epoch_deadline(client, pair):
    deadline = int((datetime.now(timezone.utc) + timedelta(days=1)).timestamp())

    response = await client.post("/v1/proposals", json={
        "title": "Epoch", "deadline": deadline, "penalty_amount": 0
    }, headers=pair["alice"]["headers"])

    assert response.status_code == 201
    assert response.json()["proposal"]["deadline"] == deadline


@pytest.mark.asyncio
async def test_happy_path(pair, propose, act, sink):
    """pending -> accepted -> completed -> verified"""
    alice, bob = pair["alice"], pair["bob"]
    proposal = await propose(alice, title="Run 5k")
    sink.clear()

    accepted = await act(bob, proposal["id"], "accept")
    assert accepted.status_code == 200
    assert accepted.json()["proposal"]["status"] == "accepted"
    assert accepted.json()["proposal"]["accepted_at"] is not None

    completed = await act(bob, proposal["id"], "complete")
    assert completed.status_code == 200
    assert completed.json()["proposal"]["status"] == "completed"
    assert completed.json()["proposal"]["completed_at"] is not None

    verified = await act(alice, proposal["id"], "verify")
    assert verified.status_code == 200
    assert verified.json()["proposal"]["status"] == "verified"

    assert sink.events == [
        StatusChanged(recipient="alice@example.com", actor_name="Bob", title="Run 5k", new_status="accepted"),
        Completed(recipient="alice@example.com", completer_name="Bob", title="Run 5k"),
    ]


@pytest.mark.asyncio
async def test_reject(pair, propose, act, sink):
    alice, bob = pair["alice"], pair["bob"]
    proposal = await propose(alice, title="Cook dinner")
    sink.clear()

    response = await act(bob, proposal["id"], "reject")

    assert response.status_code == 200
    assert response.json()["proposal"]["status"] == "rejected"
    assert sink.events == [
        StatusChanged(recipient="alice@example.com", actor_name="Bob", title="Cook dinner", new_status="rejected")
    ]


@pytest.mark.asyncio
async def test_creator_cannot_act_as_assignee(pair, propose, act):
    alice = pair["alice"]
    proposal = await propose(alice)

    for action in ("accept", "reject"):
        response = await act(alice, proposal["id"], action)
        assert response.status_code == 400
        assert response.json()["error_code"] == "ERR_TRANSITION_001"
        assert response.json()["message"] == "Proposal is not pending"
        assert response.json()["details"] == {"transition": action}


@pytest.mark.asyncio
async def test_assignee_cannot_act_as_creator(pair, propose, act):
    alice, bob = pair["alice"], pair["bob"]
    proposal = await propose(alice)
    await act(bob, proposal["id"], "accept")
    await act(bob, proposal["id"], "complete")

    response = await act(bob, proposal["id"], "verify")
    assert response.status_code == 400
    assert response.json()["message"] == "Proposal must be marked complete first"

    response = await act(bob, proposal["id"], "fail")
    assert response.status_code == 400
    assert response.json()["message"] == "Can only fail accepted or completed proposals"


@pytest.mark.asyncio
async def test_wrong_source_state_messages(pair, propose, act):
    alice, bob = pair["alice"], pair["bob"]
    proposal = await propose(alice)

    cases = [
        (bob, "complete", "Proposal must be accepted first"),
        (alice, "verify", "Proposal must be marked complete first"),
        (alice, "fail", "Can only fail accepted or completed proposals"),
        (alice, "override", "Can only override failed proposals"),
    ]
    for user, action, message in cases:
        response = await act(user, proposal["id"], action)
        assert response.status_code == 400, action
        assert response.json()["message"] == message

    await act(bob, proposal["id"], "accept")
    response = await act(bob, proposal["id"], "accept")
    assert response.status_code == 400
    assert response.json()["message"] == "Proposal is not pending"


@pytest.mark.asyncio
async def test_terminal_states_are_final(pair, propose, act):
    alice, bob = pair["alice"], pair["bob"]

    rejected = await propose(alice, title="Rejected")
    await act(bob, rejected["id"], "reject")

    verified = await propose(alice, title="Verified")
    await act(bob, verified["id"], "accept")
    await act(bob, verified["id"], "complete")
    await act(alice, verified["id"], "verify")

    for proposal in (rejected, verified):
        for user, action in ((bob, "accept"), (bob, "reject"), (bob, "complete"),
                             (alice, "verify"), (alice, "fail"), (alice, "override")):
            response = await act(user, proposal["id"], action)
            assert response.status_code == 400, (proposal["title"], action)


@pytest.mark.asyncio
async def test_missing_proposal_is_not_found(pair, act, client):
    response = await act(pair["bob"], 999, "accept")
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"

    response = await client.get("/v1/proposals/999", headers=pair["alice"]["headers"])
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unrelated_caller_gets_not_found(pair, propose, db_session, sink):
    """An outsider cannot tell a foreign proposal from a missing one."""
    proposal = await propose(pair["alice"])
    engine = LifecycleEngine(db_session, sink)

    with pytest.raises(ProposalNotFoundError):
        await engine.get_proposal(proposal["id"], actor_id=999)

    with pytest.raises(ProposalNotFoundError):
        await engine.accept(proposal["id"], actor_id=999)


@pytest.mark.asyncio
async def test_get_proposal_detail(client, pair, propose):
    alice, bob = pair["alice"], pair["bob"]
    proposal = await propose(alice, title="Detail")

    for user in (alice, bob):
        response = await client.get(f"/v1/proposals/{proposal['id']}", headers=user["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["proposal"]["title"] == "Detail"
        assert data["creator"] == {"id": alice["id"], "name": "Alice", "email": "alice@example.com"}
        assert data["assignee"] == {"id": bob["id"], "name": "Bob", "email": "bob@example.com"}


@pytest.mark.asyncio
async def test_list_proposals_both_directions_and_filter(client, pair, propose, act):
    alice, bob = pair["alice"], pair["bob"]
    first = await propose(alice, title="From Alice")
    second = await propose(bob, title="From Bob")
    await act(bob, first["id"], "accept")

    response = await client.get("/v1/proposals", headers=alice["headers"])
    assert response.status_code == 200
    ids = [p["id"] for p in response.json()["proposals"]]
    assert ids == [second["id"], first["id"]]

    response = await client.get("/v1/proposals", params={"status": "accepted"}, headers=bob["headers"])
    assert [p["id"] for p in response.json()["proposals"]] == [first["id"]]

    response = await client.get("/v1/proposals", params={"status": "pending,accepted"}, headers=bob["headers"])
    assert len(response.json()["proposals"]) == 2

    response = await client.get("/v1/proposals", params={"status": "verified"}, headers=bob["headers"])
    assert response.json()["proposals"] == []


@pytest.mark.asyncio
async def test_list_proposals_unknown_status(client, pair):
    response = await client.get("/v1/proposals", params={"status": "pending,bogus"}, headers=pair["alice"]["headers"])

    assert response.status_code == 400
    assert response.json()["message"] == "Unknown proposal status: bogus"


@pytest.mark.asyncio
async def test_fail_notifies_assignee_and_verify_notifies_nobody(pair, propose, act, sink):
    alice, bob = pair["alice"], pair["bob"]
    failed = await propose(alice, title="Meditate", penalty=7)
    await act(bob, failed["id"], "accept")

    verified = await propose(alice, title="Stretch")
    await act(bob, verified["id"], "accept")
    await act(bob, verified["id"], "complete")
    sink.clear()

    await act(alice, failed["id"], "fail")
    await act(alice, failed["id"], "override")
    await act(alice, verified["id"], "verify")

    assert sink.events == [Failed(recipient="bob@example.com", title="Meditate", penalty=7.0)]


@pytest.mark.asyncio
async def test_broken_sink_does_not_undo_transition(client, pair, propose, act, sink, mocker):
    alice, bob = pair["alice"], pair["bob"]
    proposal = await propose(alice)
    mocker.patch.object(sink, "emit", side_effect=RuntimeError("mail server down"))

    response = await act(bob, proposal["id"], "accept")

    assert response.status_code == 200
    assert response.json()["proposal"]["status"] == "accepted"
    detail = await client.get(f"/v1/proposals/{proposal['id']}", headers=bob["headers"])
    assert detail.json()["proposal"]["status"] == "accepted"
