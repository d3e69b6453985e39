"""
Proposal API Endpoints.

Thin HTTP layer over the LifecycleEngine. Both users hit the same routes;
the engine decides from the proposal which of them may act.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from accountability.app.db.session import get_db
from accountability.app.models.enums import ProposalStatus
from accountability.app.core.clock import to_epoch
from accountability.app.core.dependencies import get_current_user
from accountability.app.core.exceptions import ValidationError
from accountability.app.domain.lifecycle.lifecycle_engine import LifecycleEngine
from accountability.app.services.notification_service import NotificationSink, get_notification_sink
from accountability.app.schemas.auth import UserResponse
from accountability.app.schemas.ledger import LedgerEntryResponse
from accountability.app.schemas.proposal import (
    ProposalCreate, ProposalResponse, ProposalListResponse, ProposalEnvelope,
    ProposalDetailResponse, ProposalTransitionResponse
)

router = APIRouter(prefix="/proposals", tags=["Proposals"])


def get_engine(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notification_sink)
) -> LifecycleEngine:
    return LifecycleEngine(db, notifier)


def parse_status_filter(raw: Optional[str]) -> Optional[List[ProposalStatus]]:
    """Parse `pending,accepted` into statuses; blank means no filter."""
    if not raw:
        return None
    statuses = []
    for value in raw.split(","):
        value = value.strip()
        if not value:
            continue
        try:
            statuses.append(ProposalStatus(value))
        except ValueError:
            raise ValidationError(f"Unknown proposal status: {value}")
    return statuses or None


@router.get("", response_model=ProposalListResponse)
async def list_proposals(
    status_filter: Optional[str] = Query(None, alias="status", description="Comma-separated statuses"),
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """
    List the caller's proposals, newest first.

    Overdue accepted proposals (of either user) are failed before listing.
    """
    proposals = await engine.list_proposals(current_user["user_id"], parse_status_filter(status_filter))
    return ProposalListResponse(proposals=[ProposalResponse.model_validate(p) for p in proposals])


@router.post("", response_model=ProposalEnvelope, status_code=status.HTTP_201_CREATED)
async def create_proposal(
    data: ProposalCreate,
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """Propose a task to your partner. The assignee is always the other user."""
    proposal = await engine.create_proposal(
        actor_id=current_user["user_id"],
        title=data.title,
        description=data.description,
        deadline=to_epoch(data.deadline),
        penalty_amount=data.penalty_amount
    )
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(proposal))


@router.get("/{proposal_id}", response_model=ProposalDetailResponse)
async def get_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """Proposal detail with both parties."""
    detail = await engine.get_proposal(proposal_id, current_user["user_id"])
    return ProposalDetailResponse(
        proposal=ProposalResponse.model_validate(detail.proposal),
        creator=UserResponse.model_validate(detail.creator) if detail.creator else None,
        assignee=UserResponse.model_validate(detail.assignee) if detail.assignee else None
    )


@router.post("/{proposal_id}/accept", response_model=ProposalEnvelope)
async def accept_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """Accept a pending proposal (assignee only)."""
    result = await engine.accept(proposal_id, current_user["user_id"])
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(result.proposal))


@router.post("/{proposal_id}/reject", response_model=ProposalEnvelope)
async def reject_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """Reject a pending proposal (assignee only)."""
    result = await engine.reject(proposal_id, current_user["user_id"])
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(result.proposal))


@router.post("/{proposal_id}/complete", response_model=ProposalEnvelope)
async def complete_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """Claim an accepted task is done (assignee only)."""
    result = await engine.complete(proposal_id, current_user["user_id"])
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(result.proposal))


@router.post("/{proposal_id}/verify", response_model=ProposalEnvelope)
async def verify_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """Confirm a completed task (creator only)."""
    result = await engine.verify(proposal_id, current_user["user_id"])
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(result.proposal))


@router.post("/{proposal_id}/fail", response_model=ProposalTransitionResponse)
async def fail_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """
    Mark an accepted or completed task as failed (creator only).

    Records the penalty: the assignee owes the creator.
    """
    result = await engine.fail(proposal_id, current_user["user_id"])
    return ProposalTransitionResponse(
        proposal=ProposalResponse.model_validate(result.proposal),
        ledger_entry=LedgerEntryResponse.model_validate(result.ledger_entry)
    )


@router.post("/{proposal_id}/override", response_model=ProposalTransitionResponse)
async def override_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: dict = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine)
):
    """
    Overturn a failure (creator only).

    Writes a reversing ledger entry; the original penalty entry stays.
    """
    result = await engine.override(proposal_id, current_user["user_id"])
    return ProposalTransitionResponse(
        proposal=ProposalResponse.model_validate(result.proposal),
        ledger_entry=LedgerEntryResponse.model_validate(result.ledger_entry)
    )
