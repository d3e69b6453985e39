"""
Proposal Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from accountability.app.models.enums import ProposalStatus
from accountability.app.schemas.auth import UserResponse
from accountability.app.schemas.ledger import LedgerEntryResponse


class ProposalCreate(BaseModel):
    """
    Schema for proposing a task.

    Range checks on deadline and penalty are enforced by the proposal store
    so every caller gets the same messages.
    """
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None)
    deadline: datetime = Field(..., description="ISO-8601 datetime or epoch seconds; naive values are UTC")
    penalty_amount: float = Field(..., allow_inf_nan=False, description="Penalty owed if the task fails")


class ProposalResponse(BaseModel):
    """Schema for displaying a proposal. Timestamps are epoch seconds."""
    id: int
    created_by: int
    assigned_to: int
    title: str
    description: Optional[str]
    deadline: int
    penalty_amount: float
    status: ProposalStatus
    created_at: int
    accepted_at: Optional[int]
    completed_at: Optional[int]

    class Config:
        from_attributes = True


class ProposalListResponse(BaseModel):
    proposals: List[ProposalResponse]


class ProposalEnvelope(BaseModel):
    proposal: ProposalResponse


class ProposalDetailResponse(BaseModel):
    proposal: ProposalResponse
    creator: Optional[UserResponse]
    assignee: Optional[UserResponse]


class ProposalTransitionResponse(BaseModel):
    """Result of `fail` / `override`: the proposal and the ledger entry written with it."""
    proposal: ProposalResponse
    ledger_entry: LedgerEntryResponse
