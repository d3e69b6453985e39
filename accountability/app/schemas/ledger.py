"""
Ledger Schemas.
"""

from pydantic import BaseModel
from typing import Optional, List


class LedgerEntryResponse(BaseModel):
    """Schema for displaying a ledger entry."""
    id: int
    proposal_id: int
    from_user: int
    to_user: int
    amount: float
    reason: str
    created_at: int

    class Config:
        from_attributes = True


class LedgerListResponse(BaseModel):
    entries: List[LedgerEntryResponse]


class Party(BaseModel):
    id: int
    name: str


class BalanceResponse(BaseModel):
    """
    Net balance for the caller.

    Positive: the caller owes their partner. Negative: the partner owes the caller.
    """
    balance: float
    you: Party
    partner: Optional[Party]
    summary: str
