"""
Ledger API Endpoints.

Read-only views of the debts between the two users.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from accountability.app.db.session import get_db
from accountability.app.core.dependencies import get_current_user
from accountability.app.services.ledger_store import LedgerStore
from accountability.app.services.pairing import PairingService
from accountability.app.schemas.ledger import (
    LedgerEntryResponse, LedgerListResponse, BalanceResponse, Party
)

router = APIRouter(prefix="/ledger", tags=["Ledger"])


def balance_summary(balance: float, partner_name: str) -> str:
    if balance > 0:
        return f"You owe {partner_name} ${balance:.2f}"
    if balance < 0:
        return f"{partner_name} owes you ${abs(balance):.2f}"
    return "All settled up!"


@router.get("", response_model=LedgerListResponse)
async def list_entries(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """All ledger entries involving the caller, newest first."""
    entries = await LedgerStore.entries_for_user(db, current_user["user_id"])
    return LedgerListResponse(entries=[LedgerEntryResponse.model_validate(e) for e in entries])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Net balance between the caller and their partner."""
    user_id = current_user["user_id"]
    balance = await LedgerStore.net_balance(db, user_id)
    partner = await PairingService.partner_of(db, user_id)

    return BalanceResponse(
        balance=balance,
        you=Party(id=user_id, name=current_user.get("name", "")),
        partner=Party(id=partner.id, name=partner.name) if partner else None,
        summary=balance_summary(balance, partner.name if partner else "your partner")
    )
