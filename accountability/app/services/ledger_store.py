"""
Ledger Store.

Append-only record of debts between the two users, plus the derived balance.
Appends only flush; the caller owns the transaction so an entry commits
together with the status change that produced it.
"""

from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case, or_

from accountability.app.models.ledger_entry import LedgerEntry


class LedgerStore:

    @staticmethod
    async def append(
        db: AsyncSession,
        proposal_id: int,
        from_user: int,
        to_user: int,
        amount: float,
        reason: str
    ) -> LedgerEntry:
        """Insert a new entry: `from_user` owes `to_user` `amount`."""
        entry = LedgerEntry(
            proposal_id=proposal_id,
            from_user=from_user,
            to_user=to_user,
            amount=float(amount),
            reason=reason
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def entries_for_user(db: AsyncSession, user_id: int) -> List[LedgerEntry]:
        """All entries where the user is debtor or creditor, newest first."""
        result = await db.execute(
            select(LedgerEntry)
            .where(or_(LedgerEntry.from_user == user_id, LedgerEntry.to_user == user_id))
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def entries_for_proposal(db: AsyncSession, proposal_id: int) -> List[LedgerEntry]:
        """Entries produced by one proposal, oldest first."""
        result = await db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.proposal_id == proposal_id)
            .order_by(LedgerEntry.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def net_balance(db: AsyncSession, user_id: int) -> float:
        """
        Signed balance for a user.

        Positive: the user owes their partner. Negative: the partner owes
        the user. Both sums come from one statement so they always see the
        same set of entries.
        """
        owed = func.coalesce(
            func.sum(case((LedgerEntry.from_user == user_id, LedgerEntry.amount), else_=0)), 0
        )
        owed_to = func.coalesce(
            func.sum(case((LedgerEntry.to_user == user_id, LedgerEntry.amount), else_=0)), 0
        )
        result = await db.execute(
            select(owed - owed_to).where(
                or_(LedgerEntry.from_user == user_id, LedgerEntry.to_user == user_id)
            )
        )
        return float(result.scalar() or 0)
