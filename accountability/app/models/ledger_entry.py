"""
Ledger Entry database model.

Immutable debt transfers between the two users.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, String
from accountability.app.db.session import Base
from accountability.app.core.clock import now_epoch


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Immutable record of one obligation: `from_user` owes `to_user` `amount`.
    A reversal is a new entry with the parties swapped.
    NO updates or deletions allowed.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Linkage
    proposal_id = Column(Integer, ForeignKey('proposals.id'), nullable=False, index=True)

    # Parties
    from_user = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)  # Debtor
    to_user = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)  # Creditor

    # Financials
    amount = Column(Float, nullable=False)
    reason = Column(String(300), nullable=False)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(Integer, default=now_epoch, nullable=False, index=True)

    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, from={self.from_user}, to={self.to_user}, amount={self.amount})>"
