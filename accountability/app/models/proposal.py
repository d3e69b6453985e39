"""
Proposal database model.

A task commitment with a deadline and a monetary penalty.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, String, Text, Enum, CheckConstraint
from accountability.app.db.session import Base
from accountability.app.models.enums import ProposalStatus
from accountability.app.core.clock import now_epoch


class Proposal(Base):
    """
    Proposal model.

    Created by one user and always assigned to the other. Mutated only by
    lifecycle transitions, never deleted.
    """
    __tablename__ = "proposals"
    __table_args__ = (
        CheckConstraint("created_by != assigned_to", name="ck_proposals_distinct_parties"),
        CheckConstraint("penalty_amount >= 0", name="ck_proposals_penalty_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    created_by = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    assigned_to = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Task
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    deadline = Column(Integer, nullable=False, index=True)  # epoch seconds
    penalty_amount = Column(Float, nullable=False, default=0)

    # Status
    status = Column(
        Enum(
            ProposalStatus,
            name="proposal_status",
            values_callable=lambda statuses: [s.value for s in statuses],
            create_constraint=True,
        ),
        default=ProposalStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Timestamps (epoch seconds)
    created_at = Column(Integer, default=now_epoch, nullable=False, index=True)
    accepted_at = Column(Integer, nullable=True)
    completed_at = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<Proposal(id={self.id}, title='{self.title}', status='{self.status.value}')>"
