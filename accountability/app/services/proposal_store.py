"""
Proposal Store.

Persistence of proposals. Status changes go through `set_status`, a single
conditional UPDATE so two actors racing on the same proposal can never both
succeed.
"""

import math
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_

from accountability.app.models.proposal import Proposal
from accountability.app.models.enums import ProposalStatus
from accountability.app.core.clock import now_epoch
from accountability.app.core.exceptions import ValidationError


class ProposalStore:

    @staticmethod
    async def get(db: AsyncSession, proposal_id: int) -> Optional[Proposal]:
        """Load a proposal, overwriting any copy already held by the session."""
        result = await db.execute(
            select(Proposal)
            .where(Proposal.id == proposal_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        statuses: Optional[Iterable[ProposalStatus]] = None
    ) -> List[Proposal]:
        """Proposals the user created or was assigned, newest first."""
        query = select(Proposal).where(
            or_(Proposal.created_by == user_id, Proposal.assigned_to == user_id)
        )

        if statuses:
            query = query.where(Proposal.status.in_(list(statuses)))

        query = query.order_by(Proposal.created_at.desc(), Proposal.id.desc()).execution_options(
            populate_existing=True
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def create(
        db: AsyncSession,
        created_by: int,
        assigned_to: int,
        title: str,
        deadline: int,
        penalty_amount: float,
        description: Optional[str] = None,
        now: Optional[int] = None
    ) -> Proposal:
        """
        Insert a pending proposal.

        Raises:
            ValidationError: deadline not in the future, non-finite or negative penalty,
                or creator and assignee being the same user
        """
        now = now_epoch() if now is None else now

        if deadline <= now:
            raise ValidationError("Deadline must be a valid future date")

        if not math.isfinite(penalty_amount):
            raise ValidationError("Penalty amount must be a finite number")

        if penalty_amount < 0:
            raise ValidationError("Penalty amount must be non-negative")

        if created_by == assigned_to:
            raise ValidationError("A proposal must be assigned to your partner")

        proposal = Proposal(
            created_by=created_by,
            assigned_to=assigned_to,
            title=title,
            description=description or None,
            deadline=deadline,
            penalty_amount=float(penalty_amount),
            status=ProposalStatus.PENDING,
            created_at=now
        )
        db.add(proposal)
        await db.flush()
        return proposal

    @staticmethod
    async def set_status(
        db: AsyncSession,
        proposal_id: int,
        new_status: ProposalStatus,
        expected: Iterable[ProposalStatus],
        **extra
    ) -> bool:
        """
        Compare-and-set the status together with companion fields.

        The row is only updated while its status is still one of `expected`.

        Returns:
            True if the row was updated, False if another transition got there first
        """
        stmt = (
            update(Proposal)
            .where(Proposal.id == proposal_id, Proposal.status.in_(list(expected)))
            .values(status=new_status, **extra)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def find_overdue(db: AsyncSession, now: Optional[int] = None) -> List[Proposal]:
        """Accepted proposals whose deadline has passed, across both users."""
        now = now_epoch() if now is None else now
        result = await db.execute(
            select(Proposal)
            .where(Proposal.status == ProposalStatus.ACCEPTED, Proposal.deadline < now)
            .order_by(Proposal.deadline, Proposal.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
