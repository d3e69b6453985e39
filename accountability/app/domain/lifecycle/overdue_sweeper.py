"""
Overdue Sweeper.

Lazy deadline enforcement: every proposal list read first fails all
accepted proposals whose deadline has passed, whoever's they are.
"""

import logging
from typing import TYPE_CHECKING, List, Optional

from accountability.app.models.enums import ProposalStatus
from accountability.app.core.clock import now_epoch
from accountability.app.services.proposal_store import ProposalStore

if TYPE_CHECKING:
    from accountability.app.domain.lifecycle.lifecycle_engine import LifecycleEngine, TransitionResult

logger = logging.getLogger("accountability.sweeper")


class OverdueSweeper:

    @staticmethod
    async def sweep(engine: "LifecycleEngine", now: Optional[int] = None) -> List["TransitionResult"]:
        """
        Auto-fail every accepted proposal past its deadline.

        Each proposal is settled in its own transaction through the engine's
        compare-and-set, so a proposal is failed (and charged) at most once
        even when a sweep races a manual `fail`.

        Args:
            engine: LifecycleEngine bound to the current session
            now: Epoch seconds to compare deadlines against

        Returns:
            TransitionResults for the proposals this sweep failed
        """
        now = now_epoch() if now is None else now
        overdue = await ProposalStore.find_overdue(engine.db, now)
        if not overdue:
            return []

        # A rollback while settling one proposal expires the others
        proposal_ids = [proposal.id for proposal in overdue]
        logger.info("Sweeping %d overdue proposal(s)", len(proposal_ids))

        settled = []
        for proposal_id in proposal_ids:
            proposal = await ProposalStore.get(engine.db, proposal_id)
            if proposal is None or proposal.status != ProposalStatus.ACCEPTED or proposal.deadline >= now:
                continue
            result = await engine.auto_fail(proposal)
            if result is not None:
                settled.append(result)
        return settled

