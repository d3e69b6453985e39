"""
Lifecycle Engine (Domain Logic).

Validates and executes proposal transitions. A transition and the ledger
entry it produces commit in one transaction; notifications go out only
after that commit and can never undo it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from accountability.app.models.proposal import Proposal
from accountability.app.models.ledger_entry import LedgerEntry
from accountability.app.models.user import User
from accountability.app.models.enums import ProposalStatus
from accountability.app.core.clock import now_epoch
from accountability.app.core.exceptions import (
    InvalidTransitionError, ProposalNotFoundError, ValidationError
)
from accountability.app.services.proposal_store import ProposalStore
from accountability.app.services.ledger_store import LedgerStore
from accountability.app.services.pairing import PairingService
from accountability.app.services.notification_service import (
    NotificationSink, NotificationEvent, ProposalCreated, StatusChanged, Completed, Failed
)
from accountability.app.domain.lifecycle.transitions import (
    Actor, Transition, ACCEPT, REJECT, COMPLETE, VERIFY, FAIL, OVERRIDE, AUTO_FAIL
)
from accountability.app.domain.lifecycle.overdue_sweeper import OverdueSweeper

logger = logging.getLogger("accountability.lifecycle")


@dataclass
class TransitionResult:
    proposal: Proposal
    ledger_entry: Optional[LedgerEntry] = None


@dataclass
class ProposalDetail:
    proposal: Proposal
    creator: Optional[User]
    assignee: Optional[User]


class LifecycleEngine:
    """
    Proposal state machine bound to one database session.

    Actor eligibility is decided by comparing the principal id with
    `created_by` / `assigned_to`. Callers unrelated to a proposal get the
    same not-found error as for a missing proposal.
    """

    def __init__(self, db: AsyncSession, notifier: NotificationSink):
        self.db = db
        self.notifier = notifier

    # Reads

    async def get_proposal(self, proposal_id: int, actor_id: int) -> ProposalDetail:
        proposal = await self._load_for_participant(proposal_id, actor_id)
        creator = await PairingService.get_user(self.db, proposal.created_by)
        assignee = await PairingService.get_user(self.db, proposal.assigned_to)
        return ProposalDetail(proposal=proposal, creator=creator, assignee=assignee)

    async def list_proposals(
        self,
        actor_id: int,
        statuses: Optional[Iterable[ProposalStatus]] = None
    ) -> List[Proposal]:
        """Settle overdue proposals (for both users), then list the actor's proposals."""
        await OverdueSweeper.sweep(self)
        return await ProposalStore.list_for_user(self.db, actor_id, statuses)

    # Creation

    async def create_proposal(
        self,
        actor_id: int,
        title: str,
        deadline: int,
        penalty_amount: float,
        description: Optional[str] = None
    ) -> Proposal:
        """
        Propose a task to the actor's partner.

        Raises:
            ValidationError: no partner yet, past deadline or negative penalty
        """
        partner = await PairingService.partner_of(self.db, actor_id)
        if partner is None:
            raise ValidationError("No partner found. Both users must be registered.")

        try:
            proposal = await ProposalStore.create(
                self.db,
                created_by=actor_id,
                assigned_to=partner.id,
                title=title,
                description=description,
                deadline=deadline,
                penalty_amount=penalty_amount
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(proposal)
        logger.info("Proposal %s created by %s for %s", proposal.id, actor_id, partner.id)

        proposer = await PairingService.get_user(self.db, actor_id)
        self._notify(ProposalCreated(
            recipient=partner.email,
            proposer_name=proposer.name if proposer else "Your partner",
            title=proposal.title,
            penalty=proposal.penalty_amount
        ))
        return proposal

    # Transitions

    async def accept(self, proposal_id: int, actor_id: int) -> TransitionResult:
        return await self.apply(ACCEPT, proposal_id, actor_id)

    async def reject(self, proposal_id: int, actor_id: int) -> TransitionResult:
        return await self.apply(REJECT, proposal_id, actor_id)

    async def complete(self, proposal_id: int, actor_id: int) -> TransitionResult:
        return await self.apply(COMPLETE, proposal_id, actor_id)

    async def verify(self, proposal_id: int, actor_id: int) -> TransitionResult:
        return await self.apply(VERIFY, proposal_id, actor_id)

    async def fail(self, proposal_id: int, actor_id: int) -> TransitionResult:
        return await self.apply(FAIL, proposal_id, actor_id)

    async def override(self, proposal_id: int, actor_id: int) -> TransitionResult:
        return await self.apply(OVERRIDE, proposal_id, actor_id)

    async def apply(self, transition: Transition, proposal_id: int, actor_id: int) -> TransitionResult:
        """
        Run a user-initiated transition.

        Flow:
        1. Load the proposal; absent or unrelated caller -> not found
        2. Resolve the caller's role and check it plus the source status
        3. Conditionally update status (+ timestamp), append ledger entry, commit
        4. Notify the counterparty (best effort)
        """
        proposal = await self._load_for_participant(proposal_id, actor_id)
        actor = Actor.CREATOR if proposal.created_by == actor_id else Actor.ASSIGNEE

        if not transition.allows(actor, proposal.status):
            raise InvalidTransitionError(transition.error_message, transition.name)

        result = await self._execute(transition, proposal)
        logger.info(
            "Proposal %s: %s by user %s -> %s",
            proposal.id, transition.name, actor_id, result.proposal.status.value
        )

        await self._notify_transition(transition, result.proposal, actor_id)
        return result

    async def auto_fail(self, proposal: Proposal) -> Optional[TransitionResult]:
        """
        System-initiated failure of an overdue accepted proposal.

        Returns None when another actor moved the proposal first.
        """
        proposal_id = proposal.id
        try:
            result = await self._execute(AUTO_FAIL, proposal)
        except InvalidTransitionError:
            logger.info("Overdue proposal %s already left 'accepted', skipping", proposal_id)
            return None

        logger.info("Proposal %s auto-failed after deadline %s", proposal.id, proposal.deadline)
        await self._notify_transition(AUTO_FAIL, result.proposal, None)
        return result

    # Internals

    async def _load_for_participant(self, proposal_id: int, actor_id: int) -> Proposal:
        proposal = await ProposalStore.get(self.db, proposal_id)
        if proposal is None or actor_id not in (proposal.created_by, proposal.assigned_to):
            raise ProposalNotFoundError()
        return proposal

    async def _execute(self, transition: Transition, proposal: Proposal) -> TransitionResult:
        """Status, timestamp and ledger entry in one transaction, guarded by compare-and-set."""
        proposal_id = proposal.id
        title = proposal.title
        penalty = proposal.penalty_amount
        created_by = proposal.created_by
        assigned_to = proposal.assigned_to

        extra = {}
        if transition.timestamp_field:
            extra[transition.timestamp_field] = now_epoch()

        entry = None
        try:
            updated = await ProposalStore.set_status(
                self.db, proposal_id, transition.target, transition.sources, **extra
            )
            if updated and transition.ledger_effect:
                from_user, to_user = transition.ledger_parties(created_by, assigned_to)
                entry = await LedgerStore.append(
                    self.db,
                    proposal_id=proposal_id,
                    from_user=from_user,
                    to_user=to_user,
                    amount=penalty,
                    reason=transition.ledger_reason(title)
                )
            if updated:
                await self.db.commit()
            else:
                await self.db.rollback()
        except Exception:
            await self.db.rollback()
            raise

        if not updated:
            # Lost the race: someone changed the status since it was read
            raise InvalidTransitionError(transition.error_message, transition.name)

        await self.db.refresh(proposal)
        return TransitionResult(proposal=proposal, ledger_entry=entry)

    async def _notify_transition(
        self,
        transition: Transition,
        proposal: Proposal,
        actor_id: Optional[int]
    ) -> None:
        try:
            event = await self._event_for(transition, proposal, actor_id)
        except Exception:
            logger.exception("Could not build notification for proposal %s", proposal.id)
            return
        if event is not None:
            self._notify(event)

    async def _event_for(
        self,
        transition: Transition,
        proposal: Proposal,
        actor_id: Optional[int]
    ) -> Optional[NotificationEvent]:
        if transition in (ACCEPT, REJECT, COMPLETE):
            creator = await PairingService.get_user(self.db, proposal.created_by)
            actor = await PairingService.get_user(self.db, actor_id)
            if creator is None or actor is None:
                return None
            if transition is COMPLETE:
                return Completed(recipient=creator.email, completer_name=actor.name, title=proposal.title)
            return StatusChanged(
                recipient=creator.email,
                actor_name=actor.name,
                title=proposal.title,
                new_status=transition.target.value
            )

        if transition in (FAIL, AUTO_FAIL):
            assignee = await PairingService.get_user(self.db, proposal.assigned_to)
            if assignee is None:
                return None
            return Failed(recipient=assignee.email, title=proposal.title, penalty=proposal.penalty_amount)

        # verify / override: no notification
        return None

    def _notify(self, event: NotificationEvent) -> None:
        try:
            self.notifier.emit(event)
        except Exception:
            logger.exception("Notification sink rejected %s", type(event).__name__)


async def run_periodic_sweep(session_factory, notifier: NotificationSink, interval_seconds: float) -> None:
    """
    Run the overdue sweep every `interval_seconds` until cancelled.

    Used when a deployment wants deadlines enforced without waiting for a
    list read. A failing tick is logged; the next tick tries again.
    """
    logger.info("Periodic overdue sweep every %ss", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with session_factory() as db:
                settled = await OverdueSweeper.sweep(LifecycleEngine(db, notifier))
            if settled:
                logger.info("Periodic sweep failed %d proposal(s)", len(settled))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Periodic overdue sweep failed")
