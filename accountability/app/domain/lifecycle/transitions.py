"""
Proposal state machine.

Each transition names who may perform it, the statuses it may start from,
the status it lands in, the timestamp it stamps and the ledger entry it
writes. The engine executes these definitions; it holds no per-transition
branching of its own.
"""

import enum
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from accountability.app.models.enums import ProposalStatus


class Actor(str, enum.Enum):
    """Who may perform a transition, relative to the proposal."""
    CREATOR = "creator"
    ASSIGNEE = "assignee"
    SYSTEM = "system"


class LedgerEffect(str, enum.Enum):
    """Ledger entry written alongside a transition."""
    PENALTY = "penalty"  # assignee owes creator
    REVERSAL = "reversal"  # creator gives the penalty back to the assignee


@dataclass(frozen=True)
class Transition:
    name: str
    actor: Actor
    sources: FrozenSet[ProposalStatus]
    target: ProposalStatus
    error_message: str
    timestamp_field: Optional[str] = None
    ledger_effect: Optional[LedgerEffect] = None
    reason_prefix: Optional[str] = None

    def allows(self, actor: Actor, status: ProposalStatus) -> bool:
        return actor == self.actor and status in self.sources

    def ledger_parties(self, created_by: int, assigned_to: int) -> Tuple[int, int]:
        """(from_user, to_user) of the entry this transition writes."""
        if self.ledger_effect == LedgerEffect.PENALTY:
            return assigned_to, created_by
        if self.ledger_effect == LedgerEffect.REVERSAL:
            return created_by, assigned_to
        raise ValueError(f"Transition '{self.name}' writes no ledger entry")

    def ledger_reason(self, title: str) -> str:
        return f"{self.reason_prefix}: {title}"


ACCEPT = Transition(
    name="accept",
    actor=Actor.ASSIGNEE,
    sources=frozenset({ProposalStatus.PENDING}),
    target=ProposalStatus.ACCEPTED,
    error_message="Proposal is not pending",
    timestamp_field="accepted_at",
)

REJECT = Transition(
    name="reject",
    actor=Actor.ASSIGNEE,
    sources=frozenset({ProposalStatus.PENDING}),
    target=ProposalStatus.REJECTED,
    error_message="Proposal is not pending",
)

COMPLETE = Transition(
    name="complete",
    actor=Actor.ASSIGNEE,
    sources=frozenset({ProposalStatus.ACCEPTED}),
    target=ProposalStatus.COMPLETED,
    error_message="Proposal must be accepted first",
    timestamp_field="completed_at",
)

VERIFY = Transition(
    name="verify",
    actor=Actor.CREATOR,
    sources=frozenset({ProposalStatus.COMPLETED}),
    target=ProposalStatus.VERIFIED,
    error_message="Proposal must be marked complete first",
)

FAIL = Transition(
    name="fail",
    actor=Actor.CREATOR,
    sources=frozenset({ProposalStatus.ACCEPTED, ProposalStatus.COMPLETED}),
    target=ProposalStatus.FAILED,
    error_message="Can only fail accepted or completed proposals",
    ledger_effect=LedgerEffect.PENALTY,
    reason_prefix="Failed",
)

OVERRIDE = Transition(
    name="override",
    actor=Actor.CREATOR,
    sources=frozenset({ProposalStatus.FAILED}),
    target=ProposalStatus.VERIFIED,
    error_message="Can only override failed proposals",
    ledger_effect=LedgerEffect.REVERSAL,
    reason_prefix="Override",
)

AUTO_FAIL = Transition(
    name="auto_fail",
    actor=Actor.SYSTEM,
    sources=frozenset({ProposalStatus.ACCEPTED}),
    target=ProposalStatus.FAILED,
    error_message="Proposal is no longer accepted",
    ledger_effect=LedgerEffect.PENALTY,
    reason_prefix="Overdue",
)
