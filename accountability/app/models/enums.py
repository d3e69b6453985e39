"""
Proposal-related enumerations.
"""

import enum


class ProposalStatus(str, enum.Enum):
    """
    Proposal status enumeration.

    Happy path: PENDING -> ACCEPTED -> COMPLETED -> VERIFIED.
    REJECTED and VERIFIED are terminal.
    """
    PENDING = "pending"  # Proposed, waiting for the assignee to respond
    ACCEPTED = "accepted"  # Assignee committed to the task
    REJECTED = "rejected"  # Assignee declined
    COMPLETED = "completed"  # Assignee claims the task is done
    FAILED = "failed"  # Penalty applied (by the creator or the overdue sweep)
    VERIFIED = "verified"  # Creator confirmed completion, or overrode a failure
