# Overview: Service-layer operations for lifecycle; the single transition table for sale, receivable and distribution statuses.

"""
tokopos Payment & Acceptance Lifecycle

================================================================================
PAYMENT STATE MACHINE (shared by Sale.status and Receivable.status)
================================================================================

    DRAFT --SUBMIT_PAID------> PAID
    DRAFT --SUBMIT_PARTIAL---> PARTIALLY_PAID
    DRAFT --SUBMIT_UNPAID----> UNPAID
    UNPAID --PARTIAL_PAYMENT-> PARTIALLY_PAID
    UNPAID --SETTLE----------> PAID
    PARTIALLY_PAID --PARTIAL_PAYMENT-> PARTIALLY_PAID
    PARTIALLY_PAID --SETTLE----------> PAID

DRAFT is the client-side cart and is never persisted. PAID is terminal.

================================================================================
DISTRIBUTION STATE MACHINE (DistributionBatch.status and its lines)
================================================================================

    PENDING_ACCEPTANCE --ACCEPT--> ACCEPTED
    PENDING_ACCEPTANCE --REJECT--> REJECTED
    PENDING_ACCEPTANCE --CANCEL--> CANCELLED   (lines only; the row is deleted)

ACCEPTED and REJECTED are terminal. Lines move one at a time or all
together; the batch leaves PENDING_ACCEPTANCE once none of its lines is
pending: ACCEPTED if any line was accepted, otherwise REJECTED.
================================================================================
"""

from __future__ import annotations

from ..errors import InvalidTransition


DRAFT = "DRAFT"
PAID = "PAID"
PARTIALLY_PAID = "PARTIALLY_PAID"
UNPAID = "UNPAID"

SUBMIT_PAID = "SUBMIT_PAID"
SUBMIT_PARTIAL = "SUBMIT_PARTIAL"
SUBMIT_UNPAID = "SUBMIT_UNPAID"
PARTIAL_PAYMENT = "PARTIAL_PAYMENT"
SETTLE = "SETTLE"

PENDING_ACCEPTANCE = "PENDING_ACCEPTANCE"
ACCEPTED = "ACCEPTED"
REJECTED = "REJECTED"
CANCELLED = "CANCELLED"

ACCEPT = "ACCEPT"
REJECT = "REJECT"
CANCEL = "CANCEL"


_TRANSITIONS: dict[tuple[str, str], str] = {
    (DRAFT, SUBMIT_PAID): PAID,
    (DRAFT, SUBMIT_PARTIAL): PARTIALLY_PAID,
    (DRAFT, SUBMIT_UNPAID): UNPAID,
    (UNPAID, PARTIAL_PAYMENT): PARTIALLY_PAID,
    (UNPAID, SETTLE): PAID,
    (PARTIALLY_PAID, PARTIAL_PAYMENT): PARTIALLY_PAID,
    (PARTIALLY_PAID, SETTLE): PAID,
    (PENDING_ACCEPTANCE, ACCEPT): ACCEPTED,
    (PENDING_ACCEPTANCE, REJECT): REJECTED,
    (PENDING_ACCEPTANCE, CANCEL): CANCELLED,
}


def transition(current: str, event: str) -> str:
    """
    Return the status reached by applying `event` to `current`.

    Raises:
        InvalidTransition: if the pair is not in the transition table.
    """
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransition(current, event) from None


def can_transition(current: str, event: str) -> bool:
    return (current, event) in _TRANSITIONS


def submission_event(payment: int, grand_total: int) -> str:
    """Event describing a sale submitted with `payment` against `grand_total`."""
    if payment >= grand_total:
        return SUBMIT_PAID
    if payment > 0:
        return SUBMIT_PARTIAL
    return SUBMIT_UNPAID


def payment_event(amount_paid: int, amount_due: int) -> str:
    """Event describing a receivable whose running total just reached `amount_paid`."""
    return SETTLE if amount_paid >= amount_due else PARTIAL_PAYMENT
