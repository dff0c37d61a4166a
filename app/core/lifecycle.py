"""
Offer / Assignment state machines and pickup verification codes.

Every status write in the service goes through ``ensure_offer_transition`` or
``ensure_assignment_transition`` so an illegal move is rejected before any row
is touched.
"""

from __future__ import annotations

import secrets
from enum import Enum


class OfferStatus(str, Enum):
    AVAILABLE = "available"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ALLOWED_OFFER_TRANSITIONS: dict[OfferStatus, set[OfferStatus]] = {
    OfferStatus.AVAILABLE: {
        OfferStatus.ACCEPTED,
        OfferStatus.CANCELLED,
    },
    OfferStatus.ACCEPTED: {
        OfferStatus.PICKED_UP,
        OfferStatus.DELIVERED,
        OfferStatus.AVAILABLE,  # pickup cancelled, offer released
        OfferStatus.CANCELLED,
    },
    OfferStatus.PICKED_UP: {
        OfferStatus.DELIVERED,
    },
    OfferStatus.DELIVERED: set(),
    OfferStatus.CANCELLED: set(),
}

ALLOWED_ASSIGNMENT_TRANSITIONS: dict[AssignmentStatus, set[AssignmentStatus]] = {
    AssignmentStatus.PENDING: {
        AssignmentStatus.IN_PROGRESS,
        AssignmentStatus.COMPLETED,
        AssignmentStatus.CANCELLED,
    },
    AssignmentStatus.IN_PROGRESS: {
        AssignmentStatus.COMPLETED,
        AssignmentStatus.CANCELLED,
    },
    AssignmentStatus.COMPLETED: set(),
    AssignmentStatus.CANCELLED: set(),
}

ACTIVE_ASSIGNMENT_STATUSES = frozenset(
    {AssignmentStatus.PENDING.value, AssignmentStatus.IN_PROGRESS.value}
)

# Offers past this point count as completed and may no longer be deleted.
COMPLETED_OFFER_STATUSES = frozenset(
    {OfferStatus.PICKED_UP.value, OfferStatus.DELIVERED.value}
)


class InvalidTransition(Exception):
    """Raised when a status change is not in the transition table."""

    def __init__(self, entity: str, current: str, target: str) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {entity} from '{current}' to '{target}'")


def ensure_offer_transition(current: str, target: OfferStatus) -> OfferStatus:
    src = OfferStatus(current)
    if target not in ALLOWED_OFFER_TRANSITIONS[src]:
        raise InvalidTransition("offer", src.value, target.value)
    return target


def ensure_assignment_transition(current: str, target: AssignmentStatus) -> AssignmentStatus:
    src = AssignmentStatus(current)
    if target not in ALLOWED_ASSIGNMENT_TRANSITIONS[src]:
        raise InvalidTransition("assignment", src.value, target.value)
    return target


# ── Pickup verification codes ──────────────────────────────────────
OTP_MIN = 100_000
OTP_MAX = 999_999


def generate_otp() -> str:
    """Uniform 6-digit code in [100000, 999999]."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def otp_matches(expected: str | None, supplied: str) -> bool:
    if not expected:
        return False
    return supplied.strip() == expected
