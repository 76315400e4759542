# SPDX-License-Identifier: Apache-2.0

"""
Donation lifecycle rules.

    available ──claim──> Pending Pickup ──sender + receiver confirm──> Completed
    Expired   ──claim──┘

Functions take stored donation documents and return the field updates to
apply together with the filter (``guard``) the stored document must still
match when they are written. A failed ``TransitionResult`` describes why the
move is refused.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Any, Optional

from models.entities import UserContext
from models.enums import DonationStatus

ANONYMOUS_DONOR = "anonymous"
CLAIMABLE_STATUSES = (DonationStatus.AVAILABLE.value, DonationStatus.EXPIRED.value)
MAP_STATUSES = (DonationStatus.AVAILABLE.value, DonationStatus.PENDING_PICKUP.value)

# Missing and legacy "Available" statuses count as available
CLAIM_GUARD = {"status": {"$in": [*CLAIMABLE_STATUSES, "Available", None]}}

# Completion is its own write, applied only once both flags are stored
COMPLETION_GUARD = {"senderConfirmed": True, "receiverConfirmed": True}


@dataclass
class TransitionResult:
    """Outcome of a lifecycle transition."""
    success: bool
    updates: Dict[str, Any] = field(default_factory=dict)
    guard: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None
    status_code: int = 400

    @property
    def status(self) -> Optional[str]:
        return self.updates.get("status")


def _refuse(message: str, status_code: int = 400) -> TransitionResult:
    return TransitionResult(success=False, error_message=message, status_code=status_code)


def resolve_donor_id(user_context: Optional[UserContext], body_donor_id: Optional[str]) -> str:
    """Token identity wins over the body; unauthenticated listings are anonymous."""
    if user_context is not None:
        return user_context.user_id
    return body_donor_id or ANONYMOUS_DONOR


def is_anonymous(donor_id: Optional[str]) -> bool:
    return not donor_id or donor_id == ANONYMOUS_DONOR


def normalize_status(status: Optional[str]) -> str:
    """Accept legacy ``Available`` spellings."""
    if not status or status.lower() == DonationStatus.AVAILABLE.value:
        return DonationStatus.AVAILABLE.value
    return status


def can_claim(donation: Dict[str, Any]) -> bool:
    return normalize_status(donation.get("status")) in CLAIMABLE_STATUSES


def claim(donation: Dict[str, Any], claimer_id: str) -> TransitionResult:
    """Reserve a donation for pickup, clearing any earlier confirmations."""
    if not can_claim(donation):
        return _refuse("Donation is no longer available")

    return TransitionResult(success=True, guard=CLAIM_GUARD, updates={
        "status": DonationStatus.PENDING_PICKUP.value,
        "claimedById": claimer_id,
        "senderConfirmed": False,
        "receiverConfirmed": False
    })


def confirm_sent(donation: Dict[str, Any], user_id: str) -> TransitionResult:
    """Donor confirms hand-over. Only the flag is set; see ``COMPLETION_GUARD``."""
    if donation.get("donorId") != user_id:
        return _refuse("Unauthorized", 403)
    return TransitionResult(success=True, updates={"senderConfirmed": True}, guard={"donorId": user_id})


def confirm_received(donation: Dict[str, Any], user_id: str) -> TransitionResult:
    """Claimer confirms receipt."""
    if not donation.get("claimedById") or donation.get("claimedById") != user_id:
        return _refuse("Unauthorized", 403)
    return TransitionResult(success=True, updates={"receiverConfirmed": True}, guard={"claimedById": user_id})


def can_delete(donation: Dict[str, Any], user_context: UserContext) -> bool:
    return user_context.is_admin() or donation.get("donorId") == user_context.user_id


def is_expiring(donation: Dict[str, Any], now: datetime, window: timedelta) -> bool:
    """Available, not yet alerted, and expiring between now and now + window."""
    expiry = donation.get("expiry")
    if not isinstance(expiry, datetime):
        return False
    if normalize_status(donation.get("status")) != DonationStatus.AVAILABLE.value:
        return False
    if donation.get("expiryAlertSent"):
        return False
    return now <= expiry <= now + window
