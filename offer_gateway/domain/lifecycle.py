"""Offer state machine - transition table, guards and derived offer fields"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from offer_gateway.domain.exceptions import (
    ForbiddenError,
    PreconditionFailedError,
    ValidationFailureError,
)
from offer_gateway.domain.models import (
    ACCEPTED_OFFER_STATUSES,
    EnquiryApproval,
    OfferDraft,
    OfferStatus,
)
from offer_gateway.utils.date_utils import date_stamp, ensure_utc

ALLOWED_TRANSITIONS = {
    OfferStatus.GENERATED: {
        OfferStatus.INTERESTED,
        OfferStatus.REJECTED,
        OfferStatus.CANCELLED,
        OfferStatus.REACTIVATED,
        OfferStatus.RESOLVED,
    },
    OfferStatus.INTERESTED: {OfferStatus.ASSIGNED, OfferStatus.RESOLVED},
    OfferStatus.ASSIGNED: {OfferStatus.ALLOCATED, OfferStatus.RESOLVED},
    OfferStatus.ALLOCATED: {OfferStatus.RESOLVED},
    OfferStatus.REJECTED: {OfferStatus.CANCELLED, OfferStatus.REACTIVATED},
    OfferStatus.CANCELLED: set(),
    OfferStatus.REACTIVATED: set(),
    OfferStatus.RESOLVED: set(),
}

NOT_PERMITTED = "You are not permitted to perform this action"


@dataclass
class Transition:
    """Planned status change plus the field updates and enquiry action it carries"""

    label: str
    target: OfferStatus
    changes: Dict[str, Any] = field(default_factory=dict)
    enquiry_action: Optional[EnquiryApproval] = None


def can_transition(current: OfferStatus, target: OfferStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(current: OfferStatus, target: OfferStatus) -> None:
    """Raise PreconditionFailedError unless current -> target is an allowed edge"""
    if not can_transition(current, target):
        raise PreconditionFailedError(
            f"Offer cannot move from {current.value} to {target.value}"
        )


def validate_terms(draft: OfferDraft, now: datetime) -> None:
    """
    Reject malformed offer terms before anything is written.

    Raises:
        ValidationFailureError: negative amounts, initial payment above the
            total, non-positive frequency or periodic payment, or an expiry
            that is not after now
    """
    if draft.total_amount_payable <= 0:
        raise ValidationFailureError("Total amount payable must be positive")
    if draft.initial_payment < 0:
        raise ValidationFailureError("Initial payment cannot be negative")
    if draft.initial_payment > draft.total_amount_payable:
        raise ValidationFailureError("Initial payment cannot exceed total amount payable")
    if draft.periodic_payment <= 0:
        raise ValidationFailureError("Periodic payment must be positive")
    if draft.payment_frequency <= 0:
        raise ValidationFailureError("Payment frequency must be a positive number of days")
    if not 0 <= draft.allocation_in_percentage <= 100:
        raise ValidationFailureError("Allocation must be between 0 and 100 percent")
    if ensure_utc(draft.expires) <= ensure_utc(now):
        raise ValidationFailureError("Offer expiry must be in the future")


def initials(text: str) -> str:
    """First letter of every word, upper-cased: 'Lekki Ville Estate' -> 'LVE'"""
    return "".join(re.findall(r"\b(\w)", text)).upper()


def build_reference_code(
    seller_code: str,
    property_name: str,
    house_type: str,
    prior_offer_count: int,
    now: datetime,
) -> str:
    """
    Human-readable offer reference, generated once at creation.

    Format: SELLER/PROPERTY-INITIALS/OL<HOUSE-TYPE-INITIALS>/NN/ddMMyyyy
    where NN is this offer's running number against the property.

    Example:
        HIG/LVE/OLM/01/01032020 for the first Maisonette offer on
        Lekki Ville Estate issued on 1 March 2020
    """
    sequence = prior_offer_count + 1
    return "/".join(
        [
            seller_code,
            initials(property_name),
            f"OL{initials(house_type)}",
            f"{sequence:02d}",
            date_stamp(now),
        ]
    )


def contribution_reward(property_price: int, total_amount_payable: int) -> int:
    """Discount the buyer earns when the offer is priced below the property"""
    return max(0, property_price - total_amount_payable)


def plan_accept(offer, caller_id: str, signature: str, property_price: int, now: datetime) -> Transition:
    if caller_id != offer.buyer_id:
        raise ForbiddenError("You cannot accept offer of another user")
    if offer.status == OfferStatus.CANCELLED:
        raise PreconditionFailedError("You cannot accept a cancelled offer")
    if offer.status != OfferStatus.GENERATED:
        raise PreconditionFailedError(f"An offer that is {offer.status.value} cannot be accepted")
    if ensure_utc(now) > ensure_utc(offer.expires):
        raise PreconditionFailedError("Offer has expired")

    return Transition(
        label="accept",
        target=OfferStatus.INTERESTED,
        changes={
            "signature": signature,
            "contribution_reward": contribution_reward(property_price, offer.total_amount_payable),
            "response_date": now,
        },
    )


def plan_assign(offer, now: datetime) -> Transition:
    if offer.status != OfferStatus.INTERESTED:
        raise PreconditionFailedError("Offer letter has to be accepted before it can be assigned")
    return Transition(label="assign", target=OfferStatus.ASSIGNED, changes={"date_assigned": now})


def plan_allocate(offer) -> Transition:
    if offer.status != OfferStatus.ASSIGNED:
        raise PreconditionFailedError("Offer has to be assigned before it can be allocated")
    return Transition(label="allocate", target=OfferStatus.ALLOCATED)


def plan_reject(offer, caller_id: str, now: datetime) -> Transition:
    if caller_id != offer.buyer_id:
        raise ForbiddenError(NOT_PERMITTED)
    if offer.status != OfferStatus.GENERATED:
        raise PreconditionFailedError(f"An offer that is {offer.status.value} cannot be rejected")
    return Transition(label="reject", target=OfferStatus.REJECTED, changes={"response_date": now})


def plan_cancel(offer, caller_id: str) -> Transition:
    if caller_id != offer.seller_id:
        raise ForbiddenError(NOT_PERMITTED)
    if offer.status in ACCEPTED_OFFER_STATUSES:
        raise PreconditionFailedError("You cannot cancel an accepted offer")
    ensure_transition(offer.status, OfferStatus.CANCELLED)

    return Transition(
        label="cancel",
        target=OfferStatus.CANCELLED,
        enquiry_action=EnquiryApproval(enquiry_id=offer.enquiry_id, approved=False, by=caller_id),
    )


def plan_reactivate(offer, caller_id: str) -> Transition:
    if caller_id != offer.seller_id:
        raise ForbiddenError(NOT_PERMITTED)
    if not can_transition(offer.status, OfferStatus.REACTIVATED):
        raise PreconditionFailedError(f"An offer that is {offer.status.value} cannot be reactivated")
    return Transition(label="reactivate", target=OfferStatus.REACTIVATED)


def plan_resolve(offer) -> Optional[Transition]:
    """Full payment transition; None when the offer is already settled or withdrawn"""
    if not can_transition(offer.status, OfferStatus.RESOLVED):
        return None
    return Transition(label="resolve", target=OfferStatus.RESOLVED)
