"""Domain models - pure Python dataclasses representing business entities"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional


class OfferStatus(str, enum.Enum):
    """Lifecycle states of an offer letter"""

    GENERATED = "Generated"
    INTERESTED = "Interested"
    ASSIGNED = "Assigned"
    ALLOCATED = "Allocated"
    REJECTED = "Rejected"
    REACTIVATED = "Reactivated"
    CANCELLED = "Cancelled"
    RESOLVED = "Resolved"


# Statuses counted as a live commitment for the buyer
ACTIVE_OFFER_STATUSES = (
    OfferStatus.GENERATED,
    OfferStatus.INTERESTED,
    OfferStatus.ASSIGNED,
    OfferStatus.ALLOCATED,
)

# The buyer has signed; the offer can no longer be withdrawn by the seller
ACCEPTED_OFFER_STATUSES = (
    OfferStatus.INTERESTED,
    OfferStatus.ASSIGNED,
    OfferStatus.ALLOCATED,
    OfferStatus.RESOLVED,
)


class ConcernStatus(str, enum.Enum):
    PENDING = "Pending"
    RESOLVED = "Resolved"


class NotificationTemplate:
    """Template keys understood by the notification service"""

    OFFER_CREATED = "OFFER_CREATED"
    OFFER_RESPONSE_SELLER = "OFFER_RESPONSE_SELLER"
    OFFER_RESPONSE_BUYER = "OFFER_RESPONSE_BUYER"
    OFFER_REACTIVATED = "OFFER_REACTIVATED"
    CONCERN_RAISED = "CONCERN_RAISED"
    CONCERN_RESOLVED = "CONCERN_RESOLVED"
    PAYMENT_REMINDER = "PAYMENT_REMINDER"


@dataclass
class PropertyInfo:
    """Property unit as seen through the property lookup"""

    property_id: uuid.UUID
    name: str
    house_type: str
    price: int
    seller_id: str


@dataclass
class EnquiryInfo:
    """Buyer enquiry as seen through the enquiry lookup"""

    enquiry_id: uuid.UUID
    buyer_id: str
    property_id: uuid.UUID
    approved: bool


@dataclass
class OfferDraft:
    """Terms submitted by a seller when issuing an offer"""

    enquiry_id: uuid.UUID
    seller_id: str
    hand_over_date: date
    initial_payment_date: date
    total_amount_payable: int
    initial_payment: int
    periodic_payment: int
    payment_frequency: int  # days between periodic payments
    expires: datetime
    title: str = ""
    delivery_state: str = ""
    allocation_in_percentage: int = 100


@dataclass
class PaymentTerms:
    """Subset of offer terms the payment schedule is derived from"""

    total_amount_payable: int
    initial_payment: int
    periodic_payment: int
    payment_frequency: int
    hand_over_date: date


@dataclass(frozen=True)
class ScheduleEntry:
    """Single installment in an offer's payment schedule"""

    date: date
    amount: int


@dataclass(frozen=True)
class NextDue:
    """Amount expected next and the milestone it is attached to"""

    expected_amount: int
    expires_on: date


@dataclass(frozen=True)
class EnquiryApproval:
    """Compensating action on the source enquiry, applied by the caller"""

    enquiry_id: uuid.UUID
    approved: bool
    by: Optional[str] = None


@dataclass
class Notification:
    """Outbound message queued by a business operation"""

    template_key: str
    recipient: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Reminder:
    """Payment reminder selected by the reminder sweep"""

    next_payment_id: uuid.UUID
    offer_id: uuid.UUID
    buyer_id: str
    property_name: str
    expected_amount: int
    expires_on: date
    days_until_due: int
