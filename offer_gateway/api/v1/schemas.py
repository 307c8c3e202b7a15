"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional


class CreateOfferRequest(BaseModel):
    """Request body for POST /v1/offers"""

    enquiry_id: str = Field(..., description="Enquiry the offer answers")
    hand_over_date: date
    initial_payment_date: date
    total_amount_payable: int = Field(..., gt=0)
    initial_payment: int = Field(..., ge=0)
    periodic_payment: int = Field(..., gt=0)
    payment_frequency: int = Field(..., gt=0, description="Days between periodic payments")
    expires: datetime
    title: str = ""
    delivery_state: str = ""
    allocation_in_percentage: int = Field(100, ge=0, le=100)


class AcceptOfferRequest(BaseModel):
    """Request body for PUT /v1/offers/{offer_id}/accept"""

    signature: str = Field(..., min_length=1)


class ReactivateOfferRequest(BaseModel):
    """Request body for POST /v1/offers/{offer_id}/reactivate"""

    expires: datetime
    hand_over_date: Optional[date] = None
    initial_payment_date: Optional[date] = None


class RaiseConcernRequest(BaseModel):
    question: str = Field(..., min_length=1)


class ResolveConcernRequest(BaseModel):
    response: str = Field(..., min_length=1)


class RecomputeRequest(BaseModel):
    """Request body for POST /v1/offers/{offer_id}/next-payment"""

    transaction_id: Optional[str] = Field(None, description="Payment that triggered the recompute")


class ConcernSchema(BaseModel):
    """Single entry of an offer's concern thread"""

    concern_id: str
    question: str
    date_asked: str
    response: Optional[str] = None
    date_responded: Optional[str] = None
    status: str


class OfferResponse(BaseModel):
    """Offer projection returned by every offer endpoint"""

    offer_id: str
    reference_code: str
    status: str
    buyer_id: str
    seller_id: str
    enquiry_id: str
    property_id: str
    title: str
    delivery_state: str
    allocation_in_percentage: int
    total_amount_payable: int
    initial_payment: int
    initial_payment_date: date
    periodic_payment: int
    payment_frequency: int
    hand_over_date: date
    expires: str
    contribution_reward: int
    signature: Optional[str] = None
    response_date: Optional[str] = None
    date_assigned: Optional[str] = None
    concerns: List[ConcernSchema]


class ActiveOffersResponse(BaseModel):
    """Response for GET /v1/offers/active"""

    buyer_id: str
    offers: List[OfferResponse]


class ContributionRewardResponse(BaseModel):
    """Response for GET /v1/offers/contribution-reward"""

    buyer_id: str
    total_contribution_reward: int


class ScheduleEntrySchema(BaseModel):
    """Single installment in an offer's payment schedule"""

    due_date: date
    amount: int


class ScheduleResponse(BaseModel):
    """Response for GET /v1/offers/{offer_id}/schedule"""

    offer_id: str
    total_amount_payable: int
    entries: List[ScheduleEntrySchema]


class NextPaymentSchema(BaseModel):
    """Next payment record"""

    next_payment_id: str
    offer_id: str
    expected_amount: int
    expires_on: date
    resolved: bool
    resolved_date: Optional[str] = None
    resolved_via_transaction: Optional[bool] = None
    transaction_id: Optional[str] = None


class RecomputeResponse(BaseModel):
    """Response for POST /v1/offers/{offer_id}/next-payment"""

    offer_id: str
    offer_status: str
    total_paid: int
    next_payment: Optional[NextPaymentSchema] = None


class PendingNextPaymentsResponse(BaseModel):
    """Response for GET /v1/next-payments"""

    user_id: str
    next_payments: List[NextPaymentSchema]


class ReminderSchema(BaseModel):
    next_payment_id: str
    offer_id: str
    buyer_id: str
    property_name: str
    expected_amount: int
    expires_on: date
    days_until_due: int


class ReminderSweepResponse(BaseModel):
    """Response for POST /v1/next-payments/reminders"""

    reminders: List[ReminderSchema]


class RollOverResponse(BaseModel):
    """Response for POST /v1/next-payments/roll-over"""

    rolled_over: List[RecomputeResponse]
