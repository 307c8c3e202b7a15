"""/v1/offers - offer lifecycle, concern thread and read endpoints"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from offer_gateway.api.dependencies import (
    get_caller_id,
    get_clock,
    get_notification_client,
    parse_uuid,
)
from offer_gateway.api.v1.schemas import (
    AcceptOfferRequest,
    ActiveOffersResponse,
    ConcernSchema,
    ContributionRewardResponse,
    CreateOfferRequest,
    OfferResponse,
    RaiseConcernRequest,
    ReactivateOfferRequest,
    ResolveConcernRequest,
    ScheduleEntrySchema,
    ScheduleResponse,
)
from offer_gateway.domain.models import OfferDraft
from offer_gateway.domain.ports import NotificationSink
from offer_gateway.infrastructure.clients.notifications import dispatch_notifications
from offer_gateway.infrastructure.database.models import Offer
from offer_gateway.infrastructure.database.session import get_db
from offer_gateway.services.offers import OfferOutcome, OfferService
from offer_gateway.utils.date_utils import ensure_utc

router = APIRouter()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value is not None else None


def offer_response(offer: Offer) -> OfferResponse:
    return OfferResponse(
        offer_id=str(offer.id),
        reference_code=offer.reference_code,
        status=offer.status.value,
        buyer_id=offer.buyer_id,
        seller_id=offer.seller_id,
        enquiry_id=str(offer.enquiry_id),
        property_id=str(offer.property_id),
        title=offer.title,
        delivery_state=offer.delivery_state,
        allocation_in_percentage=offer.allocation_in_percentage,
        total_amount_payable=offer.total_amount_payable,
        initial_payment=offer.initial_payment,
        initial_payment_date=offer.initial_payment_date,
        periodic_payment=offer.periodic_payment,
        payment_frequency=offer.payment_frequency,
        hand_over_date=offer.hand_over_date,
        expires=_iso(offer.expires),
        contribution_reward=offer.contribution_reward,
        signature=offer.signature,
        response_date=_iso(offer.response_date),
        date_assigned=_iso(offer.date_assigned),
        concerns=[
            ConcernSchema(
                concern_id=str(concern.id),
                question=concern.question,
                date_asked=_iso(concern.date_asked),
                response=concern.response,
                date_responded=_iso(concern.date_responded),
                status=concern.status.value,
            )
            for concern in offer.concerns
        ],
    )


def _respond(outcome: OfferOutcome, background_tasks: BackgroundTasks, sink: NotificationSink) -> OfferResponse:
    """Queue the outcome's notifications to run after the response is sent"""
    if outcome.notifications:
        background_tasks.add_task(dispatch_notifications, sink, outcome.notifications)
    return offer_response(outcome.offer)


@router.post("/offers", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
def create_offer(
    request_body: CreateOfferRequest,
    background_tasks: BackgroundTasks,
    caller_id: str = Depends(get_caller_id),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_client),
):
    """
    Issue an offer letter against a buyer's enquiry.

    Flow:
    1. Validate terms and check the enquiry has no approved offer
    2. Persist the offer and approve the enquiry
    3. Notify the buyer in the background
    """
    draft = OfferDraft(
        enquiry_id=parse_uuid(request_body.enquiry_id, "enquiry"),
        seller_id=caller_id,
        hand_over_date=request_body.hand_over_date,
        initial_payment_date=request_body.initial_payment_date,
        total_amount_payable=request_body.total_amount_payable,
        initial_payment=request_body.initial_payment,
        periodic_payment=request_body.periodic_payment,
        payment_frequency=request_body.payment_frequency,
        expires=request_body.expires,
        title=request_body.title,
        delivery_state=request_body.delivery_state,
        allocation_in_percentage=request_body.allocation_in_percentage,
    )
    outcome = OfferService(db).create_offer(draft, now=now)
    return _respond(outcome, background_tasks, sink)


@router.get("/offers/active", response_model=ActiveOffersResponse)
def get_active_offers(caller_id: str = Depends(get_caller_id), db: Session = Depends(get_db)):
    offers = OfferService(db).get_active_offers(caller_id)
    return ActiveOffersResponse(buyer_id=caller_id, offers=[offer_response(offer) for offer in offers])


@router.get("/offers/contribution-reward", response_model=ContributionRewardResponse)
def get_contribution_reward(caller_id: str = Depends(get_caller_id), db: Session = Depends(get_db)):
    total = OfferService(db).get_total_contribution_reward(caller_id)
    return ContributionRewardResponse(buyer_id=caller_id, total_contribution_reward=total)


@router.get("/offers/{offer_id}", response_model=OfferResponse)
def get_offer(offer_id: str, caller_id: str = Depends(get_caller_id), db: Session = Depends(get_db)):
    offer = OfferService(db).get_offer(parse_uuid(offer_id, "offer"), caller_id)
    return offer_response(offer)


@router.get("/offers/{offer_id}/schedule", response_model=ScheduleResponse)
def get_payment_schedule(offer_id: str, caller_id: str = Depends(get_caller_id), db: Session = Depends(get_db)):
    """Installments the buyer owes, derived from the offer's terms"""
    offer_uuid = parse_uuid(offer_id, "offer")
    service = OfferService(db)
    offer = service.get_offer(offer_uuid, caller_id)
    schedule = service.get_payment_schedule(offer_uuid, caller_id)

    return ScheduleResponse(
        offer_id=str(offer.id),
        total_amount_payable=offer.total_amount_payable,
        entries=[ScheduleEntrySchema(due_date=entry.date, amount=entry.amount) for entry in schedule],
    )


@router.put("/offers/{offer_id}/accept", response_model=OfferResponse)
def accept_offer(
    offer_id: str,
    request_body: AcceptOfferRequest,
    background_tasks: BackgroundTasks,
    caller_id: str = Depends(get_caller_id),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_client),
):
    outcome = OfferService(db).accept_offer(
        parse_uuid(offer_id, "offer"), caller_id, request_body.signature, now=now
    )
    return _respond(outcome, background_tasks, sink)


@router.put("/offers/{offer_id}/assign", response_model=OfferResponse)
def assign_offer(
    offer_id: str,
    caller_id: str = Depends(get_caller_id),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
):
    outcome = OfferService(db).assign_offer(parse_uuid(offer_id, "offer"), now=now, caller_id=caller_id)
    return offer_response(outcome.offer)


@router.put("/offers/{offer_id}/allocate", response_model=OfferResponse)
def allocate_offer(offer_id: str, caller_id: str = Depends(get_caller_id), db: Session = Depends(get_db)):
    outcome = OfferService(db).allocate_offer(parse_uuid(offer_id, "offer"), caller_id=caller_id)
    return offer_response(outcome.offer)


@router.put("/offers/{offer_id}/reject", response_model=OfferResponse)
def reject_offer(
    offer_id: str,
    caller_id: str = Depends(get_caller_id),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
):
    outcome = OfferService(db).reject_offer(parse_uuid(offer_id, "offer"), caller_id, now=now)
    return offer_response(outcome.offer)


@router.put("/offers/{offer_id}/cancel", response_model=OfferResponse)
def cancel_offer(offer_id: str, caller_id: str = Depends(get_caller_id), db: Session = Depends(get_db)):
    outcome = OfferService(db).cancel_offer(parse_uuid(offer_id, "offer"), caller_id)
    return offer_response(outcome.offer)


@router.post("/offers/{offer_id}/reactivate", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
def reactivate_offer(
    offer_id: str,
    request_body: ReactivateOfferRequest,
    background_tasks: BackgroundTasks,
    caller_id: str = Depends(get_caller_id),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_client),
):
    """Re-issue an expired or rejected offer; returns the new offer"""
    outcome = OfferService(db).reactivate_offer(
        parse_uuid(offer_id, "offer"),
        caller_id,
        expires=request_body.expires,
        hand_over_date=request_body.hand_over_date,
        initial_payment_date=request_body.initial_payment_date,
        now=now,
    )
    return _respond(outcome, background_tasks, sink)


@router.post("/offers/{offer_id}/concerns", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
def raise_concern(
    offer_id: str,
    request_body: RaiseConcernRequest,
    background_tasks: BackgroundTasks,
    caller_id: str = Depends(get_caller_id),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_client),
):
    outcome = OfferService(db).raise_concern(
        parse_uuid(offer_id, "offer"), caller_id, request_body.question, now=now
    )
    return _respond(outcome, background_tasks, sink)


@router.put("/offers/{offer_id}/concerns/{concern_id}", response_model=OfferResponse)
def resolve_concern(
    offer_id: str,
    concern_id: str,
    request_body: ResolveConcernRequest,
    background_tasks: BackgroundTasks,
    caller_id: str = Depends(get_caller_id),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_client),
):
    outcome = OfferService(db).resolve_concern(
        parse_uuid(offer_id, "offer"),
        caller_id,
        parse_uuid(concern_id, "concern"),
        request_body.response,
        now=now,
    )
    return _respond(outcome, background_tasks, sink)
