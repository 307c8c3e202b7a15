"""Offer lifecycle service - applies state-machine transitions and the concern workflow"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from offer_gateway.config import settings
from offer_gateway.domain.exceptions import (
    ForbiddenError,
    NotFoundError,
    PreconditionFailedError,
    ValidationFailureError,
)
from offer_gateway.domain.installments import generate_payment_schedule
from offer_gateway.domain.lifecycle import (
    NOT_PERMITTED,
    Transition,
    build_reference_code,
    plan_accept,
    plan_allocate,
    plan_assign,
    plan_cancel,
    plan_reactivate,
    plan_reject,
    validate_terms,
)
from offer_gateway.domain.models import (
    ConcernStatus,
    EnquiryApproval,
    Notification,
    NotificationTemplate,
    OfferDraft,
    OfferStatus,
    PropertyInfo,
    ScheduleEntry,
)
from offer_gateway.domain.ports import EnquiryLookup, PropertyLookup
from offer_gateway.infrastructure.database.models import Offer, OfferConcern
from offer_gateway.infrastructure.database.repositories import (
    EnquiryRepository,
    OfferRepository,
    PropertyRepository,
)
from offer_gateway.infrastructure.observability.logging import log_transition
from offer_gateway.infrastructure.observability.metrics import concern_counter, record_transition
from offer_gateway.services.concurrency import KeyedLocks, offer_locks, unit_of_work
from offer_gateway.utils.date_utils import utc_now


@dataclass
class OfferOutcome:
    """Mutated offer plus the notifications to deliver once it is committed"""

    offer: Offer
    notifications: List[Notification] = field(default_factory=list)


def apply_transition(offer: Offer, transition: Transition) -> OfferStatus:
    """Write a planned transition onto the offer row; returns the previous status"""
    previous = offer.status
    for name, value in transition.changes.items():
        setattr(offer, name, value)
    offer.status = transition.target
    return previous


class OfferService:
    """Offer state machine bound to a database session"""

    def __init__(
        self,
        db: Session,
        properties: Optional[PropertyLookup] = None,
        enquiries: Optional[EnquiryLookup] = None,
        seller_code: Optional[str] = None,
        locks: KeyedLocks = offer_locks,
    ):
        self.db = db
        self.offers = OfferRepository(db)
        self.properties = properties or PropertyRepository(db)
        self.enquiries = enquiries or EnquiryRepository(db)
        self.seller_code = seller_code or settings.seller_code
        self.locks = locks

    def _reference_code(self, property_info: PropertyInfo, now: datetime) -> str:
        return build_reference_code(
            self.seller_code,
            property_info.name,
            property_info.house_type,
            self.offers.count_for_property(property_info.property_id),
            now,
        )

    def _apply_enquiry_action(self, action: EnquiryApproval) -> None:
        self.enquiries.set_approved(action.enquiry_id, action.approved, action.by)

    def _transition(self, offer_id: uuid.UUID, plan, caller_id: Optional[str] = None) -> Offer:
        """Load, plan and apply one transition as a single unit of work"""
        with self.locks.hold(offer_id):
            with unit_of_work(self.db):
                offer = self.offers.get_offer_or_raise(offer_id)
                transition = plan(offer)
                previous = apply_transition(offer, transition)
                if transition.enquiry_action is not None:
                    self._apply_enquiry_action(transition.enquiry_action)
                self.db.flush()

        log_transition(offer.id, transition.label, previous.value, offer.status.value, caller_id)
        record_transition(transition.label)
        return offer

    def create_offer(self, draft: OfferDraft, now: Optional[datetime] = None) -> OfferOutcome:
        """
        Issue an offer against an unapproved enquiry.

        Flow:
        1. Validate terms
        2. Check the enquiry exists and has no approved offer
        3. Generate the reference code from the property's running offer count
        4. Persist the offer and approve the enquiry in one transaction
        5. Queue the buyer notification
        """
        now = now or utc_now()
        validate_terms(draft, now)

        # Serialize per enquiry so two sellers cannot both approve it
        with self.locks.hold(("enquiry", draft.enquiry_id)):
            # The running number is per property: hold it until the new offer is committed
            property_id = self.enquiries.get_by_id(draft.enquiry_id).property_id
            with self.locks.hold(("property", property_id)):
                with unit_of_work(self.db):
                    enquiry = self.enquiries.get_by_id(draft.enquiry_id)
                    if enquiry.approved:
                        raise PreconditionFailedError(
                            "An offer letter exists for this enquiry. You will need to cancel / reject "
                            "the offer letter to create a new offer letter"
                        )
                    property_info = self.properties.get_by_id(enquiry.property_id)

                    offer = Offer(
                        buyer_id=enquiry.buyer_id,
                        seller_id=draft.seller_id,
                        enquiry_id=enquiry.enquiry_id,
                        property_id=enquiry.property_id,
                        status=OfferStatus.GENERATED,
                        reference_code=self._reference_code(property_info, now),
                        title=draft.title,
                        delivery_state=draft.delivery_state,
                        allocation_in_percentage=draft.allocation_in_percentage,
                        total_amount_payable=draft.total_amount_payable,
                        initial_payment=draft.initial_payment,
                        initial_payment_date=draft.initial_payment_date,
                        periodic_payment=draft.periodic_payment,
                        payment_frequency=draft.payment_frequency,
                        hand_over_date=draft.hand_over_date,
                        expires=draft.expires,
                        contribution_reward=0,
                    )
                    self.offers.add_offer(offer)
                    self._apply_enquiry_action(
                        EnquiryApproval(enquiry_id=enquiry.enquiry_id, approved=True, by=draft.seller_id)
                    )

        log_transition(offer.id, "create", "-", offer.status.value, draft.seller_id)
        record_transition("create")

        notification = Notification(
            template_key=NotificationTemplate.OFFER_CREATED,
            recipient=offer.buyer_id,
            context={
                "offer_id": str(offer.id),
                "reference_code": offer.reference_code,
                "property_name": property_info.name,
                "house_type": property_info.house_type,
                "expires": draft.expires.isoformat(),
                "content_top": (
                    f'You have received an offer for a "{property_info.house_type}" in '
                    f'"{property_info.name}". This offer is valid till '
                    f"{draft.expires.strftime('%a, %d %b %Y %H:%M:%S')} UTC."
                ),
            },
        )
        return OfferOutcome(offer=offer, notifications=[notification])

    def accept_offer(
        self,
        offer_id: uuid.UUID,
        caller_id: str,
        signature: str,
        now: Optional[datetime] = None,
    ) -> OfferOutcome:
        """Buyer signs the offer; records the contribution reward against the property price"""
        now = now or utc_now()
        property_info: List[PropertyInfo] = []

        def plan(offer: Offer) -> Transition:
            info = self.properties.get_by_id(offer.property_id)
            property_info.append(info)
            return plan_accept(offer, caller_id, signature, info.price, now)

        offer = self._transition(offer_id, plan, caller_id)
        name = property_info[0].name
        notifications = [
            Notification(
                template_key=NotificationTemplate.OFFER_RESPONSE_SELLER,
                recipient=offer.seller_id,
                context={
                    "offer_id": str(offer.id),
                    "property_name": name,
                    "content_top": (
                        f"Note that your offer on {name} has been accepted. "
                        "Check your dashboard for more details."
                    ),
                },
            ),
            Notification(
                template_key=NotificationTemplate.OFFER_RESPONSE_BUYER,
                recipient=offer.buyer_id,
                context={"offer_id": str(offer.id), "property_name": name},
            ),
        ]
        return OfferOutcome(offer=offer, notifications=notifications)

    def assign_offer(
        self, offer_id: uuid.UUID, now: Optional[datetime] = None, caller_id: Optional[str] = None
    ) -> OfferOutcome:
        now = now or utc_now()
        offer = self._transition(offer_id, lambda offer: plan_assign(offer, now), caller_id)
        return OfferOutcome(offer=offer)

    def allocate_offer(self, offer_id: uuid.UUID, caller_id: Optional[str] = None) -> OfferOutcome:
        offer = self._transition(offer_id, plan_allocate, caller_id)
        return OfferOutcome(offer=offer)

    def reject_offer(self, offer_id: uuid.UUID, caller_id: str, now: Optional[datetime] = None) -> OfferOutcome:
        now = now or utc_now()
        offer = self._transition(offer_id, lambda offer: plan_reject(offer, caller_id, now), caller_id)
        return OfferOutcome(offer=offer)

    def cancel_offer(self, offer_id: uuid.UUID, caller_id: str) -> OfferOutcome:
        """Seller withdraws an offer the buyer has not signed; releases the enquiry"""
        offer = self._transition(offer_id, lambda offer: plan_cancel(offer, caller_id), caller_id)
        return OfferOutcome(offer=offer)

    def reactivate_offer(
        self,
        offer_id: uuid.UUID,
        caller_id: str,
        expires: datetime,
        hand_over_date: Optional[date] = None,
        initial_payment_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> OfferOutcome:
        """
        Re-issue an expired or rejected offer under a new validity window.

        The old offer is closed as Reactivated and a fresh Generated offer
        with the same terms and a new reference code takes its place. The
        enquiry stays approved throughout.
        """
        now = now or utc_now()

        with self.locks.hold(offer_id):
            property_id = self.offers.get_offer_or_raise(offer_id).property_id
            with self.locks.hold(("property", property_id)):
                with unit_of_work(self.db):
                    old = self.offers.get_offer_or_raise(offer_id)
                    transition = plan_reactivate(old, caller_id)

                    draft = OfferDraft(
                        enquiry_id=old.enquiry_id,
                        seller_id=old.seller_id,
                        hand_over_date=hand_over_date or old.hand_over_date,
                        initial_payment_date=initial_payment_date or old.initial_payment_date,
                        total_amount_payable=old.total_amount_payable,
                        initial_payment=old.initial_payment,
                        periodic_payment=old.periodic_payment,
                        payment_frequency=old.payment_frequency,
                        expires=expires,
                        title=old.title,
                        delivery_state=old.delivery_state,
                        allocation_in_percentage=old.allocation_in_percentage,
                    )
                    validate_terms(draft, now)
                    property_info = self.properties.get_by_id(old.property_id)

                    previous = apply_transition(old, transition)
                    new_offer = Offer(
                        buyer_id=old.buyer_id,
                        seller_id=draft.seller_id,
                        enquiry_id=draft.enquiry_id,
                        property_id=old.property_id,
                        status=OfferStatus.GENERATED,
                        reference_code=self._reference_code(property_info, now),
                        title=draft.title,
                        delivery_state=draft.delivery_state,
                        allocation_in_percentage=draft.allocation_in_percentage,
                        total_amount_payable=draft.total_amount_payable,
                        initial_payment=draft.initial_payment,
                        initial_payment_date=draft.initial_payment_date,
                        periodic_payment=draft.periodic_payment,
                        payment_frequency=draft.payment_frequency,
                        hand_over_date=draft.hand_over_date,
                        expires=draft.expires,
                        contribution_reward=0,
                    )
                    self.offers.add_offer(new_offer)

        log_transition(old.id, transition.label, previous.value, old.status.value, caller_id)
        record_transition(transition.label)

        notification = Notification(
            template_key=NotificationTemplate.OFFER_REACTIVATED,
            recipient=new_offer.buyer_id,
            context={
                "offer_id": str(new_offer.id),
                "previous_offer_id": str(old.id),
                "property_name": property_info.name,
                "content_top": f"Your offer for {property_info.name} has been reactivated",
            },
        )
        return OfferOutcome(offer=new_offer, notifications=[notification])

    def raise_concern(
        self,
        offer_id: uuid.UUID,
        caller_id: str,
        question: str,
        now: Optional[datetime] = None,
    ) -> OfferOutcome:
        """Buyer appends a question to the offer's concern thread"""
        now = now or utc_now()
        if not question or not question.strip():
            raise ValidationFailureError("Question cannot be empty")

        with self.locks.hold(offer_id):
            with unit_of_work(self.db):
                offer = self.offers.get_offer_or_raise(offer_id)
                if caller_id != offer.buyer_id:
                    raise ForbiddenError(NOT_PERMITTED)
                self.offers.append_concern(offer, question.strip(), now)
                offer.updated_at = now  # bumps the version so concurrent edits conflict
                self.db.flush()

        concern_counter.labels(action="raised").inc()
        notification = Notification(
            template_key=NotificationTemplate.CONCERN_RAISED,
            recipient=offer.seller_id,
            context={
                "offer_id": str(offer.id),
                "question": question.strip(),
                "content_top": (
                    f"A concern has been raised on your offer {offer.reference_code}. "
                    f"The question states: {question.strip()}."
                ),
            },
        )
        return OfferOutcome(offer=offer, notifications=[notification])

    def resolve_concern(
        self,
        offer_id: uuid.UUID,
        caller_id: str,
        concern_id: uuid.UUID,
        response: str,
        now: Optional[datetime] = None,
    ) -> OfferOutcome:
        """Seller answers a pending concern; a resolved concern is never reopened"""
        now = now or utc_now()
        if not response or not response.strip():
            raise ValidationFailureError("Response cannot be empty")

        with self.locks.hold(offer_id):
            with unit_of_work(self.db):
                offer = self.offers.get_offer_or_raise(offer_id)
                if caller_id != offer.seller_id:
                    raise ForbiddenError(NOT_PERMITTED)

                concerns_by_id = {concern.id: concern for concern in offer.concerns}
                concern: Optional[OfferConcern] = concerns_by_id.get(concern_id)
                if concern is None:
                    raise NotFoundError("Concern not found")
                if concern.status == ConcernStatus.RESOLVED:
                    raise PreconditionFailedError("Concern has already been resolved")

                concern.response = response.strip()
                concern.date_responded = now
                concern.status = ConcernStatus.RESOLVED
                offer.updated_at = now
                self.db.flush()

        concern_counter.labels(action="resolved").inc()
        notification = Notification(
            template_key=NotificationTemplate.CONCERN_RESOLVED,
            recipient=offer.buyer_id,
            context={
                "offer_id": str(offer.id),
                "question": concern.question,
                "response": concern.response,
            },
        )
        return OfferOutcome(offer=offer, notifications=[notification])

    def get_offer(self, offer_id: uuid.UUID, caller_id: str) -> Offer:
        offer = self.offers.get_offer_or_raise(offer_id)
        if caller_id not in (offer.buyer_id, offer.seller_id):
            raise ForbiddenError(NOT_PERMITTED)
        return offer

    def get_payment_schedule(self, offer_id: uuid.UUID, caller_id: str) -> List[ScheduleEntry]:
        return generate_payment_schedule(self.get_offer(offer_id, caller_id))

    def get_active_offers(self, buyer_id: str) -> List[Offer]:
        return self.offers.get_active_offers(buyer_id)

    def get_total_contribution_reward(self, buyer_id: str) -> int:
        return self.offers.total_contribution_reward(buyer_id)
