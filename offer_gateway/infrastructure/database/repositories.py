"""Data access layer for offers, enquiries, properties and next payments"""

import uuid
from datetime import date, datetime
from typing import Iterable, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from offer_gateway.infrastructure.database.models import (
    Enquiry,
    NextPayment,
    Offer,
    OfferConcern,
    Property,
)
from offer_gateway.domain.exceptions import NotFoundError
from offer_gateway.domain.models import (
    ACTIVE_OFFER_STATUSES,
    ConcernStatus,
    EnquiryInfo,
    NextDue,
    PropertyInfo,
)
from offer_gateway.utils.date_utils import utc_now


class PropertyRepository:
    """Repository for property reference data; serves as the property lookup"""

    def __init__(self, db: Session):
        self.db = db

    def add_property(self, name: str, house_type: str, price: int, seller_id: str) -> Property:
        db_property = Property(name=name, house_type=house_type, price=price, seller_id=seller_id)
        self.db.add(db_property)
        self.db.flush()
        return db_property

    def get_by_id(self, property_id: uuid.UUID) -> PropertyInfo:
        db_property = self.db.get(Property, property_id)
        if db_property is None:
            raise NotFoundError("Property not found")
        return PropertyInfo(
            property_id=db_property.id,
            name=db_property.name,
            house_type=db_property.house_type,
            price=db_property.price,
            seller_id=db_property.seller_id,
        )


class EnquiryRepository:
    """Repository for buyer enquiries; serves as the enquiry lookup"""

    def __init__(self, db: Session):
        self.db = db

    def add_enquiry(self, buyer_id: str, property_id: uuid.UUID) -> Enquiry:
        db_enquiry = Enquiry(buyer_id=buyer_id, property_id=property_id, approved=False)
        self.db.add(db_enquiry)
        self.db.flush()
        return db_enquiry

    def _get(self, enquiry_id: uuid.UUID) -> Enquiry:
        db_enquiry = self.db.get(Enquiry, enquiry_id)
        if db_enquiry is None:
            raise NotFoundError("Invalid enquiry")
        return db_enquiry

    def get_by_id(self, enquiry_id: uuid.UUID) -> EnquiryInfo:
        db_enquiry = self._get(enquiry_id)
        return EnquiryInfo(
            enquiry_id=db_enquiry.id,
            buyer_id=db_enquiry.buyer_id,
            property_id=db_enquiry.property_id,
            approved=db_enquiry.approved,
        )

    def set_approved(
        self,
        enquiry_id: uuid.UUID,
        approved: bool,
        by: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> None:
        db_enquiry = self._get(enquiry_id)
        db_enquiry.approved = approved
        db_enquiry.approved_by = by if approved else None
        db_enquiry.approval_date = (when or utc_now()) if approved else None
        self.db.flush()


class OfferRepository:
    """Repository for offers and their concern threads"""

    def __init__(self, db: Session):
        self.db = db

    def add_offer(self, offer: Offer) -> Offer:
        self.db.add(offer)
        self.db.flush()  # Get ID without committing
        return offer

    def get_offer(self, offer_id: uuid.UUID) -> Optional[Offer]:
        return self.db.get(Offer, offer_id)

    def get_offer_or_raise(self, offer_id: uuid.UUID) -> Offer:
        offer = self.get_offer(offer_id)
        if offer is None:
            raise NotFoundError("Offer not found")
        return offer

    def count_for_property(self, property_id: uuid.UUID) -> int:
        """Running number of offers ever issued against a property"""
        return (
            self.db.query(func.count(Offer.id))
            .filter(Offer.property_id == property_id)
            .scalar()
        )

    def get_active_offers(self, buyer_id: str) -> List[Offer]:
        return (
            self.db.query(Offer)
            .filter(Offer.buyer_id == buyer_id, Offer.status.in_(ACTIVE_OFFER_STATUSES))
            .order_by(Offer.created_at.desc())
            .all()
        )

    def total_contribution_reward(self, buyer_id: str) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(Offer.contribution_reward), 0))
            .filter(Offer.buyer_id == buyer_id, Offer.status.in_(ACTIVE_OFFER_STATUSES))
            .scalar()
        )
        return int(total)

    def append_concern(self, offer: Offer, question: str, asked_at: datetime) -> OfferConcern:
        concern = OfferConcern(
            position=len(offer.concerns),
            question=question,
            date_asked=asked_at,
            status=ConcernStatus.PENDING,
        )
        offer.concerns.append(concern)
        self.db.flush()
        return concern


class NextPaymentRepository:
    """Repository for next-payment records"""

    def __init__(self, db: Session):
        self.db = db

    def get_active(self, offer_id: uuid.UUID) -> Optional[NextPayment]:
        """The single unresolved record for an offer, if any"""
        return (
            self.db.query(NextPayment)
            .filter(NextPayment.offer_id == offer_id, NextPayment.resolved.is_(False))
            .one_or_none()
        )

    def get_history(self, offer_id: uuid.UUID) -> List[NextPayment]:
        return (
            self.db.query(NextPayment)
            .filter(NextPayment.offer_id == offer_id)
            .order_by(NextPayment.created_at)
            .all()
        )

    def resolve(
        self,
        record: NextPayment,
        resolved_at: datetime,
        transaction_id: Optional[str] = None,
    ) -> NextPayment:
        record.resolved = True
        record.resolved_date = resolved_at
        record.resolved_via_transaction = transaction_id is not None
        record.transaction_id = transaction_id
        # Flush before any insert so the partial unique index never sees two active rows
        self.db.flush()
        return record

    def add_next_payment(self, offer: Offer, due: NextDue) -> NextPayment:
        record = NextPayment(
            offer_id=offer.id,
            buyer_id=offer.buyer_id,
            seller_id=offer.seller_id,
            property_id=offer.property_id,
            expected_amount=due.expected_amount,
            expires_on=due.expires_on,
            resolved=False,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_unresolved_due_on(self, due_dates: Iterable[date]) -> List[NextPayment]:
        """Unresolved records whose due date is exactly one of due_dates"""
        return (
            self.db.query(NextPayment)
            .filter(NextPayment.resolved.is_(False), NextPayment.expires_on.in_(list(due_dates)))
            .order_by(NextPayment.expires_on)
            .all()
        )

    def get_unresolved_expired(self, today: date) -> List[NextPayment]:
        return (
            self.db.query(NextPayment)
            .filter(NextPayment.resolved.is_(False), NextPayment.expires_on < today)
            .order_by(NextPayment.expires_on)
            .all()
        )

    def get_pending_for_user(self, user_id: str) -> List[NextPayment]:
        return (
            self.db.query(NextPayment)
            .filter(
                NextPayment.resolved.is_(False),
                or_(NextPayment.buyer_id == user_id, NextPayment.seller_id == user_id),
            )
            .order_by(NextPayment.expires_on)
            .all()
        )
