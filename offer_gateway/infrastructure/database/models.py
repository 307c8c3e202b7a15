"""SQLAlchemy ORM models for offers, concerns and next payments"""

import uuid
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from offer_gateway.domain.models import ConcernStatus, OfferStatus

Base = declarative_base()


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Property(Base):
    """Property unit reference data"""

    __tablename__ = "property"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    house_type = Column(Text, nullable=False)
    price = Column(BigInteger, nullable=False)
    seller_id = Column(Text, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Enquiry(Base):
    """Buyer enquiry on a property; approved once an offer has been issued"""

    __tablename__ = "enquiry"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Text, nullable=False, index=True)
    property_id = Column(Uuid, ForeignKey("property.id"), nullable=False)
    approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(Text, nullable=True)
    approval_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Offer(Base):
    """Offer letter with its payment terms and lifecycle status"""

    __tablename__ = "offer"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Text, nullable=False, index=True)
    seller_id = Column(Text, nullable=False, index=True)
    enquiry_id = Column(Uuid, ForeignKey("enquiry.id"), nullable=False)
    property_id = Column(Uuid, ForeignKey("property.id"), nullable=False, index=True)
    status = Column(
        Enum(OfferStatus, name="offer_status", values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=OfferStatus.GENERATED,
    )
    reference_code = Column(Text, nullable=False, unique=True)
    title = Column(Text, nullable=False, default="")
    delivery_state = Column(Text, nullable=False, default="")
    allocation_in_percentage = Column(Integer, nullable=False, default=100)
    total_amount_payable = Column(BigInteger, nullable=False)
    initial_payment = Column(BigInteger, nullable=False)
    initial_payment_date = Column(Date, nullable=False)
    periodic_payment = Column(BigInteger, nullable=False)
    payment_frequency = Column(Integer, nullable=False)
    hand_over_date = Column(Date, nullable=False)
    expires = Column(DateTime(timezone=True), nullable=False)
    contribution_reward = Column(BigInteger, nullable=False, default=0)
    signature = Column(Text, nullable=True)
    response_date = Column(DateTime(timezone=True), nullable=True)
    date_assigned = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    concerns = relationship(
        "OfferConcern",
        back_populates="offer",
        order_by="OfferConcern.position",
        cascade="all, delete-orphan",
    )
    next_payments = relationship("NextPayment", back_populates="offer")

    # Every UPDATE checks the version it read; a concurrent writer raises StaleDataError
    __mapper_args__ = {"version_id_col": version}


class OfferConcern(Base):
    """Question raised by the buyer and the seller's response"""

    __tablename__ = "offer_concern"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    offer_id = Column(Uuid, ForeignKey("offer.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    question = Column(Text, nullable=False)
    date_asked = Column(DateTime(timezone=True), nullable=False)
    response = Column(Text, nullable=True)
    date_responded = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        Enum(ConcernStatus, name="concern_status", values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=ConcernStatus.PENDING,
    )

    offer = relationship("Offer", back_populates="concerns")

    __table_args__ = (Index("uq_offer_concern_position", "offer_id", "position", unique=True),)


class NextPayment(Base):
    """Currently expected installment for an offer, plus resolved history"""

    __tablename__ = "next_payment"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    offer_id = Column(Uuid, ForeignKey("offer.id"), nullable=False, index=True)
    buyer_id = Column(Text, nullable=False, index=True)
    seller_id = Column(Text, nullable=False, index=True)
    property_id = Column(Uuid, ForeignKey("property.id"), nullable=False)
    expected_amount = Column(BigInteger, nullable=False)
    expires_on = Column(Date, nullable=False, index=True)
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_date = Column(DateTime(timezone=True), nullable=True)
    resolved_via_transaction = Column(Boolean, nullable=True)
    transaction_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    offer = relationship("Offer", back_populates="next_payments")

    # At most one unresolved record per offer
    __table_args__ = (
        Index(
            "uq_next_payment_active_offer",
            "offer_id",
            unique=True,
            postgresql_where=text("resolved = false"),
            sqlite_where=text("resolved = 0"),
        ),
    )
