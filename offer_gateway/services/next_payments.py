"""Next payment service - keeps each offer's single expected installment in step with the ledger"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from offer_gateway.config import settings
from offer_gateway.domain.installments import generate_payment_schedule
from offer_gateway.domain.lifecycle import plan_resolve
from offer_gateway.domain.models import Notification, Reminder
from offer_gateway.domain.next_payment import compute_next_due
from offer_gateway.domain.ports import LedgerQuery, PropertyLookup
from offer_gateway.domain.reminders import reminder_due_dates, reminder_notification
from offer_gateway.infrastructure.database.models import NextPayment, Offer
from offer_gateway.infrastructure.database.repositories import (
    NextPaymentRepository,
    OfferRepository,
    PropertyRepository,
)
from offer_gateway.infrastructure.observability.logging import (
    log_next_payment,
    log_reminder_sweep,
    log_transition,
)
from offer_gateway.infrastructure.observability.metrics import (
    record_recompute,
    record_reminder,
    record_transition,
)
from offer_gateway.services.concurrency import KeyedLocks, offer_locks, unit_of_work
from offer_gateway.services.offers import apply_transition
from offer_gateway.utils.date_utils import ensure_utc, utc_now


@dataclass
class RecomputeResult:
    """Outcome of one recomputation"""

    offer: Offer
    total_paid: int
    next_payment: Optional[NextPayment]
    resolved_previous: Optional[NextPayment]

    @property
    def settled(self) -> bool:
        return self.next_payment is None


@dataclass
class ReminderSweep:
    reminders: List[Reminder] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)


class NextPaymentService:
    """Recomputes next payments from ledger totals and selects reminders"""

    def __init__(
        self,
        db: Session,
        ledger: LedgerQuery,
        properties: Optional[PropertyLookup] = None,
        thresholds: Optional[List[int]] = None,
        locks: KeyedLocks = offer_locks,
    ):
        self.db = db
        self.ledger = ledger
        self.offers = OfferRepository(db)
        self.next_payments = NextPaymentRepository(db)
        self.properties = properties or PropertyRepository(db)
        self.thresholds = thresholds or settings.reminder_thresholds_days
        self.locks = locks

    def recompute(
        self,
        offer_id: uuid.UUID,
        transaction_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RecomputeResult:
        """
        Replace the offer's active next payment with one derived from the ledger.

        Flow:
        1. Load the offer and the ledger total
        2. Generate the schedule and compute what is due as of today
        3. Resolve the previous active record, tagged with the transaction
        4. Insert the new record, or resolve the offer when fully paid

        Steps 3 and 4 commit together, and recomputes for one offer never
        overlap, so readers always see at most one active record.

        Raises:
            NotFoundError: unknown offer
            InternalFailureError: ledger unavailable or persistence failure
        """
        now = now or utc_now()
        today = ensure_utc(now).date()
        transition = None

        with self.locks.hold(offer_id):
            with unit_of_work(self.db):
                offer = self.offers.get_offer_or_raise(offer_id)
                total_paid = self.ledger.total_paid(offer.id)

                due = compute_next_due(
                    generate_payment_schedule(offer),
                    total_paid=total_paid,
                    total_amount_payable=offer.total_amount_payable,
                    periodic_payment=offer.periodic_payment,
                    payment_frequency=offer.payment_frequency,
                    today=today,
                )

                previous = self.next_payments.get_active(offer.id)
                if previous is not None:
                    self.next_payments.resolve(previous, now, transaction_id)

                record = None
                if due is not None:
                    record = self.next_payments.add_next_payment(offer, due)
                else:
                    transition = plan_resolve(offer)
                    if transition is not None:
                        previous_status = apply_transition(offer, transition)
                        self.db.flush()

        log_next_payment(
            offer.id,
            total_paid,
            due.expected_amount if due else None,
            due.expires_on if due else None,
            transaction_id,
        )
        record_recompute(settled=due is None)
        if transition is not None:
            log_transition(offer.id, transition.label, previous_status.value, offer.status.value)
            record_transition(transition.label)

        return RecomputeResult(
            offer=offer,
            total_paid=total_paid,
            next_payment=record,
            resolved_previous=previous,
        )

    def roll_over_expired(self, now: Optional[datetime] = None) -> List[RecomputeResult]:
        """Recompute every active record whose due date has passed (daily job)"""
        now = now or utc_now()
        today = ensure_utc(now).date()

        offer_ids = [record.offer_id for record in self.next_payments.get_unresolved_expired(today)]
        return [self.recompute(offer_id, now=now) for offer_id in offer_ids]

    def run_reminder_sweep(self, now: Optional[datetime] = None) -> ReminderSweep:
        """Select active records due exactly at a reminder threshold; records are left untouched"""
        now = now or utc_now()
        today = ensure_utc(now).date()
        due_dates = reminder_due_dates(today, self.thresholds)

        sweep = ReminderSweep()
        for record in self.next_payments.get_unresolved_due_on(due_dates.keys()):
            days = due_dates[record.expires_on]
            reminder = Reminder(
                next_payment_id=record.id,
                offer_id=record.offer_id,
                buyer_id=record.buyer_id,
                property_name=self.properties.get_by_id(record.property_id).name,
                expected_amount=record.expected_amount,
                expires_on=record.expires_on,
                days_until_due=days,
            )
            sweep.reminders.append(reminder)
            sweep.notifications.append(reminder_notification(reminder))
            record_reminder(days)

        log_reminder_sweep(today, len(sweep.reminders))
        return sweep

    def pending_for_user(self, user_id: str) -> List[NextPayment]:
        return self.next_payments.get_pending_for_user(user_id)
