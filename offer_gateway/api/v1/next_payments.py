"""Next payment endpoints - ledger-driven recompute, pending list, reminder and roll-over jobs"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends
from sqlalchemy.orm import Session

from offer_gateway.api.dependencies import (
    get_caller_id,
    get_clock,
    get_ledger_client,
    get_notification_client,
    parse_uuid,
)
from offer_gateway.api.v1.schemas import (
    NextPaymentSchema,
    PendingNextPaymentsResponse,
    RecomputeRequest,
    RecomputeResponse,
    ReminderSchema,
    ReminderSweepResponse,
    RollOverResponse,
)
from offer_gateway.domain.ports import LedgerQuery, NotificationSink
from offer_gateway.infrastructure.clients.notifications import dispatch_notifications
from offer_gateway.infrastructure.database.models import NextPayment
from offer_gateway.infrastructure.database.session import get_db
from offer_gateway.services.next_payments import NextPaymentService, RecomputeResult
from offer_gateway.utils.date_utils import ensure_utc

router = APIRouter()


def next_payment_schema(record: NextPayment) -> NextPaymentSchema:
    return NextPaymentSchema(
        next_payment_id=str(record.id),
        offer_id=str(record.offer_id),
        expected_amount=record.expected_amount,
        expires_on=record.expires_on,
        resolved=record.resolved,
        resolved_date=ensure_utc(record.resolved_date).isoformat() if record.resolved_date else None,
        resolved_via_transaction=record.resolved_via_transaction,
        transaction_id=record.transaction_id,
    )


def recompute_response(result: RecomputeResult) -> RecomputeResponse:
    return RecomputeResponse(
        offer_id=str(result.offer.id),
        offer_status=result.offer.status.value,
        total_paid=result.total_paid,
        next_payment=next_payment_schema(result.next_payment) if result.next_payment else None,
    )


@router.post("/offers/{offer_id}/next-payment", response_model=RecomputeResponse)
def recompute_next_payment(
    offer_id: str,
    request_body: Optional[RecomputeRequest] = Body(None),
    caller_id: str = Depends(get_caller_id),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
    ledger: LedgerQuery = Depends(get_ledger_client),
):
    """
    Recompute the offer's next payment after a confirmed ledger change.

    Returns:
        The new active next payment, or none once the offer is fully paid
    """
    transaction_id = request_body.transaction_id if request_body else None
    result = NextPaymentService(db, ledger).recompute(
        parse_uuid(offer_id, "offer"), transaction_id=transaction_id, now=now
    )
    return recompute_response(result)


@router.get("/next-payments", response_model=PendingNextPaymentsResponse)
def get_pending_next_payments(
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
    ledger: LedgerQuery = Depends(get_ledger_client),
):
    """Active next payments where the caller is buyer or seller"""
    records = NextPaymentService(db, ledger).pending_for_user(caller_id)
    return PendingNextPaymentsResponse(
        user_id=caller_id,
        next_payments=[next_payment_schema(record) for record in records],
    )


@router.post("/next-payments/reminders", response_model=ReminderSweepResponse)
def run_reminder_sweep(
    background_tasks: BackgroundTasks,
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
    ledger: LedgerQuery = Depends(get_ledger_client),
    sink: NotificationSink = Depends(get_notification_client),
):
    """Daily reminder job, triggered by an external scheduler"""
    sweep = NextPaymentService(db, ledger).run_reminder_sweep(now=now)
    if sweep.notifications:
        background_tasks.add_task(dispatch_notifications, sink, sweep.notifications)

    return ReminderSweepResponse(
        reminders=[
            ReminderSchema(
                next_payment_id=str(reminder.next_payment_id),
                offer_id=str(reminder.offer_id),
                buyer_id=reminder.buyer_id,
                property_name=reminder.property_name,
                expected_amount=reminder.expected_amount,
                expires_on=reminder.expires_on,
                days_until_due=reminder.days_until_due,
            )
            for reminder in sweep.reminders
        ]
    )


@router.post("/next-payments/roll-over", response_model=RollOverResponse)
def roll_over_expired(
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
    ledger: LedgerQuery = Depends(get_ledger_client),
):
    """Daily job refreshing next payments whose due date has passed"""
    results = NextPaymentService(db, ledger).roll_over_expired(now=now)
    return RollOverResponse(rolled_over=[recompute_response(result) for result in results])
