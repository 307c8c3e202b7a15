"""Payment schedule generation for offer repayment terms"""

from typing import List
from offer_gateway.domain.exceptions import ValidationFailureError
from offer_gateway.domain.models import ScheduleEntry
from offer_gateway.utils.date_utils import add_days


def generate_payment_schedule(offer) -> List[ScheduleEntry]:
    """
    Turn offer terms into the ordered list of due installments.

    Accepts anything exposing total_amount_payable, initial_payment,
    periodic_payment, payment_frequency and hand_over_date (an ORM Offer or
    a PaymentTerms dataclass).

    Rules:
    - First installment is the initial payment, due on hand-over
    - Remainder under one period: a single installment of the whole remainder
    - Otherwise ceil(remaining / periodic) full periodic installments, one
      every payment_frequency days; the last one may overshoot the total

    Example:
        total 100000, initial 50000, periodic 10000, every 30 days from D
        → (D, 50000), (D+30, 10000), ... (D+150, 10000)
    """
    start = offer.hand_over_date
    frequency = offer.payment_frequency
    periodic = offer.periodic_payment

    schedule = [ScheduleEntry(date=start, amount=offer.initial_payment)]

    remaining = offer.total_amount_payable - offer.initial_payment
    if remaining <= 0:
        return schedule

    if periodic <= 0:
        raise ValidationFailureError("Periodic payment must be positive while a balance remains")

    if remaining < periodic:
        schedule.append(ScheduleEntry(date=add_days(start, frequency), amount=remaining))
        return schedule

    # Integer ceiling keeps the period count exact for large amounts
    periods = -(-remaining // periodic)
    for i in range(1, periods + 1):
        schedule.append(ScheduleEntry(date=add_days(start, frequency * i), amount=periodic))

    return schedule


def schedule_total(schedule: List[ScheduleEntry]) -> int:
    """Sum of all installment amounts in a schedule"""
    return sum(entry.amount for entry in schedule)
