"""Next-due payment computation - derives what an offer owes next from the ledger total"""

from datetime import date
from typing import List, Optional, Tuple
from offer_gateway.domain.models import NextDue, ScheduleEntry
from offer_gateway.utils.date_utils import add_days


def select_due_entries(
    schedule: List[ScheduleEntry],
    total_paid: int,
    payment_frequency: int,
    today: date,
) -> Tuple[List[ScheduleEntry], int]:
    """
    Walk the schedule and pick the installments currently expected.

    An installment is selected when:
    - its due window is open: (due date - payment_frequency) <= today, or
    - the ledger already covers everything selected before it, which pulls
      the next milestone forward for buyers paying ahead of schedule

    The first installment is always selected (nothing precedes it).

    Returns:
        (selected installments in schedule order, their summed amount)
    """
    selected: List[ScheduleEntry] = []
    expected_total = 0

    for entry in schedule:
        window_open = add_days(entry.date, -payment_frequency) <= today
        covered_so_far = total_paid >= expected_total

        if not (window_open or covered_so_far):
            # Later entries open later and the running total cannot shrink
            break

        selected.append(entry)
        expected_total += entry.amount

    return selected, expected_total


def earliest_uncovered(selected: List[ScheduleEntry], total_paid: int) -> ScheduleEntry:
    """First selected installment the ledger total has not fully paid"""
    running = 0
    for entry in selected:
        running += entry.amount
        if running > total_paid:
            return entry
    return selected[-1]


def compute_next_due(
    schedule: List[ScheduleEntry],
    total_paid: int,
    total_amount_payable: int,
    periodic_payment: int,
    payment_frequency: int,
    today: date,
) -> Optional[NextDue]:
    """
    Derive the single next expected payment for an offer.

    Requirements:
    - No next payment once the ledger reaches total_amount_payable
    - Expected amount = selected total - total paid, capped at the
      outstanding balance (absorbs the schedule's final overshoot)
    - A zero balance against the selection falls back to periodic_payment
    - Due date = earliest selected milestone not yet covered by the ledger

    Deterministic: identical inputs always give an identical result.

    Example:
        schedule (D, 50000), (D+30, 10000) ... every 30 days, nothing paid,
        today D+29 → NextDue(expected_amount=60000, expires_on=D)
    """
    if total_paid >= total_amount_payable:
        return None

    selected, expected_total = select_due_entries(schedule, total_paid, payment_frequency, today)
    outstanding = total_amount_payable - total_paid

    expected_amount = min(expected_total - total_paid, outstanding)
    if expected_amount <= 0:
        expected_amount = min(periodic_payment, outstanding)

    return NextDue(
        expected_amount=expected_amount,
        expires_on=earliest_uncovered(selected, total_paid).date,
    )
