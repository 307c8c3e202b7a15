"""Payment reminder selection - fixed look-ahead thresholds against next-payment due dates"""

from datetime import date
from typing import Dict, Iterable
from offer_gateway.domain.models import Notification, NotificationTemplate, Reminder
from offer_gateway.utils.date_utils import add_days, format_long_date


def reminder_due_dates(today: date, thresholds_days: Iterable[int]) -> Dict[date, int]:
    """
    Map each due date that should trigger a reminder today to its threshold.

    Matching is exact: with thresholds [1, 7, 30] only payments due exactly
    tomorrow, in a week or in thirty days are reminded, never the days between.
    """
    return {add_days(today, days): days for days in sorted(set(thresholds_days))}


def reminder_notification(reminder: Reminder) -> Notification:
    """Build the buyer-facing reminder message"""
    due_date = format_long_date(reminder.expires_on)
    return Notification(
        template_key=NotificationTemplate.PAYMENT_REMINDER,
        recipient=reminder.buyer_id,
        context={
            "offer_id": str(reminder.offer_id),
            "property_name": reminder.property_name,
            "due_date": due_date,
            "expected_amount": reminder.expected_amount,
            "days_until_due": reminder.days_until_due,
            "content_top": (
                f"This is a quick reminder that the periodic payment on your property "
                f"{reminder.property_name}, is due on {due_date}."
            ),
        },
    )
