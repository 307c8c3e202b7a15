"""Unit tests for reminder threshold selection"""

import uuid
from datetime import date
from offer_gateway.domain.models import NotificationTemplate, Reminder
from offer_gateway.domain.reminders import reminder_due_dates, reminder_notification
from offer_gateway.utils.date_utils import format_long_date


def test_due_dates_match_thresholds_exactly():
    due_dates = reminder_due_dates(date(2020, 3, 24), [1, 7, 30])

    assert due_dates == {
        date(2020, 3, 25): 1,
        date(2020, 3, 31): 7,
        date(2020, 4, 23): 30,
    }
    assert date(2020, 3, 26) not in due_dates


def test_duplicate_thresholds_collapse():
    assert reminder_due_dates(date(2020, 3, 24), [7, 7, 1]) == {
        date(2020, 3, 25): 1,
        date(2020, 3, 31): 7,
    }


def test_long_date_format():
    assert format_long_date(date(2020, 3, 25)) == "25 March 2020"
    assert format_long_date(date(2021, 1, 5)) == "5 January 2021"


def test_reminder_notification_goes_to_buyer():
    offer_id = uuid.uuid4()
    reminder = Reminder(
        next_payment_id=uuid.uuid4(),
        offer_id=offer_id,
        buyer_id="buyer-1",
        property_name="Lekki Ville Estate",
        expected_amount=500000,
        expires_on=date(2020, 3, 31),
        days_until_due=7,
    )

    notification = reminder_notification(reminder)

    assert notification.template_key == NotificationTemplate.PAYMENT_REMINDER
    assert notification.recipient == "buyer-1"
    assert notification.context["offer_id"] == str(offer_id)
    assert notification.context["due_date"] == "31 March 2020"
    assert notification.context["expected_amount"] == 500000
    assert "Lekki Ville Estate" in notification.context["content_top"]
