"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger
from offer_gateway.config import settings

logger = logging.getLogger("offer_gateway")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # Keep SQL echo and HTTP client chatter out of the service log
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_transition(offer_id: Any, transition: str, from_status: str, to_status: str, caller_id: Optional[str] = None) -> None:
    """Log an offer lifecycle transition"""
    logger.info(
        "Offer transition",
        extra={
            "offer_id": str(offer_id),
            "step": transition,
            "from_status": from_status,
            "to_status": to_status,
            "caller_id": caller_id,
        },
    )


def log_next_payment(
    offer_id: Any,
    total_paid: int,
    expected_amount: Optional[int],
    expires_on: Optional[date],
    transaction_id: Optional[str],
) -> None:
    """Log the outcome of a next-payment recomputation"""
    logger.info(
        "Next payment recomputed",
        extra={
            "offer_id": str(offer_id),
            "step": "next_payment_recomputed",
            "total_paid": total_paid,
            "expected_amount": expected_amount,
            "expires_on": expires_on.isoformat() if expires_on else None,
            "transaction_id": transaction_id,
            "outcome": "pending" if expected_amount is not None else "settled",
        },
    )


def log_reminder_sweep(today: date, selected: int) -> None:
    logger.info(
        "Reminder sweep completed",
        extra={"step": "reminder_sweep", "today": today.isoformat(), "reminders": selected},
    )
