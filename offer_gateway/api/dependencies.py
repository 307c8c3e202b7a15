"""Dependency injection for FastAPI endpoints"""

import uuid
from datetime import datetime
from typing import Optional
from fastapi import Header, HTTPException, Request
from offer_gateway.infrastructure.clients.ledger import LedgerClient
from offer_gateway.infrastructure.clients.notifications import NotificationClient
from offer_gateway.utils.date_utils import utc_now


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_caller_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Authenticated caller, forwarded by the gateway in X-User-ID"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    return x_user_id


def get_clock() -> datetime:
    return utc_now()


def get_ledger_client() -> LedgerClient:
    """Provide Ledger API client instance"""
    return LedgerClient()


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()


def parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")
