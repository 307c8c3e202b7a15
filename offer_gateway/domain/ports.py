"""Interfaces of the collaborators the offer engine depends on"""

import uuid
from typing import Any, Dict, Optional, Protocol
from offer_gateway.domain.models import EnquiryInfo, PropertyInfo


class PropertyLookup(Protocol):
    def get_by_id(self, property_id: uuid.UUID) -> PropertyInfo:
        """Raises NotFoundError when the property does not exist"""
        ...


class EnquiryLookup(Protocol):
    def get_by_id(self, enquiry_id: uuid.UUID) -> EnquiryInfo:
        """Raises NotFoundError when the enquiry does not exist"""
        ...

    def set_approved(self, enquiry_id: uuid.UUID, approved: bool, by: Optional[str] = None) -> None:
        ...


class LedgerQuery(Protocol):
    def total_paid(self, offer_id: uuid.UUID) -> int:
        """Sum of confirmed payments recorded against the offer"""
        ...


class NotificationSink(Protocol):
    async def send(self, template_key: str, recipient: str, context: Dict[str, Any]) -> None:
        ...
