"""Ledger API HTTP client for confirmed payment totals"""

import uuid
import httpx
from offer_gateway.domain.exceptions import InternalFailureError
from offer_gateway.config import settings
from offer_gateway.infrastructure.observability.metrics import ledger_failure_counter


class LedgerClient:
    """Client for the external payment ledger"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url or settings.ledger_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def total_paid(self, offer_id: uuid.UUID) -> int:
        """
        Fetch the sum of confirmed payments recorded against an offer.

        Raises:
            InternalFailureError: On timeout, HTTP errors, or invalid response
        """
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = client.get(f"{self.base_url}/ledger/offers/{offer_id}/total")
                response.raise_for_status()
                data = response.json()

                total = int(data["total_paid"])
                if total < 0:
                    raise ValueError(f"negative total {total}")
                return total

            except httpx.TimeoutException as e:
                ledger_failure_counter.inc()
                raise InternalFailureError(f"Ledger API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                ledger_failure_counter.inc()
                raise InternalFailureError(f"Ledger API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                ledger_failure_counter.inc()
                raise InternalFailureError(f"Ledger API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                ledger_failure_counter.inc()
                raise InternalFailureError(f"Invalid ledger total: {e}") from e
