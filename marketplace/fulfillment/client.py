"""
Print partner client using httpx sync client.
Sync interface for Celery workers; calls go through the "print_partner" circuit breaker.
"""
import logging
import time

import httpx
import pybreaker
from pydantic import BaseModel, ConfigDict

from marketplace.core.config import settings
from marketplace.ledger.errors import FulfillmentError
from marketplace.services.circuit_breaker import get_circuit_breaker
from marketplace.utils.metrics import print_partner_request_duration_seconds

logger = logging.getLogger(__name__)

PRINT_PARTNER_BREAKER = "print_partner"


def is_partner_rejection(exc: BaseException) -> bool:
    """4xx: the partner is up but refused this job; not an outage."""
    return isinstance(exc, httpx.HTTPStatusError) and 400 <= exc.response.status_code < 500


class PrintJob(BaseModel):
    """Payload for one print line. line_id doubles as the partner-side idempotency key."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    line_id: str
    asset_id: str
    asset_url: str
    medium: str
    width_inches: float
    height_inches: float
    quantity: int


class PrintPartnerClient:
    def __init__(self) -> None:
        self._base_url = settings.print_partner_api_url.rstrip("/")
        self._api_key = settings.print_partner_api_key
        self._timeout = settings.print_partner_timeout
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        return self._client

    def _post_job(self, job: PrintJob) -> dict:
        resp = self.client.post(
            "/jobs",
            json=job.model_dump(),
            headers={"Idempotency-Key": job.line_id},
        )
        resp.raise_for_status()
        return resp.json()

    def submit_job(self, job: PrintJob) -> str:
        """Submit a print job; returns the partner's job reference. Raises FulfillmentError."""
        start = time.time()
        try:
            breaker = get_circuit_breaker(PRINT_PARTNER_BREAKER, exclude=[is_partner_rejection])
            data = breaker.call(self._post_job, job)
        except pybreaker.CircuitBreakerError as e:
            raise FulfillmentError("Print partner unavailable (circuit open)") from e
        except httpx.HTTPStatusError as e:
            raise FulfillmentError(f"Print partner rejected job: HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise FulfillmentError(f"Print partner request failed: {type(e).__name__}") from e
        finally:
            print_partner_request_duration_seconds.observe(time.time() - start)

        reference = data.get("job_id") if isinstance(data, dict) else None
        if not reference:
            raise FulfillmentError("Print partner response has no job_id")
        logger.info("print_job_submitted", extra={"line_id": job.line_id, "order_id": job.order_id})
        return str(reference)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
