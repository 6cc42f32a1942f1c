"""Per-guest reconciliation of an accepted batch.

The synchronous accept is binding. The follow-up status query only refines
it: if it cannot be completed the batch stays accepted, unconfirmed.
"""
import logging
import time
from typing import Callable

from ..errors import StatusQueryError, TransportError
from ..models.schemas import ReconciliationResult, ReconciliationState
from .ses_client import SesClient

logger = logging.getLogger(__name__)


def unconfirmed(guest_count: int, diagnostic: str) -> ReconciliationResult:
    return ReconciliationResult(
        state=ReconciliationState.ACCEPTED_UNCONFIRMED,
        acceptedCount=guest_count,
        rejectedCount=0,
        diagnostic=diagnostic,
    )


class Reconciler:
    def __init__(self, client: SesClient, delay: float = 5.0, sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.delay = delay
        self._sleep = sleep

    def reconcile(self, batch_id: str, guest_count: int, wait: bool = True) -> ReconciliationResult:
        """Query the batch and count rejected guests.

        ``wait`` gives SES time to index a batch that was just accepted.
        """
        if wait and self.delay > 0:
            self._sleep(self.delay)

        try:
            report = self.client.query_batch(batch_id)
        except (TransportError, StatusQueryError) as exc:
            logger.warning("Could not reconcile batch %s, keeping optimistic accept: %s", batch_id, exc)
            return unconfirmed(guest_count, str(exc))

        if report.errors:
            rejected = len(report.errors)
            logger.info("Batch %s: %d of %d guests rejected (estado=%s)", batch_id, rejected, guest_count, report.status)
            return ReconciliationResult(
                state=ReconciliationState.CONFIRMED_PARTIAL,
                acceptedCount=max(0, guest_count - rejected),
                rejectedCount=rejected,
                remoteStatus=report.status,
                guestErrors=report.errors,
            )

        logger.info("Batch %s: all %d guests accepted (estado=%s)", batch_id, guest_count, report.status)
        return ReconciliationResult(
            state=ReconciliationState.CONFIRMED_ACCEPTED,
            acceptedCount=guest_count,
            rejectedCount=0,
            remoteStatus=report.status,
        )
