"""Submission state machine: built -> sending -> accepted/failed -> reconciling."""
import logging
import time
from typing import Callable, Optional

import httpx

from ..config import Settings
from ..errors import ConfigurationError, TransportError
from ..models.schemas import (
    CommunicationBatchRequest,
    ReconciliationResult,
    RemoteError,
    SubmissionOutcome,
    SubmissionState,
)
from .reconciliation import Reconciler, unconfirmed
from .ses_client import SesClient, TransportConfig, classify_response

logger = logging.getLogger(__name__)

CONFIG_ERROR = "CONFIG_ERROR"


def _failed(code: str, message: str, guest_count: int, raw: Optional[str] = None) -> SubmissionOutcome:
    return SubmissionOutcome(
        success=False,
        state=SubmissionState.FAILED,
        errors=[RemoteError(code=code, message=message)],
        rawResponse=raw,
        guestCount=guest_count,
    )


class SubmissionService:
    """Sends one batch per call; never retries.

    A retried call is a new, independent submission on the remote side.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.transport = transport
        self._sleep = sleep

    def client(self) -> SesClient:
        config = TransportConfig.from_settings(self.settings, transport=self.transport)
        return SesClient(config, self.settings.lessor_code, self.settings.application)

    def send(self, request: CommunicationBatchRequest, xml: Optional[bytes] = None) -> SubmissionOutcome:
        """Encode, transmit and classify; does not reconcile."""
        guest_count = len(request.guests)
        try:
            client = self.client()
        except ConfigurationError as exc:
            logger.error("Submission aborted, missing configuration: %s", exc.setting_name)
            return _failed(CONFIG_ERROR, f"{exc.message} ({exc.setting_name})", guest_count)

        envelope = client.build_envelope(request, xml)
        logger.info(
            "Submission %s: %d guests, type %s, environment %s",
            SubmissionState.BUILT.value, guest_count, request.communicationType.tag, self.settings.environment,
        )

        logger.info("Submission %s to %s", SubmissionState.SENDING.value, client.config.endpoint)
        try:
            raw = client.post(envelope)
        except TransportError as exc:
            logger.error("Submission failed in transport: %s", exc)
            return _failed(exc.code, str(exc), guest_count)

        classification = classify_response(raw)
        if not classification.success:
            logger.warning(
                "Submission rejected (%s): %s",
                classification.kind.value,
                "; ".join(f"{e.code} {e.message}" for e in classification.errors),
            )
            return SubmissionOutcome(
                success=False,
                state=SubmissionState.FAILED,
                batchId=classification.batch_id,
                errors=classification.errors,
                rawResponse=raw,
                guestCount=guest_count,
            )

        logger.info("Submission %s, batch %s", SubmissionState.ACCEPTED.value, classification.batch_id)
        return SubmissionOutcome(
            success=True,
            state=SubmissionState.ACCEPTED,
            batchId=classification.batch_id,
            rawResponse=raw,
            guestCount=guest_count,
            acceptedCount=guest_count,
        )

    def check_batch_status(self, batch_id: str, guest_count: int, wait: bool = False) -> ReconciliationResult:
        try:
            client = self.client()
        except ConfigurationError as exc:
            logger.warning("Cannot query batch %s: %s", batch_id, exc)
            return unconfirmed(guest_count, str(exc))
        reconciler = Reconciler(client, delay=self.settings.reconcile_delay, sleep=self._sleep)
        return reconciler.reconcile(batch_id, guest_count, wait=wait)

    def reconcile(self, outcome: SubmissionOutcome) -> SubmissionOutcome:
        """Refine an accepted outcome with per-guest results; failures are left as they are."""
        if not outcome.success:
            return outcome
        if not outcome.batchId:
            result = unconfirmed(outcome.guestCount, "No batch identifier in the response")
        else:
            logger.info("Submission %s, batch %s", SubmissionState.RECONCILING.value, outcome.batchId)
            result = self.check_batch_status(outcome.batchId, outcome.guestCount, wait=True)

        state = SubmissionState.PARTIALLY_REJECTED if result.rejectedCount else SubmissionState.ACCEPTED
        return outcome.model_copy(update={
            "state": state,
            "acceptedCount": result.acceptedCount,
            "rejectedCount": result.rejectedCount,
            "guestErrors": result.guestErrors,
            "reconciliation": result.state,
        })

    def submit(self, request: CommunicationBatchRequest) -> SubmissionOutcome:
        return self.reconcile(self.send(request))
