"""Job and batch bookkeeping around a submission.

A batch record is always left in ``accepted``, ``partially_rejected`` or
``error`` once ``send`` returns.
"""
import logging
from typing import Dict, Iterable, List, Optional

from ..errors import EmptyBatchError, RecordNotFoundError
from ..models.schemas import (
    BatchStatus,
    CommunicationBatch,
    CommunicationBatchRequest,
    CommunicationType,
    ContractMetadata,
    GuestRecord,
    ImportJob,
    ImportJobStatus,
    ReconciliationState,
    RemoteError,
    SendResponse,
    SubmissionOutcome,
    SubmissionState,
)
from .normalizer import normalize_rows
from .rules_engine import validate_guests
from .store import RecordStore
from .submission import SubmissionService
from .xml_builder import build_communication_xml, xml_hash

logger = logging.getLogger(__name__)


def _errors(errors: List[RemoteError]) -> List[Dict[str, str]]:
    return [e.model_dump() for e in errors]


class Dispatcher:
    def __init__(self, store: RecordStore, service: SubmissionService, establishment_code: str):
        self.store = store
        self.service = service
        self.establishment_code = establishment_code

    def ingest(
        self,
        rows: Iterable[Dict[str, str]],
        filename: str,
        communication_type: CommunicationType = CommunicationType.TRAVELER_REPORT,
        contract: Optional[ContractMetadata] = None,
    ) -> ImportJob:
        """Normalize and validate rows and store them as a new import job."""
        guests = normalize_rows(rows)
        result = validate_guests(guests)
        status = ImportJobStatus.VALIDATED if result.validCount else ImportJobStatus.ERROR
        job = self.store.create_job(
            filename=filename,
            rowCount=result.totalRows,
            validCount=result.validCount,
            errorCount=result.errorCount,
            status=status,
            communicationType=communication_type,
            contract=contract or ContractMetadata(),
            guests=guests,
            validationResult=result,
        )
        logger.info(
            "Ingested %s: %d rows, %d valid, %d with errors, %d warnings",
            filename, result.totalRows, result.validCount, result.errorCount, result.warningCount,
        )
        return job

    def _job(self, job_id: str) -> ImportJob:
        job = self.store.get_job(job_id)
        if job is None:
            raise RecordNotFoundError(f"Job {job_id} no encontrado", record_id=job_id)
        return job

    def _mark_jobs(self, job_ids: List[str], status: ImportJobStatus) -> None:
        for job_id in job_ids:
            self.store.update_job(job_id, status=status)

    def collect_guests(self, jobs: List[ImportJob], guest_indices: Optional[List[int]] = None) -> List[GuestRecord]:
        """Valid guests of every job, optionally only those at ``guest_indices``.

        Indices that point at a row with validation errors are skipped.
        """
        indices = set(guest_indices) if guest_indices is not None else None
        guests: List[GuestRecord] = []
        for job in jobs:
            if job.validationResult is None:
                continue
            valid = job.validationResult.validGuests
            if indices is not None:
                wanted = {g.rowNumber for i, g in enumerate(job.guests) if i in indices}
                valid = [g for g in valid if g.rowNumber in wanted]
            guests.extend(valid)
        return guests

    def build_request(self, jobs: List[ImportJob], guests: List[GuestRecord]) -> CommunicationBatchRequest:
        # Contract data comes from the first job
        first = jobs[0]
        return CommunicationBatchRequest(
            establishmentCode=self.establishment_code,
            communicationType=first.communicationType,
            guests=guests,
            contract=first.contract,
        )

    def send(self, job_ids: List[str], guest_indices: Optional[List[int]] = None) -> SendResponse:
        """Submit the guests of one or more jobs as a single communication.

        Raises:
            RecordNotFoundError: a job id is unknown
            EmptyBatchError: nothing to send
        """
        jobs = [self._job(job_id) for job_id in job_ids]
        guests = self.collect_guests(jobs, guest_indices)
        if not guests:
            raise EmptyBatchError("No hay registros válidos para enviar")

        request = self.build_request(jobs, guests)
        xml = build_communication_xml(request)

        batch = self.store.create_batch(
            importJobId=jobs[0].id,
            sourceJobIds=list(job_ids),
            type=request.communicationType,
            status=BatchStatus.PENDING,
            xmlHash=xml_hash(xml),
            itemCount=len(guests),
        )
        self.store.update_batch(batch.id, status=BatchStatus.PROCESSING, apiResponse={"sources": job_ids})
        self._mark_jobs(job_ids, ImportJobStatus.SENDING)

        try:
            outcome = self.service.send(request, xml)
        except Exception as exc:
            logger.exception("Unexpected failure sending batch %s", batch.id)
            outcome = SubmissionOutcome(
                success=False,
                state=SubmissionState.FAILED,
                errors=[RemoteError(code="INTERNAL_ERROR", message=str(exc))],
                guestCount=len(guests),
            )

        if not outcome.success:
            batch = self.store.update_batch(
                batch.id,
                status=BatchStatus.ERROR,
                sesBatchId=outcome.batchId,
                apiResponse={"errors": _errors(outcome.errors), "raw": outcome.rawResponse, "sources": job_ids},
            )
            self._mark_jobs(job_ids, ImportJobStatus.ERROR)
            return SendResponse(success=False, batch=batch, outcome=outcome, xml=xml.decode("utf-8"))

        self.store.update_batch(
            batch.id,
            status=BatchStatus.ACCEPTED,
            sesBatchId=outcome.batchId,
            acceptedCount=len(guests),
            apiResponse={"raw": outcome.rawResponse, "sources": job_ids},
        )
        self._mark_jobs(job_ids, ImportJobStatus.SENT)

        outcome = self.service.reconcile(outcome)
        batch = self._apply_reconciliation(batch.id, outcome.acceptedCount, outcome.rejectedCount,
                                           outcome.reconciliation, outcome.guestErrors)
        if batch.status is BatchStatus.PARTIALLY_REJECTED:
            self._mark_jobs(job_ids, ImportJobStatus.PARTIAL_ERROR)
        return SendResponse(success=True, batch=batch, outcome=outcome, xml=xml.decode("utf-8"))

    def _apply_reconciliation(
        self,
        batch_id: str,
        accepted: int,
        rejected: int,
        state: Optional[ReconciliationState],
        guest_errors: List[RemoteError],
    ) -> CommunicationBatch:
        current = self.store.get_batch(batch_id)
        api_response = dict(current.apiResponse) if current else {}
        if guest_errors:
            api_response["guestErrors"] = _errors(guest_errors)
        status = BatchStatus.PARTIALLY_REJECTED if rejected else BatchStatus.ACCEPTED
        return self.store.update_batch(
            batch_id,
            status=status,
            acceptedCount=accepted,
            rejectedCount=rejected,
            reconciliation=state,
            apiResponse=api_response,
        )

    def refresh(self, batch_id: str) -> CommunicationBatch:
        """Query SES again for an accepted batch and store confirmed counts.

        An unconfirmed answer leaves the stored batch untouched.
        """
        batch = self.store.get_batch(batch_id)
        if batch is None:
            raise RecordNotFoundError(f"Batch {batch_id} not found", record_id=batch_id)
        if not batch.sesBatchId or batch.status is BatchStatus.ERROR:
            return batch

        result = self.service.check_batch_status(batch.sesBatchId, batch.itemCount)
        if result.state is ReconciliationState.ACCEPTED_UNCONFIRMED:
            return batch
        batch = self._apply_reconciliation(
            batch.id, result.acceptedCount, result.rejectedCount, result.state, result.guestErrors
        )
        job_status = (
            ImportJobStatus.PARTIAL_ERROR if batch.status is BatchStatus.PARTIALLY_REJECTED else ImportJobStatus.SENT
        )
        self._mark_jobs(batch.sourceJobIds or [batch.importJobId], job_status)
        return batch
