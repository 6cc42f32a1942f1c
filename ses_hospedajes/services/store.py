"""Record store for import jobs and communication batches.

Only single-record read-modify-write is needed: every update loads one
record, applies the changes and writes it back under the store lock.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from ..errors import RecordNotFoundError
from ..models.schemas import CommunicationBatch, ImportJob, utcnow


class RecordStore(Protocol):
    """Storage contract used by the dispatcher.

    Implementations:
    - InMemoryStore - default, process-local
    """

    def create_job(self, **fields: Any) -> ImportJob:
        ...

    def get_job(self, job_id: str) -> Optional[ImportJob]:
        ...

    def update_job(self, job_id: str, **changes: Any) -> ImportJob:
        ...

    def create_batch(self, **fields: Any) -> CommunicationBatch:
        ...

    def get_batch(self, batch_id: str) -> Optional[CommunicationBatch]:
        ...

    def update_batch(self, batch_id: str, **changes: Any) -> CommunicationBatch:
        ...

    def batches_for_job(self, job_id: str) -> List[CommunicationBatch]:
        ...


@dataclass
class InMemoryStore:
    """Thread-safe store that hands out copies, never its own records."""

    _jobs: Dict[str, ImportJob] = field(default_factory=dict, repr=False)
    _batches: Dict[str, CommunicationBatch] = field(default_factory=dict, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def create_job(self, **fields: Any) -> ImportJob:
        job = ImportJob(id=str(uuid.uuid4()), **fields)
        with self._lock:
            self._jobs[job.id] = job
        self._logger.debug("Created import job %s (%d rows)", job.id, job.rowCount)
        return job.model_copy(deep=True)

    def get_job(self, job_id: str) -> Optional[ImportJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def update_job(self, job_id: str, **changes: Any) -> ImportJob:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise RecordNotFoundError(f"Import job {job_id} not found", record_id=job_id)
            updated = current.model_copy(update={**changes, "updatedAt": utcnow()}, deep=True)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    def create_batch(self, **fields: Any) -> CommunicationBatch:
        batch = CommunicationBatch(id=str(uuid.uuid4()), **fields)
        with self._lock:
            self._batches[batch.id] = batch
        self._logger.debug("Created batch %s for job %s", batch.id, batch.importJobId)
        return batch.model_copy(deep=True)

    def get_batch(self, batch_id: str) -> Optional[CommunicationBatch]:
        with self._lock:
            batch = self._batches.get(batch_id)
            return batch.model_copy(deep=True) if batch else None

    def update_batch(self, batch_id: str, **changes: Any) -> CommunicationBatch:
        with self._lock:
            current = self._batches.get(batch_id)
            if current is None:
                raise RecordNotFoundError(f"Batch {batch_id} not found", record_id=batch_id)
            updated = current.model_copy(update={**changes, "updatedAt": utcnow()}, deep=True)
            self._batches[batch_id] = updated
            return updated.model_copy(deep=True)

    def batches_for_job(self, job_id: str) -> List[CommunicationBatch]:
        with self._lock:
            batches = [
                b for b in self._batches.values()
                if b.importJobId == job_id or job_id in b.sourceJobIds
            ]
            batches.sort(key=lambda b: b.createdAt, reverse=True)
            return [b.model_copy(deep=True) for b in batches]
