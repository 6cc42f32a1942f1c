from fastapi import APIRouter, Depends, HTTPException

from ..models.schemas import ImportJob, IngestRequest
from ..services.dispatcher import Dispatcher
from .deps import get_dispatcher

router = APIRouter()


@router.post("/jobs", response_model=ImportJob)
def ingest_rows(req: IngestRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    # Rows arrive already parsed; the spreadsheet itself is read client-side
    return dispatcher.ingest(req.rows, req.filename, req.communicationType, req.contract)


@router.get("/jobs/{job_id}", response_model=ImportJob)
def get_job(job_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)):
    job = dispatcher.store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
