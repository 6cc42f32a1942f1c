from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..errors import EmptyBatchError, RecordNotFoundError
from ..models.schemas import CommunicationBatch, CommunicationBatchRequest, PreviewRequest, SendRequest, SendResponse
from ..services.dispatcher import Dispatcher
from ..services.xml_builder import build_communication_xml
from .deps import get_dispatcher

router = APIRouter()


@router.post("/send", response_model=SendResponse)
def send_jobs(req: SendRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    job_ids = list(req.jobIds)
    if req.jobId and req.jobId not in job_ids:
        job_ids.append(req.jobId)
    if not job_ids:
        raise HTTPException(status_code=400, detail="jobId o jobIds es obligatorio")
    try:
        return dispatcher.send(job_ids, req.guestIndices)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except EmptyBatchError as exc:
        raise HTTPException(status_code=400, detail=exc.message)


@router.get("/batches/{batch_id}", response_model=CommunicationBatch)
def get_batch(batch_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)):
    batch = dispatcher.store.get_batch(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


@router.post("/batches/{batch_id}/refresh", response_model=CommunicationBatch)
def refresh_batch(batch_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)):
    try:
        return dispatcher.refresh(batch_id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)


@router.post("/preview_xml")
def preview_xml(req: PreviewRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Communication document exactly as it would be compressed and sent."""
    if not req.guests:
        raise HTTPException(status_code=400, detail="No hay huéspedes")
    request = CommunicationBatchRequest(
        establishmentCode=req.establishmentCode or dispatcher.establishment_code,
        communicationType=req.communicationType,
        guests=req.guests,
        contract=req.contract,
    )
    return Response(content=build_communication_xml(request), media_type="application/xml")
