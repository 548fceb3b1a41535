from typing import List

from fastapi import APIRouter, Depends, HTTPException

from studiodesk.api import schemas
from studiodesk.api.dependencies import get_progress_engine
from studiodesk.errors import NotFoundError, ValidationError
from studiodesk.services.progress import ProgressEngine

router = APIRouter(prefix="/protocols", tags=["Protocols"])


@router.get("", response_model=List[schemas.ProtocolOut])
def list_protocols(engine: ProgressEngine = Depends(get_progress_engine)):
    return [p.to_dict() for p in engine.list_protocols()]


@router.get("/summary", response_model=schemas.ProtocolSummaryOut)
def protocol_summary(engine: ProgressEngine = Depends(get_progress_engine)):
    """Counts per status and mean progress over all protocols."""
    return engine.summary().to_dict()


@router.get("/meta", response_model=List[schemas.ProtocolMeta])
def list_protocol_meta(engine: ProgressEngine = Depends(get_progress_engine)):
    return engine.list_meta()


@router.put("/meta", response_model=List[schemas.ProtocolMeta])
def update_protocol_meta(
    request: List[schemas.ProtocolMetaUpdate],
    engine: ProgressEngine = Depends(get_progress_engine),
):
    """Bulk-edit admin fields; ids that do not exist are skipped."""
    try:
        return engine.update_meta([item.model_dump(exclude_unset=True) for item in request])
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/{protocol_id}", response_model=schemas.ProtocolOut)
def get_protocol(protocol_id: int, engine: ProgressEngine = Depends(get_progress_engine)):
    try:
        return engine.get_protocol(protocol_id).to_dict()
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Protocol not found")


@router.put("/{protocol_id}/status", response_model=schemas.ProtocolOut)
def update_protocol_status(
    protocol_id: int,
    request: schemas.ProtocolStatusUpdate,
    engine: ProgressEngine = Depends(get_progress_engine),
):
    try:
        return engine.update_status(protocol_id, request.model_dump(exclude_unset=True)).to_dict()
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Protocol not found")
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
