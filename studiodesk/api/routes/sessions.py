from typing import List

from fastapi import APIRouter, Depends, HTTPException

from studiodesk.api import schemas
from studiodesk.api.dependencies import get_progress_engine
from studiodesk.errors import NotFoundError, ValidationError
from studiodesk.services.progress import ProgressEngine

router = APIRouter(prefix="/protocols", tags=["Sessions"])


@router.get("/{protocol_id}/sessions", response_model=List[schemas.SessionOut])
def list_sessions(protocol_id: int, engine: ProgressEngine = Depends(get_progress_engine)):
    """Sessions for a protocol, newest first."""
    return [s.to_dict() for s in engine.list_sessions(protocol_id)]


@router.post("/{protocol_id}/sessions", response_model=schemas.SessionRecorded, status_code=201)
def create_session(
    protocol_id: int,
    request: schemas.SessionCreate,
    engine: ProgressEngine = Depends(get_progress_engine),
):
    """
    Record a scored session and recompute the protocol's progress.

    An unknown protocol yields 404, but the session itself is kept.
    """
    try:
        session, protocol = engine.record_session(protocol_id, request.model_dump(exclude_none=True))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Protocol not found")
    return {"session": session.to_dict(), "protocol": protocol.to_dict()}


@router.post("/{protocol_id}/sessions/basic", response_model=schemas.SessionRecorded, status_code=201)
def create_basic_session(
    protocol_id: int,
    request: schemas.BasicSessionCreate,
    engine: ProgressEngine = Depends(get_progress_engine),
):
    """Record an unscored session with a caller-chosen resulting status."""
    try:
        session, protocol = engine.record_basic_session(protocol_id, request.model_dump(exclude_none=True))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Protocol not found")
    return {"session": session.to_dict(), "protocol": protocol.to_dict()}
