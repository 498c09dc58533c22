"""
Import trigger, progress and cancellation endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from reach_planning.api.deps import get_import_worker, get_request_id, get_session_store
from reach_planning.jobs.worker_import import ImportWorker
from reach_planning.models.db.enums import JobState, SessionStatus
from reach_planning.models.schemas.base import ResponseBase
from reach_planning.models.schemas.sessions import (
    ImportProgress,
    ImportTriggerResponse,
    ProgressResponse,
    SessionIdRequest,
)
from reach_planning.services.session_store import SessionStore
from reach_planning.utils import get_logger, log_business_event

router = APIRouter()
logger = get_logger(__name__)

@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start importing a validated session"
)
def trigger_import(
    payload: SessionIdRequest,
    store: SessionStore = Depends(get_session_store),
    worker: ImportWorker = Depends(get_import_worker),
    request_id: str = Depends(get_request_id)
) -> dict:
    """Moves the session to ``importing`` and returns immediately.

    Poll ``/import/progress`` for the outcome.
    """
    session_id = payload.session_id
    store.begin_import(session_id)
    try:
        record = worker.submit(session_id, correlation_id=request_id)
    except (OverflowError, RuntimeError, ValueError) as e:
        store.mark_error(session_id, f"Import could not be queued: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Import queue not available"
        )
    log_business_event("import_requested", {"job_id": record.job_id}, session_id=session_id, request_id=request_id)
    return ImportTriggerResponse(session_id=session_id, job_id=record.job_id).to_wire()

@router.post(
    "/progress",
    summary="Get import progress"
)
def import_progress(
    payload: SessionIdRequest,
    store: SessionStore = Depends(get_session_store)
) -> dict:
    session = store.get(payload.session_id)
    result = ProgressResponse(
        progress=ImportProgress.model_validate(session.import_progress or {}),
        status=session.status,
        errors=session.import_errors or None,
        results=session.import_results,
    )
    return result.to_wire()

@router.post(
    "/cancel",
    response_model=ResponseBase,
    summary="Cancel a queued or running import"
)
def cancel_import(
    payload: SessionIdRequest,
    store: SessionStore = Depends(get_session_store),
    worker: ImportWorker = Depends(get_import_worker),
    request_id: str = Depends(get_request_id)
) -> ResponseBase:
    session = store.get(payload.session_id, touch=False)
    record = None
    if SessionStatus(session.status) == SessionStatus.IMPORTING:
        record = worker.cancel(payload.session_id)
    if record is None or record.state not in (JobState.QUEUED, JobState.RUNNING, JobState.CANCELLED):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Session {payload.session_id} has no import in progress"
        )
    logger.info("Import cancel requested", session_id=payload.session_id, job_id=record.job_id, request_id=request_id)
    return ResponseBase(
        message="Import cancellation requested",
        data=record.to_dict()
    )
