"""
Validation endpoint.
"""
import time
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from reach_planning.api.deps import get_db, get_request_id
from reach_planning.models.schemas.sessions import SessionIdRequest
from reach_planning.services.session_store import SessionStore
from reach_planning.services.validation_pipeline import run_validation
from reach_planning.utils import get_logger

router = APIRouter()
logger = get_logger(__name__)

@router.post(
    "",
    summary="Validate an uploaded session"
)
def validate_session(
    payload: SessionIdRequest,
    db: Session = Depends(get_db),
    request_id: str = Depends(get_request_id)
) -> dict:
    """Run field, relational and game plan cross-reference checks.

    Returns the summary, the first issues, the field mapping and whether the
    session may be imported.
    """
    start_time = time.time()
    result = run_validation(db, SessionStore(db), payload.session_id)
    logger.info(
        "Validation request completed",
        session_id=payload.session_id,
        critical=result.summary.critical,
        can_import=result.can_import,
        process_time_ms=round((time.time() - start_time) * 1000, 2),
        request_id=request_id
    )
    return result.to_wire()
