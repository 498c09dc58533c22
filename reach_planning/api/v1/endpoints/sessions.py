"""
Upload session endpoints.
"""
from fastapi import APIRouter, Depends, status
from reach_planning.api.deps import get_request_id, get_session_store
from reach_planning.models.schemas.sessions import SessionCreate, SessionRead
from reach_planning.services.session_store import SessionStore
from reach_planning.utils import get_logger

router = APIRouter()
logger = get_logger(__name__)

@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Store uploaded rows as a new session"
)
def create_session(
    payload: SessionCreate,
    store: SessionStore = Depends(get_session_store),
    request_id: str = Depends(get_request_id)
) -> dict:
    """Rows arrive already parsed, keyed by their column header."""
    session = store.create(
        records=payload.records,
        template=payload.template,
        country_id=payload.country_id,
        cycle_id=payload.financial_cycle_id,
        session_id=payload.session_id,
    )
    logger.info(
        "Upload session created",
        session_id=session.session_id,
        records=len(payload.records),
        template=payload.template,
        request_id=request_id
    )
    return SessionStore.to_read(session).to_wire()

@router.get(
    "/{session_id}",
    summary="Get session document"
)
def get_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store)
) -> dict:
    return SessionStore.to_read(store.get(session_id)).to_wire()
