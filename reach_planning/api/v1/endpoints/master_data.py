"""
Read-only master data endpoint.
"""
import time
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from reach_planning.api.deps import get_db
from reach_planning.models.schemas.base import ResponseBase
from reach_planning.services.master_data import MasterDataCache
from reach_planning.utils import log_performance

router = APIRouter()

@router.get(
    "",
    response_model=ResponseBase,
    summary="Master data names and relationship maps"
)
def get_master_data(db: Session = Depends(get_db)) -> ResponseBase:
    """Normalised names per entity plus the pairing maps used by validation."""
    start_time = time.time()
    snapshot = MasterDataCache(db).load()
    log_performance("master_data_endpoint", (time.time() - start_time) * 1000)
    return ResponseBase(message="Master data snapshot", data=snapshot.to_dict())
