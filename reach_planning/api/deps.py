"""
Dependencies for database sessions, the session store and the import worker.
"""
from typing import Generator
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from reach_planning import database
from reach_planning.jobs.worker_import import ImportWorker
from reach_planning.services.session_store import SessionStore
from reach_planning.utils import get_logger

logger = get_logger(__name__)

def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    Ensures proper session lifecycle management with automatic cleanup.

    Yields:
        Session: SQLAlchemy database session
    """
    db = database.SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error("Database session error", error=str(e), exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()

def get_session_store(db: Session = Depends(get_db)) -> SessionStore:
    return SessionStore(db)

def get_import_worker(request: Request) -> ImportWorker:
    """Worker started by the application lifespan (exposed on ``app.state``)."""
    worker = getattr(request.app.state, "import_worker", None)
    if worker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Import worker not available"
        )
    return worker

def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID", "unknown")
