"""Durable session documents for the upload -> validate -> import lifecycle.

Status machine::

    uploaded -> validated -> importing -> imported
        \\           \\            \\
         +-----------+------------+-> error

``validated`` may be re-entered (re-validation) from ``validated`` and
``error``. ``imported`` is terminal. Illegal moves raise
``InvalidSessionTransition``.

Every write commits so that pollers on other connections see progress while
an import is running. JSON columns are always reassigned, never mutated in
place, so SQLAlchemy notices the change.
"""
from __future__ import annotations

import secrets
import time
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from reach_planning.config import SESSION_SETTINGS
from reach_planning.exceptions import (
    ImportBlocked,
    InvalidSessionTransition,
    SessionAlreadyExists,
    SessionNotFound,
)
from reach_planning.models.db import ImportSession
from reach_planning.models.db.enums import SessionStatus
from reach_planning.models.schemas.sessions import (
    ImportErrorEntry,
    ImportProgress,
    ImportResults,
    SessionRead,
)
from reach_planning.models.schemas.validation import ValidationSummary
from reach_planning.utils.logger import get_logger, log_business_event
from reach_planning.utils.time import as_aware, expiry_from, utc_now
from .templates import get_template

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.UPLOADED: frozenset({SessionStatus.VALIDATED, SessionStatus.ERROR}),
    SessionStatus.VALIDATED: frozenset({SessionStatus.VALIDATED, SessionStatus.IMPORTING, SessionStatus.ERROR}),
    SessionStatus.IMPORTING: frozenset({SessionStatus.IMPORTED, SessionStatus.ERROR}),
    SessionStatus.ERROR: frozenset({SessionStatus.VALIDATED, SessionStatus.ERROR}),
    SessionStatus.IMPORTED: frozenset(),
}


def generate_session_id() -> str:
    """``reach-planning-<epoch ms>-<8 hex>``"""
    return f"{SESSION_SETTINGS['id_prefix']}{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class SessionStore:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------ lifecycle
    def create(
        self,
        records: List[Dict[str, Any]],
        template: str,
        country_id: Optional[int] = None,
        cycle_id: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> ImportSession:
        get_template(template)
        session_id = session_id or generate_session_id()
        if self.db.get(ImportSession, session_id) is not None:
            raise SessionAlreadyExists(session_id)
        now = utc_now()
        session = ImportSession(
            session_id=session_id,
            template=template,
            country_id=country_id,
            financial_cycle_id=cycle_id,
            status=SessionStatus.UPLOADED,
            records=list(records),
            import_progress=ImportProgress(total=len(records)).to_wire(),
            import_errors=[],
            expires_at=expiry_from(now, int(SESSION_SETTINGS["timeout_hours"])),
        )
        self.db.add(session)
        self.db.commit()
        log_business_event("session_uploaded", {"records": len(records), "template": template},
                           session_id=session_id)
        return session

    def get(self, session_id: str, touch: bool = True) -> ImportSession:
        """Load a live session; expired ones are removed and reported missing.

        ``touch`` slides the expiry window forward.
        """
        session = self.db.get(ImportSession, session_id)
        if session is None:
            raise SessionNotFound(session_id)
        now = utc_now()
        if session.expires_at is not None and as_aware(session.expires_at) < now \
                and session.status != SessionStatus.IMPORTING:
            logger.info("Session expired", session_id=session_id)
            self.db.delete(session)
            self.db.commit()
            raise SessionNotFound(session_id)
        if touch:
            session.expires_at = expiry_from(now, int(SESSION_SETTINGS["timeout_hours"]))
            self.db.commit()
        return session

    def update(self, session_id: str, patch: Dict[str, Any]) -> ImportSession:
        session = self.get(session_id, touch=False)
        for key, value in patch.items():
            if not hasattr(ImportSession, key) or key == "session_id":
                raise AttributeError(f"ImportSession has no updatable field '{key}'")
            setattr(session, key, value)
        self.db.commit()
        return session

    def transition(self, session_id: str, status: SessionStatus) -> ImportSession:
        session = self.get(session_id, touch=False)
        current = SessionStatus(session.status)
        if status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidSessionTransition(session_id, current.value, status.value)
        session.status = status
        if status == SessionStatus.VALIDATED:
            session.validated_at = utc_now()
        self.db.commit()
        logger.info("Session status changed", session_id=session_id, previous=current.value, status=status.value)
        return session

    # ----------------------------------------------------------- validation
    def save_validation(self, session_id: str, issues: List[dict], summary: ValidationSummary) -> ImportSession:
        session = self.get(session_id, touch=False)
        session.validation_issues = list(issues)
        session.validation_summary = summary.to_wire()
        session.error_message = None
        self.db.commit()
        return self.transition(session_id, SessionStatus.VALIDATED)

    # --------------------------------------------------------------- import
    def begin_import(self, session_id: str) -> ImportSession:
        """validated -> importing, only when no critical issue remains.

        Resets progress, errors and results for the new run.
        """
        session = self.get(session_id, touch=False)
        current = SessionStatus(session.status)
        if current != SessionStatus.VALIDATED:
            raise InvalidSessionTransition(session_id, current.value, SessionStatus.IMPORTING.value)
        critical = int((session.validation_summary or {}).get("critical", 0))
        if critical > 0:
            raise ImportBlocked(session_id, critical)
        session.import_progress = ImportProgress(
            current=0, total=len(session.records or []), percentage=0, stage="Starting import"
        ).to_wire()
        session.import_errors = []
        session.import_results = None
        session.error_message = None
        self.db.commit()
        return self.transition(session_id, SessionStatus.IMPORTING)

    def progress(self, session_id: str) -> ImportProgress:
        session = self.get(session_id, touch=False)
        return ImportProgress.model_validate(session.import_progress or {})

    def set_progress(self, session_id: str, progress: ImportProgress) -> ImportProgress:
        """Persist progress; the percentage never moves backwards within a run."""
        session = self.get(session_id, touch=False)
        previous = ImportProgress.model_validate(session.import_progress or {})
        if progress.percentage < previous.percentage:
            progress = progress.model_copy(update={"percentage": previous.percentage})
        session.import_progress = progress.to_wire()
        self.db.commit()
        return progress

    def finish_import(
        self,
        session_id: str,
        results: ImportResults,
        errors: Iterable[ImportErrorEntry],
    ) -> ImportSession:
        session = self.get(session_id, touch=False)
        total = len(session.records or [])
        session.import_results = results.to_wire()
        session.import_errors = [e.to_wire() for e in errors]
        session.import_progress = ImportProgress(
            current=total, total=total, percentage=100, stage="Import completed"
        ).to_wire()
        self.db.commit()
        return self.transition(session_id, SessionStatus.IMPORTED)

    def mark_error(self, session_id: str, message: str, errors: Iterable[ImportErrorEntry] = ()) -> ImportSession:
        """Fatal failure: keep collected row errors and append an ``index=-1`` entry."""
        session = self.get(session_id, touch=False)
        collected = list(session.import_errors or []) + [e.to_wire() for e in errors]
        collected.append(ImportErrorEntry(index=-1, error=message).to_wire())
        session.import_errors = collected
        session.error_message = message
        self.db.commit()
        session = self.transition(session_id, SessionStatus.ERROR)
        log_business_event("session_failed", {"error": message}, session_id=session_id)
        return session

    # ----------------------------------------------------------- housekeeping
    def purge_expired(self) -> int:
        now = utc_now()
        result = self.db.execute(
            delete(ImportSession)
            .where(ImportSession.expires_at.is_not(None))
            .where(ImportSession.expires_at < now)
            .where(ImportSession.status != SessionStatus.IMPORTING)
        )
        self.db.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info("Expired sessions purged", removed=removed)
        return removed

    @staticmethod
    def to_read(session: ImportSession) -> SessionRead:
        return SessionRead(
            session_id=session.session_id,
            template=session.template,
            status=session.status,
            country_id=session.country_id,
            financial_cycle_id=session.financial_cycle_id,
            record_count=len(session.records or []),
            validation_summary=session.validation_summary,
            import_progress=session.import_progress,
            import_errors=session.import_errors or [],
            import_results=session.import_results,
            error_message=session.error_message,
            created_at=session.created_at,
            validated_at=session.validated_at,
            expires_at=session.expires_at,
        )


__all__ = ["ALLOWED_TRANSITIONS", "SessionStore", "generate_session_id"]
