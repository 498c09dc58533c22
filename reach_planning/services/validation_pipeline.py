"""Validation pipeline orchestrator.

Single public function ``run_validation(db, store, session_id)`` that:
1. Loads the session and resolves its validation template.
2. Loads the master data snapshot once for the run.
3. Validates rows chunk by chunk (field types + relational rules).
4. Runs the cross-reference pass when the template asks for it and the
   session carries a country and a financial cycle; the pass runs on its own
   connection in a worker thread and is bounded in time.
5. Summarises, persists the issues and moves the session to ``validated``.
6. Returns the validate response (first N issues inline).

Sessions that are importing or imported are rejected up front with
``InvalidSessionTransition`` and keep their status. Any unexpected failure
after that moves the session to ``error`` and re-raises.
"""
from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import List

from sqlalchemy.orm import Session

from reach_planning.config import CROSS_REFERENCE_SETTINGS, VALIDATION_SETTINGS
from reach_planning.exceptions import InvalidSessionTransition
from reach_planning.models.db.enums import SessionStatus
from reach_planning.models.schemas.sessions import ValidateResponse
from reach_planning.models.schemas.validation import ValidationIssue, ValidationSummary
from reach_planning.utils.logger import get_logger, log_business_event, log_performance
from reach_planning.utils.time import elapsed_ms
from .cross_reference_validator import cross_reference_unavailable, validate_against_game_plans
from .master_data import MasterDataCache
from .relational_validator import validate_records
from .session_store import ALLOWED_TRANSITIONS, SessionStore
from .templates import ValidationTemplate, get_template

logger = get_logger(__name__)


def _cross_reference_worker(bind, records, country_id: int, cycle_id: int, template: ValidationTemplate):
    with Session(bind=bind) as xdb:
        return validate_against_game_plans(xdb, records, country_id, cycle_id, template)


def run_cross_reference(
    db: Session,
    records: list,
    country_id: int,
    cycle_id: int,
    template: ValidationTemplate,
    timeout: float | None = None,
) -> List[ValidationIssue]:
    """Time-bounded cross-reference pass.

    Timeouts and store errors degrade to one non-blocking ``General`` warning.
    """
    timeout = float(CROSS_REFERENCE_SETTINGS["timeout_seconds"]) if timeout is None else timeout
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cross-reference")
    future = executor.submit(_cross_reference_worker, db.get_bind(), records, country_id, cycle_id, template)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning("Cross-reference validation timed out", timeout_seconds=timeout,
                       country_id=country_id, financial_cycle_id=cycle_id)
        return [cross_reference_unavailable()]
    except Exception as exc:
        logger.error("Cross-reference validation failed", error=str(exc),
                     country_id=country_id, financial_cycle_id=cycle_id)
        return [cross_reference_unavailable()]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def run_validation(db: Session, store: SessionStore, session_id: str) -> ValidateResponse:
    session = store.get(session_id)
    current = SessionStatus(session.status)
    if SessionStatus.VALIDATED not in ALLOWED_TRANSITIONS[current]:
        # importing and imported sessions keep their status
        raise InvalidSessionTransition(session_id, current.value, SessionStatus.VALIDATED.value)
    started = time.time()
    try:
        template = get_template(session.template)
        records = list(session.records or [])
        snapshot = MasterDataCache(db).load()

        chunk_size = max(1, int(VALIDATION_SETTINGS["chunk_size"]))
        issues: List[ValidationIssue] = []
        for start in range(0, len(records), chunk_size):
            chunk = records[start:start + chunk_size]
            issues.extend(validate_records(chunk, snapshot, template, start_index=start))
            logger.debug("Validated chunk", session_id=session_id, start=start, rows=len(chunk))

        if template.cross_reference:
            if session.country_id is not None and session.financial_cycle_id is not None:
                issues.extend(run_cross_reference(
                    db, records, session.country_id, session.financial_cycle_id, template
                ))
            else:
                logger.info("Cross-reference skipped: session has no country / financial cycle",
                            session_id=session_id)

        summary = ValidationSummary.from_issues(issues)
        store.save_validation(session_id, [issue.to_wire() for issue in issues], summary)
    except Exception as exc:
        db.rollback()
        logger.error("Validation failed", session_id=session_id, error=str(exc))
        store.mark_error(session_id, f"Validation failed: {exc}")
        raise

    duration = elapsed_ms(started)
    log_performance("validation", duration, {"session_id": session_id, "rows": len(records)})
    log_business_event("validation_completed", {
        "template": template.template_id,
        "rows": len(records),
        "critical": summary.critical,
        "warning": summary.warning,
        "suggestion": summary.suggestion,
    }, session_id=session_id)

    limit = int(VALIDATION_SETTINGS["max_issues_in_response"])
    return ValidateResponse(
        success=True,
        session_id=session_id,
        summary=summary,
        issues=issues[:limit],
        field_mapping=template.field_mapping,
        can_import=summary.can_import,
    )


__all__ = ["run_validation", "run_cross_reference"]
