"""Two-phase import of a validated session.

Phase 1 (0-50 %) resolves or creates the leaf entities every row refers to:
Range, Media Subtype, PM Type and Campaign (keyed by name + range). An
``EntityResolver`` owned by the run memoises every resolution so a distinct
entity is created at most once per run however many rows mention it.

Phase 2 (50-100 %) writes the dependent record of each row:
  * game plans, keyed by (campaign, media subtype, start date, end date):
    an existing plan is updated in place, otherwise one is inserted
  * sufficiency records, keyed by (campaign, country, financial cycle)

Each row is its own unit of work (commit on success, rollback on failure).
A failing row is recorded in ``failedRows`` / ``errors`` and the loop moves
on; only failures outside the row boundary (or a cancellation) abort the run
and move the session to ``error``.
"""
from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from reach_planning.config import IMPORT_SETTINGS
from reach_planning.exceptions import ImportCancelled, InvalidSessionTransition
from reach_planning.models.db import GamePlan, ImportSession, SufficiencyRecord
from reach_planning.models.db.enums import SessionStatus, TemplateId
from reach_planning.models.schemas.sessions import (
    ImportErrorEntry,
    ImportOutcome,
    ImportProgress,
    ImportResults,
)
from reach_planning.utils.logger import get_logger, log_business_event, log_performance
from reach_planning.utils.text import clean, is_blank, normalize_name
from reach_planning.utils.time import elapsed_ms
from .field_validator import NUMERIC, PERCENTAGE, normalize_date, parse_number, parse_percentage
from .master_data import MasterDataCache
from .session_store import SessionStore
from .templates import ValidationTemplate, get_template, to_attribute

logger = get_logger(__name__)


class RowError(Exception):
    """A row cannot be written; ``kind`` feeds ``errorsByType``."""

    def __init__(self, message: str, kind: str = "missing_reference"):
        self.kind = kind
        super().__init__(message)


def classify_error(exc: Exception) -> str:
    if isinstance(exc, RowError):
        return exc.kind
    if isinstance(exc, IntegrityError):
        return "integrity"
    if isinstance(exc, SQLAlchemyError):
        return "database"
    if isinstance(exc, (ValueError, TypeError)):
        return "invalid_value"
    return type(exc).__name__


def _cell(row: Mapping[str, Any], *columns: str) -> Any:
    """First non-blank value among alternative header spellings."""
    for column in columns:
        value = row.get(column)
        if not is_blank(value):
            return value
    return None


@dataclass
class RowEntities:
    range_id: Optional[int] = None
    media_subtype_id: Optional[int] = None
    pm_type_id: Optional[int] = None
    campaign_id: Optional[int] = None


@dataclass
class EntityResolver:
    """Per-run resolution memo for Range, Media Subtype, PM Type and Campaign.

    Keys are normalised names (campaigns: normalised name + range id).
    Creations made since the last ``commit()`` are discarded by ``rollback()``.
    """
    cache: MasterDataCache
    default_media_type: str = field(default_factory=lambda: str(IMPORT_SETTINGS["default_media_type"]))
    ranges: Dict[str, int] = field(default_factory=dict)
    media_subtypes: Dict[str, int] = field(default_factory=dict)
    pm_types: Dict[str, int] = field(default_factory=dict)
    campaigns: Dict[Tuple[str, int], int] = field(default_factory=dict)
    created: Counter = field(default_factory=Counter)
    _pending: List[Tuple[str, Any]] = field(default_factory=list)
    _pending_created: Counter = field(default_factory=Counter)

    def _store(self, kind: str, memo: dict, key: Any, entity_id: int, was_created: bool) -> int:
        memo[key] = entity_id
        self._pending.append((kind, key))
        if was_created:
            self._pending_created[kind] += 1
        return entity_id

    def resolve_range(self, name: Any) -> Optional[int]:
        key = normalize_name(name)
        if not key:
            return None
        if key in self.ranges:
            return self.ranges[key]
        entity_id, was_created = self.cache.get_or_create_range(clean(name))
        return self._store("ranges", self.ranges, key, entity_id, was_created)

    def resolve_media_subtype(self, name: Any, media_type: Any = None) -> Optional[int]:
        key = normalize_name(name)
        if not key:
            return None
        if key in self.media_subtypes:
            return self.media_subtypes[key]
        media_type_name = media_type if not is_blank(media_type) else self.default_media_type
        media_type_id = self.cache.find_media_type(media_type_name)
        entity_id, was_created = self.cache.get_or_create_media_subtype(clean(name), media_type_id)
        return self._store("media_subtypes", self.media_subtypes, key, entity_id, was_created)

    def resolve_pm_type(self, name: Any) -> Optional[int]:
        key = normalize_name(name)
        if not key:
            return None
        if key in self.pm_types:
            return self.pm_types[key]
        entity_id, was_created = self.cache.get_or_create_pm_type(clean(name))
        return self._store("pm_types", self.pm_types, key, entity_id, was_created)

    def resolve_campaign(self, name: Any, range_id: Optional[int]) -> Optional[int]:
        norm = normalize_name(name)
        if not norm or range_id is None:
            return None
        key = (norm, range_id)
        if key in self.campaigns:
            return self.campaigns[key]
        entity_id, was_created = self.cache.get_or_create_campaign(clean(name), range_id)
        return self._store("campaigns", self.campaigns, key, entity_id, was_created)

    def resolve_row(self, row: Mapping[str, Any], template: ValidationTemplate) -> RowEntities:
        entities = RowEntities()
        entities.range_id = self.resolve_range(row.get("Range"))
        entities.media_subtype_id = self.resolve_media_subtype(row.get(template.media_subtype_field), row.get("Media"))
        entities.pm_type_id = self.resolve_pm_type(row.get("PM Type"))
        entities.campaign_id = self.resolve_campaign(row.get("Campaign"), entities.range_id)
        return entities

    def lookup_row(self, row: Mapping[str, Any], template: ValidationTemplate) -> RowEntities:
        """Memo-only view of a row's entities (no store access)."""
        range_id = self.ranges.get(normalize_name(row.get("Range")))
        campaign_id = None
        if range_id is not None:
            campaign_id = self.campaigns.get((normalize_name(row.get("Campaign")), range_id))
        return RowEntities(
            range_id=range_id,
            media_subtype_id=self.media_subtypes.get(normalize_name(row.get(template.media_subtype_field))),
            pm_type_id=self.pm_types.get(normalize_name(row.get("PM Type"))),
            campaign_id=campaign_id,
        )

    def commit(self) -> None:
        self.cache.commit()
        self.created.update(self._pending_created)
        self._pending.clear()
        self._pending_created.clear()

    def rollback(self) -> None:
        self.cache.rollback()
        memos = {
            "ranges": self.ranges,
            "media_subtypes": self.media_subtypes,
            "pm_types": self.pm_types,
            "campaigns": self.campaigns,
        }
        for kind, key in self._pending:
            memos[kind].pop(key, None)
        self._pending.clear()
        self._pending_created.clear()

    def entity_ids(self) -> Dict[str, Dict[Any, int]]:
        return {
            "ranges": dict(self.ranges),
            "media_subtypes": dict(self.media_subtypes),
            "pm_types": dict(self.pm_types),
            "campaigns": dict(self.campaigns),
        }


class _RowCommitter:
    """Shared context for the phase 2 writers."""

    def __init__(self, db: Session, cache: MasterDataCache, session: ImportSession, template: ValidationTemplate):
        self.db = db
        self.cache = cache
        self.template = template
        self.session_id = session.session_id
        self.country_id = session.country_id
        self.cycle_id = session.financial_cycle_id
        self.written_ids: set[int] = set()

    def _country_id(self, row: Mapping[str, Any]) -> Optional[int]:
        return self.country_id if self.country_id is not None else self.cache.find_country(row.get("Country"))

    def _cycle_id(self, row: Mapping[str, Any]) -> Optional[int]:
        return self.cycle_id if self.cycle_id is not None else self.cache.find_financial_cycle(row.get("Last Update"))

    def _context_ids(self, row: Mapping[str, Any], entities: RowEntities) -> Dict[str, Optional[int]]:
        business_unit_id = self.cache.find_business_unit(row.get("BU"))
        return {
            "country_id": self._country_id(row),
            "financial_cycle_id": self._cycle_id(row),
            "business_unit_id": business_unit_id,
            "category_id": self.cache.find_category(row.get("Category"), business_unit_id)
            or self.cache.find_category(row.get("Category")),
            "range_id": entities.range_id,
        }


class GamePlanCommitter(_RowCommitter):
    """Upserts game plans on their natural key."""

    label = "Creating game plans"

    def natural_key(self, row: Mapping[str, Any], entities: RowEntities) -> Tuple[int, int, str, str]:
        if entities.campaign_id is None:
            raise RowError(f'Could not resolve campaign "{clean(row.get("Campaign"))}"')
        if entities.media_subtype_id is None:
            raise RowError(f'Could not resolve media subtype "{clean(row.get(self.template.media_subtype_field))}"')
        start = normalize_date(row.get("Start Date"))
        end = normalize_date(row.get("End Date"))
        if start is None or end is None:
            raise RowError("Invalid start or end date", kind="invalid_value")
        return entities.campaign_id, entities.media_subtype_id, start, end

    def context_values(self, row: Mapping[str, Any], entities: RowEntities) -> Dict[str, Any]:
        """Placement columns, written on insert only."""
        values = self._context_ids(row, entities)
        playbook = _cell(row, "Playbook ID")
        values.update({
            "sub_region_id": self.cache.find_sub_region(row.get("Sub Region")),
            "playbook_id": clean(playbook) if playbook is not None else None,
        })
        return values

    def payload_values(self, row: Mapping[str, Any], entities: RowEntities) -> Dict[str, Any]:
        """Budgets, reach/TRP figures and PM type; refreshed on every upsert."""
        return {
            "pm_type_id": entities.pm_type_id,
            "total_budget": parse_number(_cell(row, "Budget", "Total Budget")) or 0.0,
            "q1_budget": parse_number(_cell(row, "Q1 Budget")),
            "q2_budget": parse_number(_cell(row, "Q2 Budget")),
            "q3_budget": parse_number(_cell(row, "Q3 Budget")),
            "q4_budget": parse_number(_cell(row, "Q4 Budget")),
            "total_trps": parse_number(_cell(row, "Total TRPs")),
            "reach_1_plus": parse_percentage(_cell(row, "Reach 1+", "Target Reach")),
            "reach_3_plus": parse_percentage(_cell(row, "Reach 3+", "Current Reach")),
            "total_woa": parse_number(_cell(row, "Total WOA")),
            "weeks_off_air": parse_number(_cell(row, "Weeks Off Air")),
        }

    def commit_row(self, row: Mapping[str, Any], entities: RowEntities) -> str:
        campaign_id, subtype_id, start, end = self.natural_key(row, entities)
        existing = self.db.execute(
            select(GamePlan).where(
                GamePlan.campaign_id == campaign_id,
                GamePlan.media_sub_type_id == subtype_id,
                GamePlan.start_date == start,
                GamePlan.end_date == end,
            )
        ).scalars().first()
        payload = self.payload_values(row, entities)
        if existing is not None:
            for key, value in payload.items():
                setattr(existing, key, value)
            plan = existing
            action = "updated"
        else:
            plan = GamePlan(
                campaign_id=campaign_id,
                media_sub_type_id=subtype_id,
                start_date=start,
                end_date=end,
                **self.context_values(row, entities),
                **payload,
            )
            self.db.add(plan)
            action = "inserted"
        self.db.flush()
        self.written_ids.add(plan.id)
        return action


class SufficiencyCommitter(_RowCommitter):
    """Upserts sufficiency records on (campaign, country, financial cycle)."""

    label = "Saving sufficiency records"
    _columns = frozenset(SufficiencyRecord.__table__.columns.keys())

    def values(self, row: Mapping[str, Any], entities: RowEntities) -> Dict[str, Any]:
        values = self._context_ids(row, entities)
        for header, field_id in self.template.field_mapping.items():
            attribute = to_attribute(field_id)
            if attribute not in self._columns or attribute in values:
                continue
            raw = row.get(header)
            field_type = self.template.field_types.get(header)
            if field_type == NUMERIC:
                values[attribute] = parse_number(raw)
            elif field_type == PERCENTAGE:
                values[attribute] = parse_percentage(raw)
            else:
                values[attribute] = None if is_blank(raw) else clean(raw)
        values["upload_session"] = self.session_id
        return values

    def commit_row(self, row: Mapping[str, Any], entities: RowEntities) -> str:
        if entities.campaign_id is None:
            raise RowError(f'Could not resolve campaign "{clean(row.get("Campaign"))}"')
        values = self.values(row, entities)
        existing = self.db.execute(
            select(SufficiencyRecord).where(
                SufficiencyRecord.campaign_id == entities.campaign_id,
                SufficiencyRecord.country_id == values["country_id"],
                SufficiencyRecord.financial_cycle_id == values["financial_cycle_id"],
            )
        ).scalars().first()
        if existing is not None:
            for key, value in values.items():
                setattr(existing, key, value)
            record = existing
            action = "updated"
        else:
            record = SufficiencyRecord(campaign_id=entities.campaign_id, **values)
            self.db.add(record)
            action = "inserted"
        self.db.flush()
        self.written_ids.add(record.id)
        return action


class _ProgressReporter:
    def __init__(self, store: SessionStore, session_id: str, total: int):
        self.store = store
        self.session_id = session_id
        self.total = total
        self.every = max(1, int(IMPORT_SETTINGS["progress_every"]))

    def report(self, done: int, phase_offset: int, stage: str) -> None:
        """Flush every N rows and on the last row; each phase spans 50 %."""
        if done % self.every and done != self.total:
            return
        percentage = phase_offset + round(done / self.total * 50) if self.total else phase_offset + 50
        self.store.set_progress(self.session_id, ImportProgress(
            current=done, total=self.total, percentage=min(percentage, 100),
            stage=f"{stage} ({done}/{self.total})",
        ))


def _check_cancel(cancel_event: Optional[threading.Event], session_id: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ImportCancelled(f"Import of session {session_id} was cancelled")


def run_import(
    db: Session,
    store: SessionStore,
    session_id: str,
    cancel_event: Optional[threading.Event] = None,
) -> ImportOutcome:
    """Run both phases for a session already moved to ``importing``."""
    session = store.get(session_id, touch=False)
    if SessionStatus(session.status) != SessionStatus.IMPORTING:
        raise InvalidSessionTransition(session_id, SessionStatus(session.status).value, "import run")

    started = time.time()
    template = get_template(session.template)
    records: List[Dict[str, Any]] = list(session.records or [])
    total = len(records)
    cache = MasterDataCache(db)
    resolver = EntityResolver(cache)
    if template.template_id == TemplateId.GAME_PLANS.value:
        committer: _RowCommitter = GamePlanCommitter(db, cache, session, template)
    else:
        committer = SufficiencyCommitter(db, cache, session, template)
    progress = _ProgressReporter(store, session_id, total)

    errors: List[ImportErrorEntry] = []
    errors_by_type: Counter = Counter()
    phase1_failed: set[int] = set()
    successful_rows: List[int] = []
    failed_rows: List[int] = []

    def record_failure(index: int, row: Mapping[str, Any], exc: Exception) -> None:
        errors.append(ImportErrorEntry(
            index=index,
            error=str(exc),
            campaign=clean(row.get("Campaign")) or None,
            media_subtype=clean(row.get(template.media_subtype_field)) or None,
        ))
        errors_by_type[classify_error(exc)] += 1

    try:
        cache.load()
        logger.info("Import started", session_id=session_id, rows=total, template=template.template_id)

        # Phase 1: entity resolution
        for index, row in enumerate(records):
            _check_cancel(cancel_event, session_id)
            try:
                resolver.resolve_row(row, template)
                resolver.commit()
            except Exception as exc:
                resolver.rollback()
                phase1_failed.add(index)
                record_failure(index, row, exc)
                logger.warning("Entity resolution failed for row", session_id=session_id,
                               row=index, error=str(exc))
            progress.report(index + 1, 0, "Processing entities")

        # Phase 2: dependent records
        for index, row in enumerate(records):
            _check_cancel(cancel_event, session_id)
            if index in phase1_failed:
                failed_rows.append(index)
            else:
                try:
                    committer.commit_row(row, resolver.lookup_row(row, template))
                    db.commit()
                    successful_rows.append(index)
                except Exception as exc:
                    db.rollback()
                    failed_rows.append(index)
                    record_failure(index, row, exc)
                    logger.warning("Row import failed", session_id=session_id, row=index,
                                   error=str(exc), error_type=classify_error(exc))
            progress.report(index + 1, 50, committer.label)

        counts = resolver.created
        results = ImportResults(
            ranges_count=counts["ranges"],
            media_subtypes_count=counts["media_subtypes"],
            pm_types_count=counts["pm_types"],
            campaigns_count=counts["campaigns"],
            game_plans_count=len(committer.written_ids) if isinstance(committer, GamePlanCommitter) else 0,
            sufficiency_count=len(committer.written_ids) if isinstance(committer, SufficiencyCommitter) else 0,
            successful_rows=successful_rows,
            failed_rows=failed_rows,
        )
        store.finish_import(session_id, results, errors)
    except Exception as exc:
        db.rollback()
        logger.error("Import aborted", session_id=session_id, error=str(exc))
        store.mark_error(session_id, str(exc), errors)
        raise

    outcome = ImportOutcome(
        processed=total,
        successful=len(successful_rows),
        failed=len(failed_rows),
        successful_rows=successful_rows,
        failed_rows=failed_rows,
        errors=errors,
        errors_by_type=dict(errors_by_type),
        results=results,
    )
    log_performance("import", elapsed_ms(started), {"session_id": session_id, "rows": total})
    log_business_event("import_completed", {
        "template": template.template_id,
        "successful": outcome.successful,
        "failed": outcome.failed,
        "errors_by_type": outcome.errors_by_type,
    }, session_id=session_id)
    return outcome


__all__ = [
    "RowError",
    "RowEntities",
    "EntityResolver",
    "GamePlanCommitter",
    "SufficiencyCommitter",
    "classify_error",
    "run_import",
]
