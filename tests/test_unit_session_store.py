from datetime import timedelta

import pytest

from reach_planning.exceptions import (
    ImportBlocked,
    InvalidSessionTransition,
    SessionAlreadyExists,
    SessionNotFound,
    UnknownTemplate,
)
from reach_planning.models.db import ImportSession
from reach_planning.models.db.enums import SessionStatus
from reach_planning.models.schemas.sessions import ImportErrorEntry, ImportProgress, ImportResults
from reach_planning.models.schemas.validation import ValidationSummary
from reach_planning.services.session_store import SessionStore, generate_session_id
from reach_planning.utils.time import utc_now


@pytest.fixture()
def store(db_session):
    return SessionStore(db_session)


def test_generated_ids_follow_prefix_format():
    session_id = generate_session_id()
    prefix, millis, suffix = session_id.rsplit("-", 2)
    assert prefix == "reach-planning"
    assert millis.isdigit()
    assert len(suffix) == 8


def test_create_and_get(store, reach_row):
    session = store.create([reach_row(), reach_row()], "reach_planning", country_id=1, cycle_id=2)
    loaded = store.get(session.session_id)
    assert loaded.status == SessionStatus.UPLOADED
    assert loaded.import_progress == {"current": 0, "total": 2, "percentage": 0, "stage": "Pending"}
    read = SessionStore.to_read(loaded).to_wire()
    assert read["recordCount"] == 2
    assert read["countryId"] == 1


def test_create_rejects_unknown_template_and_duplicate_ids(store):
    with pytest.raises(UnknownTemplate):
        store.create([], "budgets")
    store.create([], "game_plans", session_id="reach-planning-1-deadbeef")
    with pytest.raises(SessionAlreadyExists):
        store.create([], "game_plans", session_id="reach-planning-1-deadbeef")


def test_missing_session_raises(store):
    with pytest.raises(SessionNotFound):
        store.get("reach-planning-0-00000000")


def test_expired_session_is_removed(store, db_session):
    session = store.create([], "reach_planning")
    session.expires_at = utc_now() - timedelta(minutes=1)
    db_session.commit()
    with pytest.raises(SessionNotFound):
        store.get(session.session_id)
    assert db_session.get(ImportSession, session.session_id) is None


def test_get_slides_expiry_forward(store, db_session):
    session = store.create([], "reach_planning")
    session.expires_at = utc_now() + timedelta(minutes=5)
    db_session.commit()
    refreshed = store.get(session.session_id)
    assert refreshed.expires_at.replace(tzinfo=None) > (utc_now() + timedelta(hours=5)).replace(tzinfo=None)


def test_purge_expired_keeps_importing_sessions(store, db_session):
    stale = store.create([], "reach_planning")
    busy = store.create([], "reach_planning")
    busy.status = SessionStatus.IMPORTING
    for session in (stale, busy):
        session.expires_at = utc_now() - timedelta(hours=1)
    db_session.commit()
    assert store.purge_expired() == 1
    assert db_session.get(ImportSession, busy.session_id) is not None


def test_illegal_transition_raises(store):
    session = store.create([], "reach_planning")
    with pytest.raises(InvalidSessionTransition):
        store.transition(session.session_id, SessionStatus.IMPORTED)


def test_begin_import_blocked_by_critical_issues(store):
    session = store.create([{}], "reach_planning")
    store.save_validation(session.session_id, [], ValidationSummary(total=1, critical=1, unique_rows=1))
    with pytest.raises(ImportBlocked):
        store.begin_import(session.session_id)
    assert store.get(session.session_id).status == SessionStatus.VALIDATED


def test_begin_import_requires_validation(store):
    session = store.create([{}], "reach_planning")
    with pytest.raises(InvalidSessionTransition):
        store.begin_import(session.session_id)


def test_progress_never_moves_backwards(store):
    session = store.create([{}, {}], "reach_planning")
    store.save_validation(session.session_id, [], ValidationSummary())
    store.begin_import(session.session_id)
    store.set_progress(session.session_id, ImportProgress(current=2, total=2, percentage=50, stage="Processing entities (2/2)"))
    kept = store.set_progress(session.session_id, ImportProgress(current=1, total=2, percentage=30, stage="Creating game plans (1/2)"))
    assert kept.percentage == 50
    assert store.progress(session.session_id).stage == "Creating game plans (1/2)"


def test_finish_and_error_paths(store):
    done = store.create([{}], "reach_planning")
    store.save_validation(done.session_id, [], ValidationSummary())
    store.begin_import(done.session_id)
    store.finish_import(done.session_id, ImportResults(successful_rows=[0]), [])
    finished = store.get(done.session_id)
    assert finished.status == SessionStatus.IMPORTED
    assert finished.import_progress["percentage"] == 100
    assert finished.import_results["successfulRows"] == [0]

    failed = store.create([{}], "reach_planning")
    store.save_validation(failed.session_id, [], ValidationSummary())
    store.begin_import(failed.session_id)
    store.mark_error(failed.session_id, "store unreachable", [ImportErrorEntry(index=0, error="bad row")])
    errored = store.get(failed.session_id)
    assert errored.status == SessionStatus.ERROR
    assert errored.error_message == "store unreachable"
    assert [e["index"] for e in errored.import_errors] == [0, -1]


def test_error_session_can_be_revalidated(store):
    session = store.create([{}], "reach_planning")
    store.mark_error(session.session_id, "Validation failed: boom")
    store.save_validation(session.session_id, [], ValidationSummary())
    assert store.get(session.session_id).status == SessionStatus.VALIDATED
