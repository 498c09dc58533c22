import os
import sys
import time
from pathlib import Path
from types import SimpleNamespace
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'reach_planning' resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from reach_planning.main import app  # type: ignore
from reach_planning.database import Base  # type: ignore
from reach_planning.api import deps  # type: ignore
"""Pytest fixtures and factories.

All model modules are imported (via reach_planning.models.db) before
Base.metadata.create_all() so every table and relationship is registered.
"""
from reach_planning.models.db import (
    BusinessUnit, Campaign, Category, Country, FinancialCycle, GamePlan,
    ImportSession, MediaSubType, MediaType, PMType, Range, SubRegion,
)
from reach_planning.models.db.enums import SessionStatus
from reach_planning.jobs.queue import PriorityJobQueue
from reach_planning.jobs.worker_import import ImportWorker, JobTracker

# File-based SQLite so the worker thread and the test thread use separate
# connections on the same data.
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_reach_planning.db"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# session_scope() and get_db() look SessionLocal up at call time, so
# rebinding the module attribute routes the worker to the test database.
import reach_planning.database as _database  # noqa: E402
_database.SessionLocal = TestingSessionLocal  # type: ignore

@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("test_reach_planning.db")
    except OSError:
        pass

@pytest.fixture(scope="session", autouse=True)
def import_worker(create_test_db):
    """Queue + worker on app.state; the production app does this in its lifespan."""
    queue = PriorityJobQueue()
    worker = ImportWorker(queue, JobTracker(), poll_timeout=0.05)
    app.state.import_queue = queue  # type: ignore[attr-defined]
    app.state.import_worker = worker  # type: ignore[attr-defined]
    worker.start()
    yield worker
    worker.stop(timeout=2.0)
    queue.shutdown()

@pytest.fixture(autouse=True)
def _isolate_test_state(import_worker):
    """Empty queue and tables before every test."""
    import_worker.queue.purge()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield
    import_worker.queue.purge()

@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

# Override dependency
def _override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

app.dependency_overrides[deps.get_db] = _override_get_db

@pytest.fixture()
def client():
    return TestClient(app)

# ---------- Data factory helpers ----------

@pytest.fixture()
def master_data(db_session):
    """Seed a small, realistic reference set and return the ids by name."""
    dach = SubRegion(name="DACH")
    nordics = SubRegion(name="Nordics")
    db_session.add_all([dach, nordics])
    db_session.flush()
    germany = Country(name="Germany", sub_region_id=dach.id)
    sweden = Country(name="Sweden", sub_region_id=nordics.id)

    nivea = BusinessUnit(name="Nivea")
    derma = BusinessUnit(name="Derma")
    db_session.add_all([germany, sweden, nivea, derma])
    db_session.flush()

    deo = Category(name="Deo", business_unit_id=nivea.id)
    face = Category(name="Face Care", business_unit_id=derma.id)
    black_white = Range(name="Black & White")
    dry = Range(name="Dry Impact")
    sun = Range(name="Sun Protect")
    anti_pigment = Range(name="Anti-Pigment")
    deo.ranges = [black_white, dry]
    face.ranges = [anti_pigment]
    db_session.add_all([deo, face, black_white, dry, sun, anti_pigment])
    db_session.flush()

    bw_campaign = Campaign(name="Black & White", range_id=black_white.id)
    dry_campaign = Campaign(name="Dry Impact Launch", range_id=dry.id)
    eucerin = Campaign(name="Eucerin Anti-Pigment", range_id=anti_pigment.id)

    tv = MediaType(name="TV")
    digital = MediaType(name="Digital")
    db_session.add_all([bw_campaign, dry_campaign, eucerin, tv, digital])
    db_session.flush()
    open_tv = MediaSubType(name="Open TV", media_type_id=tv.id)
    paid_tv = MediaSubType(name="Paid TV", media_type_id=tv.id)
    social = MediaSubType(name="Social", media_type_id=digital.id)
    programmatic = PMType(name="Programmatic")
    cycle = FinancialCycle(name="FC05 2025")
    db_session.add_all([open_tv, paid_tv, social, programmatic, cycle])
    db_session.commit()

    return SimpleNamespace(
        dach=dach.id, nordics=nordics.id, germany=germany.id, sweden=sweden.id,
        nivea=nivea.id, derma=derma.id, deo=deo.id, face=face.id,
        black_white=black_white.id, dry=dry.id, sun=sun.id, anti_pigment=anti_pigment.id,
        bw_campaign=bw_campaign.id, dry_campaign=dry_campaign.id, eucerin=eucerin.id,
        tv=tv.id, digital=digital.id, open_tv=open_tv.id, paid_tv=paid_tv.id, social=social.id,
        programmatic=programmatic.id, cycle=cycle.id,
    )

@pytest.fixture()
def game_plan_factory(db_session, master_data):
    def _create(campaign_id: int, media_sub_type_id: int, *, country_id: int | None = None,
                cycle_id: int | None = None, start: str = "2025-01-01", end: str = "2025-03-31",
                budget: float = 1000.0):
        plan = GamePlan(
            campaign_id=campaign_id,
            media_sub_type_id=media_sub_type_id,
            country_id=country_id or master_data.germany,
            financial_cycle_id=cycle_id or master_data.cycle,
            start_date=start,
            end_date=end,
            total_budget=budget,
        )
        db_session.add(plan)
        db_session.commit()
        db_session.refresh(plan)
        return plan
    return _create

@pytest.fixture()
def reach_row():
    """A clean reach sufficiency row for the seeded TV-only campaign."""
    def _row(overrides: dict | None = None):
        row = {
            "Last Update": "FC05 2025",
            "Sub Region": "DACH",
            "Country": "Germany",
            "BU": "Nivea",
            "Category": "Deo",
            "Range": "Black & White",
            "Campaign": "Black & White",
            "Campaign Socio-Demo Target": "Women 25-54",
            "TV Demo Gender": "Female",
            "TV Demo Min. Age": 25,
            "TV Demo Max. Age": 54,
            "TV Copy Length": '30"',
            "TV Target Size": 12000000,
            "TV R1+": "65%",
            "TV R3+": "40%",
            "TV Ideal Reach": "70%",
            "CPP 2024": 1200,
            "CPP 2025": 1150,
        }
        row.update(overrides or {})
        return row
    return _row

@pytest.fixture()
def game_plan_row():
    def _row(overrides: dict | None = None):
        row = {
            "Last Update": "FC05 2025",
            "Sub Region": "DACH",
            "Country": "Germany",
            "BU": "Nivea",
            "Category": "Deo",
            "Range": "Black & White",
            "Campaign": "Black & White",
            "Media": "TV",
            "Media Subtype": "Open TV",
            "PM Type": "Programmatic",
            "Start Date": "2025-01-01",
            "End Date": "2025-03-31",
            "Budget": 4000,
            "Q1 Budget": 1000,
            "Q2 Budget": 1000,
            "Q3 Budget": 1000,
            "Q4 Budget": 1000,
            "Reach 1+": "55%",
            "Reach 3+": "30%",
        }
        row.update(overrides or {})
        return row
    return _row


@pytest.fixture()
def wait_for_status(db_session):
    """Poll the session row until the worker moves it to one of ``statuses``."""
    def _wait(session_id: str, statuses=(SessionStatus.IMPORTED, SessionStatus.ERROR), timeout: float = 5.0):
        deadline = time.time() + timeout
        while time.time() < deadline:
            db_session.expire_all()
            session = db_session.get(ImportSession, session_id)
            if session is not None and session.status in statuses:
                return session
            time.sleep(0.05)
        return None
    return _wait
