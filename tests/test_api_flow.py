from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from reach_planning.models.db import GamePlan, SufficiencyRecord
from reach_planning.models.db.enums import SessionStatus


def _create_session(client: TestClient, records, template="reach_planning", **extra):
    payload = {"records": records, "template": template, **extra}
    r = client.post("/api/v1/sessions", json=payload)
    assert r.status_code == 201, r.text
    return r.json()["sessionId"]


def test_full_reach_planning_flow(client: TestClient, db_session: Session, master_data, game_plan_factory,
                                  reach_row, wait_for_status):
    game_plan_factory(master_data.bw_campaign, master_data.open_tv)
    session_id = _create_session(
        client, [reach_row()], countryId=master_data.germany, financialCycleId=master_data.cycle
    )

    r = client.get(f"/api/v1/sessions/{session_id}")
    assert r.status_code == 200
    assert r.json()["status"] == "uploaded"

    r = client.post("/api/v1/validate", json={"sessionId": session_id})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["canImport"] is True
    assert body["summary"]["critical"] == 0
    assert body["fieldMapping"]["TV R1+"] == "tvR1Plus"

    r = client.post("/api/v1/import", json={"sessionId": session_id})
    assert r.status_code == 202, r.text
    assert r.json()["message"] == "Import process started"

    session = wait_for_status(session_id)
    assert session is not None, "Import not finished by worker"
    assert session.status == SessionStatus.IMPORTED

    r = client.post("/api/v1/import/progress", json={"sessionId": session_id})
    assert r.status_code == 200
    progress = r.json()
    assert progress["status"] == "imported"
    assert progress["progress"] == {"current": 1, "total": 1, "percentage": 100, "stage": "Import completed"}
    assert progress["results"]["sufficiencyCount"] == 1
    assert db_session.query(SufficiencyRecord).count() == 1

    # An imported session cannot be validated again and stays imported
    r = client.post("/api/v1/validate", json={"sessionId": session_id})
    assert r.status_code == 409
    assert r.json()["success"] is False
    assert client.get(f"/api/v1/sessions/{session_id}").json()["status"] == "imported"


def test_game_plan_flow_creates_plans(client: TestClient, db_session: Session, master_data, game_plan_row,
                                      wait_for_status):
    rows = [game_plan_row(), game_plan_row({"Media Subtype": "Paid TV"})]
    session_id = _create_session(client, rows, template="game_plans",
                                 countryId=master_data.germany, financialCycleId=master_data.cycle)
    r = client.post("/api/v1/validate", json={"sessionId": session_id})
    assert r.json()["canImport"] is True
    assert client.post("/api/v1/import", json={"sessionId": session_id}).status_code == 202
    session = wait_for_status(session_id)
    assert session.status == SessionStatus.IMPORTED
    assert session.import_results["gamePlansCount"] == 2
    assert db_session.query(GamePlan).count() == 2


def test_critical_issues_block_import(client: TestClient, master_data, reach_row):
    session_id = _create_session(client, [reach_row()], countryId=master_data.germany,
                                 financialCycleId=master_data.cycle)
    r = client.post("/api/v1/validate", json={"sessionId": session_id})
    body = r.json()
    # No game plan exists for the campaign in this country/cycle
    assert body["canImport"] is False
    assert any("No game plans found" in issue["message"] for issue in body["issues"])

    r = client.post("/api/v1/import", json={"sessionId": session_id})
    assert r.status_code == 400
    error = r.json()
    assert error["success"] is False
    assert "critical" in error["message"]
    assert "request_id" in error


def test_cross_reference_skipped_without_country_and_cycle(client: TestClient, master_data, reach_row):
    session_id = _create_session(client, [reach_row()])
    body = client.post("/api/v1/validate", json={"sessionId": session_id}).json()
    assert body["canImport"] is True
    assert body["issues"] == []


def test_import_before_validation_conflicts(client: TestClient, master_data, reach_row):
    session_id = _create_session(client, [reach_row()])
    r = client.post("/api/v1/import", json={"sessionId": session_id})
    assert r.status_code == 409


def test_unknown_session_returns_404(client: TestClient):
    for method, url, payload in (
        ("get", "/api/v1/sessions/reach-planning-0-00000000", None),
        ("post", "/api/v1/validate", {"sessionId": "reach-planning-0-00000000"}),
        ("post", "/api/v1/import/progress", {"sessionId": "reach-planning-0-00000000"}),
    ):
        r = client.request(method.upper(), url, json=payload)
        assert r.status_code == 404, url
        assert r.json()["success"] is False


def test_duplicate_session_id_and_unknown_template(client: TestClient):
    payload = {"records": [], "template": "reach_planning", "sessionId": "reach-planning-1-cafebabe"}
    assert client.post("/api/v1/sessions", json=payload).status_code == 201
    assert client.post("/api/v1/sessions", json=payload).status_code == 409
    r = client.post("/api/v1/sessions", json={"records": [], "template": "budgets"})
    assert r.status_code == 400


def test_cancel_without_running_import_conflicts(client: TestClient, reach_row):
    session_id = _create_session(client, [reach_row()])
    r = client.post("/api/v1/import/cancel", json={"sessionId": session_id})
    assert r.status_code == 409


def test_request_validation_error_envelope(client: TestClient):
    r = client.post("/api/v1/validate", json={})
    assert r.status_code == 422
    assert r.json()["message"] == "Request validation failed"


def test_master_data_endpoint(client: TestClient, master_data):
    r = client.get("/api/v1/master-data")
    assert r.status_code == 200
    data = r.json()["data"]
    assert "germany" in data["countries"]
    assert data["countryToSubRegion"]["germany"] == "DACH"


def test_health_reports_queue(client: TestClient):
    r = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "req-123"
    body = r.json()
    assert body["status"] == "healthy"
    assert body["queue"]["shutdown"] is False
