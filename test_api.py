"""
Smoke tests for the HTTP surface (FastAPI TestClient over in-memory SQLite)
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from config import settings
from database import create_db_engine, get_db, init_db
from main import app, cors_error_headers
from models import User
from services.diagnosis_service import DiagnosisGenerator
from services.followup_prompts import SECTION_OUTLINES
from services.followup_service import followup_service
from services.workbook_diagnosis import workbook_diagnosis_service


class FakeModel:

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error

    async def complete(self, system_message, user_message, temperature, max_tokens):
        if self.error:
            raise self.error
        return self.text


WORKBOOK_RESPONSE = "\n\n".join(
    f"## {section.heading}\n{section.field} text" for section in SECTION_OUTLINES["workbook"]
)

DIAGNOSIS_RESPONSE = "## SUMMARY\nReady to delegate.\n\n## RECOMMENDED LEADERSHIP PILLARS\n- Delegation and Empowerment"

HEADERS = {"X-User-Id": "u1"}


@pytest.fixture
def client(monkeypatch):
    engine = create_db_engine("sqlite://")
    init_db(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    seed = TestingSession()
    seed.add(User(id="u1", email="dana@example.com", name="Dana"))
    seed.commit()
    seed.close()

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(followup_service, "generator", DiagnosisGenerator(model=FakeModel(WORKBOOK_RESPONSE)))
    monkeypatch.setattr(workbook_diagnosis_service, "model", FakeModel(DIAGNOSIS_RESPONSE))
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def submit_workbook(client):
    response = client.post("/api/workbook/save", json={"workbookId": "wb", "answers": {"q1": "yes"}}, headers=HEADERS)
    assert response.status_code == 200
    response = client.post("/api/workbook/submit", json={"workbookId": "wb"}, headers=HEADERS)
    assert response.status_code == 200
    return response.json()["submissionId"]


class TestApi:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_identity_required(self, client):
        assert client.get("/api/followup/recommendations").status_code == 401

    def test_workbook_lifecycle(self, client):
        submit_workbook(client)
        again = client.post("/api/workbook/submit", json={"workbookId": "wb"}, headers=HEADERS)
        assert again.status_code == 400

    def test_submit_generates_diagnosis(self, client):
        client.post("/api/workbook/save", json={"workbookId": "wb", "answers": {"q1": "yes"}}, headers=HEADERS)
        response = client.post("/api/workbook/submit", json={"workbookId": "wb"}, headers=HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "submitted"
        assert body["diagnosisGenerated"] is True

        viewed = client.get(f"/api/workbook/{body['submissionId']}/diagnosis", headers=HEADERS)
        assert viewed.status_code == 200
        payload = viewed.json()
        assert payload["diagnosis"]["summary"] == "Ready to delegate."
        assert payload["diagnosis"]["followupWorksheets"]["pillars"] == ["pillar7_delegation_empowerment"]
        assert payload["diagnosisViewedAt"] is not None

    def test_submit_survives_diagnosis_failure(self, client, monkeypatch):
        monkeypatch.setattr(workbook_diagnosis_service, "model", FakeModel(error=RuntimeError("rate limited")))
        client.post("/api/workbook/save", json={"workbookId": "wb", "answers": {"q1": "yes"}}, headers=HEADERS)
        response = client.post("/api/workbook/submit", json={"workbookId": "wb"}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["diagnosisGenerated"] is False

        submission_id = response.json()["submissionId"]
        assert client.get(f"/api/workbook/{submission_id}/diagnosis", headers=HEADERS).status_code == 404

        failed = client.post(f"/api/workbook/{submission_id}/diagnosis", headers=HEADERS)
        assert failed.status_code == 502

        monkeypatch.setattr(workbook_diagnosis_service, "model", FakeModel(DIAGNOSIS_RESPONSE))
        regenerated = client.post(f"/api/workbook/{submission_id}/diagnosis", headers=HEADERS)
        assert regenerated.status_code == 200
        assert regenerated.json()["diagnosisGeneratedAt"] is not None
        assert regenerated.json()["diagnosisViewedAt"] is None

    def test_diagnosis_of_unknown_submission(self, client):
        assert client.get("/api/workbook/not-a-real-id/diagnosis", headers=HEADERS).status_code == 404

    def test_recommendations_empty_for_fresh_submission(self, client):
        submit_workbook(client)
        response = client.get("/api/followup/recommendations", headers=HEADERS)
        assert response.status_code == 200
        assert response.json() == {"success": True, "recommendations": []}

    def test_followup_submit_and_fetch(self, client):
        submission_id = submit_workbook(client)

        response = client.post(
            "/api/followup/submit",
            json={"followupId": "followup-1", "originalSubmissionId": submission_id, "answers": {"reflection": "Better meetings"}},
            headers=HEADERS,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["followupType"] == "workbook"
        assessment = body["assessment"]
        assert assessment["status"] == "completed"
        assert assessment["diagnosis"]["summary"] == "summary text"

        fetched = client.get(f"/api/followup/{assessment['id']}", headers=HEADERS)
        assert fetched.status_code == 200
        assert fetched.json()["metadata"]["followupTitle"] == "Ask the Right Questions"

    def test_error_mapping(self, client, monkeypatch):
        submission_id = submit_workbook(client)

        missing = client.get("/api/followup/not-a-real-id", headers=HEADERS)
        assert missing.status_code == 404

        unknown_worksheet = client.post(
            "/api/followup/submit",
            json={"followupId": "nope", "originalSubmissionId": submission_id, "answers": {"a": "b"}},
            headers=HEADERS,
        )
        assert unknown_worksheet.status_code == 404

        bad_answers = client.post(
            "/api/followup/submit",
            json={"followupId": "followup-1", "originalSubmissionId": submission_id, "answers": {"bogus": "b"}},
            headers=HEADERS,
        )
        assert bad_answers.status_code == 400

        monkeypatch.setattr(
            followup_service, "generator", DiagnosisGenerator(model=FakeModel(error=RuntimeError("rate limited")))
        )
        failed = client.post(
            "/api/followup/submit",
            json={"followupId": "followup-1", "originalSubmissionId": submission_id, "answers": {"reflection": "x"}},
            headers=HEADERS,
        )
        assert failed.status_code == 502
        assert failed.json()["detail"] == "Diagnosis unavailable, please retry"

    def test_worksheet_recommendations(self, client):
        response = client.get(
            "/api/worksheets/recommendations",
            params={"worksheetId": "pillar2_goal_setting"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        ids = [r["worksheetId"] for r in response.json()["recommendations"]]
        assert ids == ["pillar2-followup", "pillar3-followup", "pillar1-followup"]

    def test_error_cors_headers_echo_allowed_origin_only(self, monkeypatch):
        monkeypatch.setattr(settings, "ALLOWED_ORIGINS", "https://app.example.com")
        headers = cors_error_headers("https://app.example.com")
        assert headers["Access-Control-Allow-Origin"] == "https://app.example.com"
        assert cors_error_headers("https://evil.example") == {}
        assert cors_error_headers(None) == {}

        monkeypatch.setattr(settings, "ALLOWED_ORIGINS", "*")
        assert cors_error_headers("https://anything.example") == {"Access-Control-Allow-Origin": "*"}
