import io
import time

import pytest
from docx import Document
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    from screener.main import app

    with TestClient(app) as test_client:
        yield test_client


def _docx_bytes(*lines: str) -> bytes:
    doc = Document()
    for line in lines:
        doc.add_paragraph(line)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _wait_for_question(client: TestClient, candidate_id: str, count: int = 1, timeout_sec: float = 3.0) -> dict:
    deadline = time.monotonic() + timeout_sec
    while True:
        view = client.get(f"/api/candidates/{candidate_id}").json()
        if len(view["questions"]) >= count or time.monotonic() > deadline:
            return view
        time.sleep(0.02)


def test_healthz(client: TestClient):
    res = client.get("/healthz")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_unsupported_upload_is_rejected_without_state_change(client: TestClient):
    before = len(client.get("/api/candidates").json()["items"])

    res = client.post("/api/resume/upload", files={"file": ("resume.txt", b"hello", "text/plain")})

    assert res.status_code == 400
    assert res.json()["detail"] == "Only PDF or DOCX files are supported"
    assert len(client.get("/api/candidates").json()["items"]) == before


def test_unreadable_pdf_reports_parse_failure(client: TestClient):
    before = len(client.get("/api/candidates").json()["items"])

    res = client.post("/api/resume/upload", files={"file": ("resume.pdf", b"definitely not a pdf", "application/pdf")})

    assert res.status_code == 400
    assert len(client.get("/api/candidates").json()["items"]) == before


def test_docx_upload_extracts_contact_and_starts_interview(client: TestClient):
    payload = _docx_bytes("Ada Lovelace", "ada.lovelace@example.com", "+1 555 010 0199", "Analytical engines.")

    res = client.post(
        "/api/resume/upload",
        files={"file": ("ada.docx", payload, "application/vnd.openxmlformats-officedocument.wordprocessingml.document")},
    )

    assert res.status_code == 200
    view = res.json()
    assert view["name"] == "Ada Lovelace"
    assert view["email"] == "ada.lovelace@example.com"
    assert view["phone"] == "+1 555 010 0199"
    assert view["resume_file_name"] == "ada.docx"
    assert view["missing_fields"] == []

    view = _wait_for_question(client, view["id"])
    assert len(view["questions"]) == 1
    assert view["questions"][0]["difficulty"] == "easy"
    assert view["stage"] == "answering"


def test_missing_field_then_answer_flow(client: TestClient):
    res = client.post("/api/intake", json={"name": "Grace Hopper", "email": "grace@navy.mil"})
    assert res.status_code == 200
    view = res.json()
    assert view["stage"] == "collecting_missing_fields"
    assert view["missing_fields"] == ["phone"]
    assert view["questions"] == []

    candidate_id = view["id"]
    res = client.patch(f"/api/candidates/{candidate_id}/profile", json={"phone": "123 456 7890"})
    assert res.status_code == 200
    assert res.json()["missing_fields"] == []

    view = _wait_for_question(client, candidate_id)
    question_id = view["questions"][0]["id"]
    assert view["remaining_sec"] is not None

    first = client.post(f"/api/candidates/{candidate_id}/questions/{question_id}/answer", json={"answer": "Compilers!"})
    second = client.post(f"/api/candidates/{candidate_id}/questions/{question_id}/answer", json={"answer": "Changed my mind"})
    assert first.json()["accepted"] is True
    assert second.json()["accepted"] is False

    view = _wait_for_question(client, candidate_id, count=2)
    assert view["questions"][0]["answer"] == "Compilers!"
    assert len(view["questions"]) == 2

    tick = client.post(f"/api/candidates/{candidate_id}/tick").json()
    assert tick["stage"] == "answering"
    assert 0 < tick["remaining_sec"] <= 20

    listed = client.get("/api/candidates", params={"search": "NAVY"}).json()["items"]
    assert [item["id"] for item in listed] == [candidate_id]


def test_unknown_candidate_returns_404(client: TestClient):
    assert client.get("/api/candidates/nope").status_code == 404
    assert client.patch("/api/candidates/nope/profile", json={"phone": "1"}).status_code == 404
    assert client.post("/api/candidates/nope/questions/q/answer", json={"answer": "a"}).status_code == 404
    assert client.post("/api/candidates/nope/tick").status_code == 404


def test_reset_and_session_endpoints(client: TestClient):
    client.post("/api/intake", json={"name": "Alan Turing"})
    assert client.get("/api/active").json()["candidate"]["name"] == "Alan Turing"

    res = client.post("/api/interview/reset")
    assert res.status_code == 200
    assert client.get("/api/active").json()["candidate"] is None
    assert client.get("/api/candidates", params={"search": "turing"}).json()["items"]

    session = client.get("/api/session").json()
    assert session["welcome_back"] is False

    metrics = client.get("/api/system/metrics").json()
    assert "question_fallbacks" in metrics
    assert metrics["ai"]["status"] in {"idle", "loading", "degraded"}
