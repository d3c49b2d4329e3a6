import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_conversation_service, get_file_service
from api.main import app
from api.services.file_service import ProcessedFileService
from census_intake.config import AppConfig
from census_intake.conversation.service import ConversationService

from conftest import census_csv


@pytest.fixture
def client(pipeline):
    config = AppConfig(max_upload_bytes=4096)
    file_service = ProcessedFileService(pipeline=pipeline, config=config)
    conversation_service = ConversationService(mapper=pipeline.mapper)
    app.dependency_overrides[get_file_service] = lambda: file_service
    app.dependency_overrides[get_conversation_service] = lambda: conversation_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client, name="plantilla.csv", content=None, media_type="text/csv"):
    return client.post(
        "/api/v1/files",
        files={"file": (name, census_csv() if content is None else content, media_type)},
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["message"] == "Census Intake API"


def test_upload_returns_initial_questions(client):
    response = _upload(client)
    assert response.status_code == 200
    body = response.json()
    assert body["source_kind"] == "delimited_text"
    assert body["format"]["primary_format"] == "delimited_table"
    assert len(body["tables"]) == 1
    critical = [q for q in body["questions"] if q["severity"] == "critical"]
    assert [q["id"] for q in critical] == ["missing_active_personnel_hire_date"]

    again = client.get(f"/api/v1/files/{body['file_id']}")
    assert again.status_code == 200
    assert again.json()["file_name"] == "plantilla.csv"


def test_full_conversation(client):
    file_id = _upload(client).json()["file_id"]

    started = client.post("/api/v1/conversations", json={"client_id": "acme", "file_id": file_id})
    assert started.status_code == 200
    session = started.json()
    assert session["is_complete"] is False
    assert session["step"] == "column_mapping"
    session_id = session["session_id"]

    current = client.get(f"/api/v1/conversations/{session_id}").json()
    assert current["pending_questions"][0]["id"] == "missing_active_personnel_hire_date"

    answered = client.post(
        f"/api/v1/conversations/{session_id}/answers",
        json={"question_id": "missing_active_personnel_hire_date", "option_id": "not_available"},
    )
    assert answered.status_code == 200
    outcome = answered.json()
    assert outcome["accepted"] is True
    assert outcome["is_complete"] is True
    dataset = outcome["finalized_dataset"]
    assert len(dataset["records"]["active_personnel"]) == 10
    assert dataset["mapping"]["active_personnel"]["base_salary"] == ["Sueldo"]

    assert client.get(f"/api/v1/conversations/{session_id}").status_code == 404


def test_unknown_question_is_not_accepted(client):
    file_id = _upload(client).json()["file_id"]
    session_id = client.post(
        "/api/v1/conversations", json={"client_id": "acme", "file_id": file_id}
    ).json()["session_id"]

    response = client.post(
        f"/api/v1/conversations/{session_id}/answers",
        json={"question_id": "nope", "option_id": "skip", "value": "  "},
    )

    assert response.status_code == 200
    assert response.json()["accepted"] is False
    assert "Unknown question" in response.json()["reason"]


def test_not_found_errors(client):
    missing_file = client.get("/api/v1/files/deadbeef")
    assert missing_file.status_code == 404
    assert missing_file.json()["error_type"] == "ProcessedFileNotFoundError"

    missing_session = client.post(
        "/api/v1/conversations/val_missing/answers",
        json={"question_id": "q", "option_id": "o"},
    )
    assert missing_session.status_code == 404
    assert missing_session.json()["error_type"] == "SessionNotFoundError"

    start = client.post("/api/v1/conversations", json={"client_id": "acme", "file_id": "deadbeef"})
    assert start.status_code == 404


def test_bad_uploads(client):
    empty = _upload(client, content=b"")
    assert empty.status_code == 422
    assert empty.json()["error_type"] == "EmptyGridError"

    junk = _upload(client, name="data.bin", content=b"\x00\x01\x02\x03" * 50, media_type="application/octet-stream")
    assert junk.status_code == 422
    assert junk.json()["error_type"] == "UnsupportedFileError"

    too_large = _upload(client, content=b"a,b\n" * 2000)
    assert too_large.status_code == 413


def test_invalid_start_request(client):
    response = client.post("/api/v1/conversations", json={"client_id": "acme corp!", "file_id": "x"})
    assert response.status_code == 422
    assert response.json()["error_type"] == "ValidationError"
