import base64

import pytest
from fastapi.testclient import TestClient

from app.api.http_api import app
from app.core import identity
from app.llm import service as llm_service
from conftest import FakeGenerator


TEXT_DATA_URL = "data:text/plain;base64," + base64.b64encode(b"Budget approved for 2025.").decode("ascii")


@pytest.fixture
def generator():
    fake = FakeGenerator(text="The budget was approved.")
    llm_service.set_generation_provider(fake)
    return fake


@pytest.fixture
def client(generator):
    return TestClient(app)


def test_health_endpoint_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_chat_with_text_attachment(client, generator):
    response = client.post(
        "/api/chat",
        headers={"X-User-Id": "alice"},
        json={
            "messages": [{"role": "user", "content": "What was decided?"}],
            "files": [{"name": "minutes.txt", "url": TEXT_DATA_URL, "type": "text/plain", "size": 25}],
            "mode": "research",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["content"] == "The budget was approved."
    assert body["filesProcessed"] == 1
    assert body["successfulExtractions"] == 1
    assert body["mode"] == "research"
    assert "Budget approved for 2025." in generator.calls[0][0][2].text


def test_chat_empty_messages_is_400_without_generation(client, generator):
    response = client.post("/api/chat", headers={"X-User-Id": "alice"}, json={"messages": []})

    assert response.status_code == 400
    assert response.json() == {"error": "Messages array is required"}
    assert generator.calls == []


def test_chat_malformed_body_is_400(client):
    response = client.post("/api/chat", headers={"X-User-Id": "alice"}, json={"messages": "hello"})

    assert response.status_code == 400


def test_chat_without_session_is_401(client, generator):
    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert generator.calls == []


def test_session_cookie_is_accepted(client):
    client.cookies.set("userId", "alice")

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 200


def test_chat_unknown_account_is_401(client):
    identity.set_account_directory(identity.StaticAccountDirectory(["alice"]))

    response = client.post(
        "/api/chat",
        headers={"X-User-Id": "mallory"},
        json={"messages": [{"role": "user", "content": "hi"}]},
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Account not found"}


def test_chat_missing_credential_is_500(client):
    llm_service.set_generation_provider(FakeGenerator(configured=False))

    response = client.post(
        "/api/chat",
        headers={"X-User-Id": "alice"},
        json={"messages": [{"role": "user", "content": "hi"}]},
    )

    assert response.status_code == 500
    assert "Configuration error" in response.json()["error"]


def test_extract_content_returns_one_record_per_file(client):
    response = client.post(
        "/api/extract-content",
        headers={"X-User-Id": "alice"},
        json={
            "files": [
                {"name": "minutes.txt", "url": TEXT_DATA_URL, "type": "text/plain", "size": 25},
                {"name": "clip.mp4", "url": "/clip.mp4", "type": "video/mp4", "size": 10},
            ]
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["filesProcessed"] == 2
    first, second = body["extractedContents"]
    assert first["fileName"] == "minutes.txt"
    assert first["content"] == "Budget approved for 2025."
    assert first["metadata"]["kind"] == "txt"
    assert second["success"] is False
    assert second["error"] == "Unsupported file type: video/mp4"


def test_extract_content_requires_files(client):
    response = client.post("/api/extract-content", headers={"X-User-Id": "alice"}, json={"files": []})

    assert response.status_code == 400
    assert response.json() == {"error": "No files provided"}


def test_extract_content_requires_session(client):
    response = client.post("/api/extract-content", json={"files": []})

    assert response.status_code == 401


def test_chat_non_string_mode_falls_back_to_standard(client, generator):
    response = client.post(
        "/api/chat",
        headers={"X-User-Id": "alice"},
        json={"messages": [{"role": "user", "content": "Hi"}], "mode": 7},
    )

    assert response.status_code == 200
    assert response.json()["mode"] == "standard"
    assert len(generator.calls) == 1


def test_extract_content_reports_declared_file_size(client):
    response = client.post(
        "/api/extract-content",
        headers={"X-User-Id": "alice"},
        json={"files": [{"name": "minutes.txt", "url": TEXT_DATA_URL, "type": "text/plain", "size": "25"}]},
    )

    assert response.status_code == 200
    assert response.json()["extractedContents"][0]["fileSize"] == 25
