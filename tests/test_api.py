"""Tests for the HTTP API."""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from workshop_assistant.api.app import create_fastapi_app
from workshop_assistant.app import Application
from workshop_assistant.dialogue import SessionBusyError
from workshop_assistant.dialogue import prompts


@pytest.fixture
def application(tmp_path, mock_completion):
    workshops_file = tmp_path / "workshops.json"
    workshops_file.write_text(
        json.dumps(
            [
                {
                    "id": "web-dev",
                    "title": "Web Development Fundamentals",
                    "capacity": 2,
                    "start_date": "2025-04-18T13:00:00+00:00",
                }
            ]
        ),
        encoding="utf-8",
    )
    return Application(
        db_path=":memory:",
        completion_client=mock_completion,
        workshops_file=str(workshops_file),
    )


@pytest.fixture
def client(application):
    with TestClient(create_fastapi_app(application)) as test_client:
        yield test_client


class TestChatRoutes:
    """Tests for /api/chat."""

    def test_create_session(self, client):
        response = client.post("/api/chat/sessions")

        assert response.status_code == 200
        assert response.json()["session_id"]

    def test_history_starts_with_welcome(self, client):
        response = client.get("/api/chat/sessions/s1/messages")

        assert response.status_code == 200
        assert response.json() == [
            {"role": "assistant", "content": prompts.WELCOME_MESSAGE}
        ]

    def test_send_message(self, client):
        response = client.post(
            "/api/chat/messages", json={"session_id": "s1", "text": "Hello"}
        )

        assert response.status_code == 200
        assert response.json() == {"response": "Test response"}

        history = client.get("/api/chat/sessions/s1/messages").json()
        assert [m["role"] for m in history] == ["assistant", "user", "assistant"]

    def test_registration_over_http(self, client):
        """Test a full registration through the message endpoint."""
        client.post(
            "/api/chat/messages",
            json={"session_id": "s1", "text": "I would like to enroll for web development"},
        )
        response = client.post(
            "/api/chat/messages",
            json={
                "session_id": "s1",
                "text": "My name is Ada Lovelace and my email is ada@example.com",
            },
        )

        assert response.json()["response"] == prompts.registration_confirmed_reply(
            "Web Development Fundamentals"
        )

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_message_rejected(self, client, text):
        response = client.post("/api/chat/messages", json={"session_id": "s1", "text": text})
        assert response.status_code == 422

    def test_busy_session_conflict(self, client, application):
        application.dialogue_controller.handle_message = AsyncMock(
            side_effect=SessionBusyError("busy")
        )

        response = client.post("/api/chat/messages", json={"session_id": "s1", "text": "hi"})

        assert response.status_code == 409

    def test_unexpected_error(self, client, application):
        application.dialogue_controller.handle_message = AsyncMock(
            side_effect=RuntimeError("boom")
        )

        response = client.post("/api/chat/messages", json={"session_id": "s1", "text": "hi"})

        assert response.status_code == 500


class TestObservabilityRoutes:
    """Tests for /api/trace-events."""

    def test_trace_events_for_session(self, client):
        client.post("/api/chat/messages", json={"session_id": "s1", "text": "Hello"})
        client.post("/api/chat/messages", json={"session_id": "s2", "text": "Hello"})

        response = client.get("/api/trace-events", params={"session_id": "s1"})

        assert response.status_code == 200
        events = response.json()
        assert {e["event_type"] for e in events} == {"message_received", "message_responded"}
        assert all(e["data"]["session_id"] == "s1" for e in events)

    def test_event_type_filter(self, client):
        client.post("/api/chat/messages", json={"session_id": "s1", "text": "Hello"})

        events = client.get(
            "/api/trace-events", params={"event_type": "message_received"}
        ).json()

        assert len(events) == 1

    def test_invalid_after(self, client):
        response = client.get("/api/trace-events", params={"after": "yesterday"})
        assert response.status_code == 400


class TestControlRoutes:
    """Tests for /api/control."""

    def test_health(self, client):
        assert client.get("/api/control/health").json() == {"status": "ok"}

    def test_reset(self, client):
        client.post("/api/chat/messages", json={"session_id": "s1", "text": "Hello"})

        response = client.post("/api/control/reset")

        assert response.status_code == 200
        assert client.get("/api/trace-events").json() == []
