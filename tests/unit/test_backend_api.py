"""
Unit Tests for the Voice Coach Backend API

Tests the turn endpoint, policy/scripts routes and bearer-token handling
with a fake turn backend.
"""

import pytest
import sys
import os

from fastapi.testclient import TestClient
from jose import jwt

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "cue_voice_coach", "src"))
sys.path.insert(0, os.path.join(project_root, "backend"))

import main  # noqa: E402
from cue_voice_coach.errors import TurnBackendError  # noqa: E402
from cue_voice_coach.turn_backend import TurnBackend, TurnResponse  # noqa: E402

JWT_SECRET = "test-secret-with-enough-length-for-hs256"


class FakeBackend(TurnBackend):
    def __init__(self, reply=None, error=None):
        self.reply = reply or TurnResponse(ai_response="Nice hello!")
        self.error = error
        self.requests = []

    async def request_turn(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.reply


def turn_payload(**overrides):
    payload = {
        "conversationHistory": [
            {"role": "assistant", "text": "Can you say hi to me?"},
            {"role": "user", "text": "Hi!"},
        ],
        "scenario": {"title": "Starting a conversation"},
        "gradeLevel": "K",
        "phase": "practice",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def client(fake_backend, monkeypatch):
    monkeypatch.delenv("VOICE_REQUIRE_AUTH", raising=False)
    monkeypatch.delenv("SUPABASE_JWT_SECRET", raising=False)
    main.app.dependency_overrides[main.get_turn_backend] = lambda: fake_backend
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


class TestConversationEndpoint:
    """Test suite for POST /api/voice/conversation."""

    def test_returns_turn(self, client, fake_backend):
        response = client.post("/api/voice/conversation", json=turn_payload())
        assert response.status_code == 200
        body = response.json()
        assert body["aiResponse"] == "Nice hello!"
        assert body["shouldContinue"] is True
        assert body["phase"] == "practice"
        assert "nextPhase" not in body

        request = fake_backend.requests[0]
        assert request.grade_level == "K"
        assert request.scenario_title == "Starting a conversation"
        assert request.conversation_history[-1] == {"role": "user", "text": "Hi!"}

    def test_complete_phase_does_not_continue(self, client):
        response = client.post("/api/voice/conversation", json=turn_payload(phase="complete"))
        assert response.json()["shouldContinue"] is False

    def test_next_phase_passed_through(self, client, fake_backend):
        fake_backend.reply = TurnResponse(ai_response="Let's wrap up!", next_phase="feedback")
        body = client.post("/api/voice/conversation", json=turn_payload()).json()
        assert body["nextPhase"] == "feedback"

    def test_extension_fields_reach_backend(self, client, fake_backend):
        client.post("/api/voice/conversation", json=turn_payload(
            curriculumScript="Hi, I'm Cue.",
            forceVerbatim=True,
            systemInstructions="LENGTH: under 8 words.",
            gradeLevel=7,
        ))
        request = fake_backend.requests[0]
        assert request.force_verbatim is True
        assert request.curriculum_script == "Hi, I'm Cue."
        assert request.system_instructions == "LENGTH: under 8 words."
        assert request.grade_level == "7"

    def test_by_grade_title_resolved_for_band(self, client, fake_backend):
        client.post("/api/voice/conversation", json=turn_payload(
            scenario={"title": {"K-2": "Say hi", "6-8": "Start a chat"}},
        ))
        assert fake_backend.requests[0].scenario_title == "Say hi"

    def test_content_field_accepted_in_history(self, client, fake_backend):
        client.post("/api/voice/conversation", json=turn_payload(
            conversationHistory=[{"role": "user", "content": "hello"}],
        ))
        assert fake_backend.requests[0].conversation_history == [{"role": "user", "text": "hello"}]

    def test_backend_failure_is_502(self, client, fake_backend):
        fake_backend.error = TurnBackendError("model unavailable")
        response = client.post("/api/voice/conversation", json=turn_payload())
        assert response.status_code == 502
        assert response.json() == {"error": "model unavailable"}

    def test_missing_openai_key_is_503(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("VOICE_REQUIRE_AUTH", raising=False)
        monkeypatch.setattr(main, "_turn_backend", None)
        main.app.dependency_overrides.clear()
        response = TestClient(main.app).post("/api/voice/conversation", json=turn_payload())
        assert response.status_code == 503
        assert "OPENAI_API_KEY" in response.json()["error"]


class TestAuth:
    """Test suite for bearer-token handling on the turn endpoint."""

    def test_anonymous_allowed_by_default(self, client):
        assert client.post("/api/voice/conversation", json=turn_payload()).status_code == 200

    def test_token_required_when_configured(self, client, monkeypatch):
        monkeypatch.setenv("VOICE_REQUIRE_AUTH", "true")
        response = client.post("/api/voice/conversation", json=turn_payload())
        assert response.status_code == 401

    def test_malformed_header_rejected(self, client):
        response = client.post(
            "/api/voice/conversation",
            json=turn_payload(),
            headers={"Authorization": "Token abc"},
        )
        assert response.status_code == 401

    def test_local_jwt_verification(self, client, monkeypatch):
        monkeypatch.setenv("VOICE_REQUIRE_AUTH", "true")
        monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)
        token = jwt.encode(
            {"sub": "learner-1", "aud": "authenticated", "email": "kid@example.com"},
            JWT_SECRET,
            algorithm="HS256",
        )
        response = client.post(
            "/api/voice/conversation",
            json=turn_payload(),
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 200

    def test_bad_jwt_rejected(self, client, monkeypatch):
        monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)
        token = jwt.encode({"sub": "learner-1", "aud": "authenticated"}, "some-other-secret", algorithm="HS256")
        response = client.post(
            "/api/voice/conversation",
            json=turn_payload(),
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401


class TestPolicyAndScripts:
    """Test suite for the read-only routes."""

    def test_health(self, client):
        body = client.get("/").json()
        assert body["status"] == "ok"
        assert "supabase_configured" in body

    def test_policy_route(self, client):
        body = client.get("/api/voice/policy/K").json()
        assert body["gradeBand"] == "K-2"
        assert body["wordLimit"] == 8
        assert body["interTurnDelayMs"] == 1000
        assert body["paceLabel"] == "LIVELY"

    def test_policy_route_defaults(self, client):
        assert client.get("/api/voice/policy/whatever").json()["gradeBand"] == "6-8"

    def test_scripts_route(self, client):
        body = client.get("/api/voice/scripts/10").json()
        assert body["gradeBand"] == "9-12"
        assert body["onboarding"].startswith("Hi, I'm Cue.")
        assert set(body["scripts"]) == {
            "starting-conversation", "making-friends", "paying-attention", "asking-help", "joining-group",
        }
