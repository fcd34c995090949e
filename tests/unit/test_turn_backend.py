"""
Unit Tests for Turn Backend

Tests the wire contract, prompt assembly and both backends with fake transports.
"""

import json
import pytest
import sys
import os
from types import SimpleNamespace

import httpx
from openai import OpenAIError

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "cue_voice_coach", "src"))

from cue_voice_coach.errors import TurnBackendError
from cue_voice_coach.turn_backend import (
    HttpTurnBackend,
    OpenAITurnBackend,
    TurnRequest,
    TurnResponse,
    build_messages,
    build_system_prompt,
    forcing_instruction,
)


def make_request(**overrides) -> TurnRequest:
    fields = dict(
        conversation_history=[
            {"role": "assistant", "text": "Hi! Can you say hi to me?"},
            {"role": "user", "text": "Hi Cue"},
        ],
        scenario_title="Starting a conversation",
        grade_level="2",
        phase="practice",
    )
    fields.update(overrides)
    return TurnRequest(**fields)


class FakeCompletions:
    def __init__(self, content="Nice job saying hi!", error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


class FakeOpenAIClient:
    def __init__(self, completions):
        self.chat = SimpleNamespace(completions=completions)
        self.closed = False

    async def close(self):
        self.closed = True


class TestWireContract:
    """Test suite for request/response payloads."""

    def test_request_payload_uses_camel_case(self):
        payload = make_request(curriculum_script="Great job!").to_payload()
        assert payload["conversationHistory"][1] == {"role": "user", "text": "Hi Cue"}
        assert payload["scenario"] == {"title": "Starting a conversation"}
        assert payload["gradeLevel"] == "2"
        assert payload["phase"] == "practice"
        assert payload["curriculumScript"] == "Great job!"
        assert "forceVerbatim" not in payload
        assert "systemInstructions" not in payload

    def test_response_from_payload(self):
        response = TurnResponse.from_payload({"aiResponse": " Hello! ", "nextPhase": "feedback", "shouldContinue": True})
        assert response.ai_response == "Hello!"
        assert response.next_phase == "feedback"
        assert response.should_continue is True

    @pytest.mark.parametrize("payload", [
        None,
        [],
        "text",
        {},
        {"aiResponse": ""},
        {"aiResponse": "   "},
        {"aiResponse": 42},
    ])
    def test_malformed_payload_raises(self, payload):
        with pytest.raises(TurnBackendError):
            TurnResponse.from_payload(payload)

    def test_odd_optional_fields_are_dropped(self):
        response = TurnResponse.from_payload({"aiResponse": "Hi", "nextPhase": 3, "shouldContinue": "yes"})
        assert response.next_phase is None
        assert response.should_continue is None


class TestPromptAssembly:
    """Test suite for the shared system prompt and message list."""

    def test_system_prompt_contents(self):
        prompt = build_system_prompt(make_request(system_instructions="LENGTH: under 8 words."))
        assert "You are Cue" in prompt
        assert "grade 2" in prompt
        assert "K-2 student" in prompt
        assert "Current scenario: Starting a conversation" in prompt
        assert "Current phase: practice" in prompt
        assert "RESPOND WITH EXACTLY:" in prompt
        assert prompt.endswith("LENGTH: under 8 words.")

    def test_coaching_material_only_when_not_forced(self):
        guided = build_system_prompt(make_request(curriculum_script="You said hi!"))
        forced = build_system_prompt(make_request(curriculum_script="You said hi!", force_verbatim=True))
        assert "Coaching material" in guided and "You said hi!" in guided
        assert "Coaching material" not in forced

    def test_history_roles_are_mapped(self):
        messages = build_messages(make_request(conversation_history=[
            {"role": "user", "text": "hello"},
            {"role": "coach", "content": "hi there"},
            {"role": "user", "text": ""},
        ]))
        assert [m["role"] for m in messages] == ["system", "user", "assistant"]
        assert messages[2]["content"] == "hi there"

    def test_forcing_instruction_appended_once(self):
        scripted = "Hi, I'm Cue."
        request = make_request(conversation_history=[], curriculum_script=scripted, force_verbatim=True)
        messages = build_messages(request)
        assert messages[-1] == {"role": "user", "content": forcing_instruction(scripted)}

        request.conversation_history = [{"role": "user", "text": forcing_instruction(scripted)}]
        messages = build_messages(request)
        forcing = [m for m in messages if m["content"] == forcing_instruction(scripted)]
        assert len(forcing) == 1


class TestHttpTurnBackend:
    """Test suite for the httpx backend."""

    def make_backend(self, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpTurnBackend("http://coach.test/api/voice/conversation", client=client)

    @pytest.mark.asyncio
    async def test_posts_payload_and_parses_reply(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"aiResponse": "Nice!", "nextPhase": "practice"})

        backend = self.make_backend(handler)
        response = await backend.request_turn(make_request())
        assert response.ai_response == "Nice!"
        assert response.next_phase == "practice"
        assert seen["body"]["gradeLevel"] == "2"
        await backend.client.aclose()

    @pytest.mark.asyncio
    async def test_non_2xx_is_backend_error(self):
        backend = self.make_backend(lambda request: httpx.Response(502, json={"error": "model down"}))
        with pytest.raises(TurnBackendError) as exc_info:
            await backend.request_turn(make_request())
        assert exc_info.value.status_code == 502
        await backend.client.aclose()

    @pytest.mark.asyncio
    async def test_malformed_json_is_backend_error(self):
        backend = self.make_backend(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(TurnBackendError):
            await backend.request_turn(make_request())
        await backend.client.aclose()

    @pytest.mark.asyncio
    async def test_invalid_url_is_backend_error(self):
        def handler(request):
            raise httpx.InvalidURL("Invalid URL component")

        backend = self.make_backend(handler)
        with pytest.raises(TurnBackendError):
            await backend.request_turn(make_request())
        await backend.client.aclose()

    @pytest.mark.asyncio
    async def test_transport_failure_is_backend_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = self.make_backend(handler)
        with pytest.raises(TurnBackendError):
            await backend.request_turn(make_request())
        await backend.client.aclose()


class TestOpenAITurnBackend:
    """Test suite for the in-process chat model backend."""

    @pytest.mark.asyncio
    async def test_reply_and_call_parameters(self):
        completions = FakeCompletions(content="  Nice job saying hi!  ")
        backend = OpenAITurnBackend(client=FakeOpenAIClient(completions), model="gpt-test")
        response = await backend.request_turn(make_request())

        assert response.ai_response == "Nice job saying hi!"
        assert response.should_continue is True
        call = completions.calls[0]
        assert call["model"] == "gpt-test"
        assert call["temperature"] == 0.3
        assert call["max_tokens"] == 200
        assert call["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_should_continue_false_when_complete(self):
        backend = OpenAITurnBackend(client=FakeOpenAIClient(FakeCompletions()))
        response = await backend.request_turn(make_request(phase="complete"))
        assert response.should_continue is False

    @pytest.mark.asyncio
    async def test_openai_error_is_backend_error(self):
        backend = OpenAITurnBackend(client=FakeOpenAIClient(FakeCompletions(error=OpenAIError("rate limited"))))
        with pytest.raises(TurnBackendError):
            await backend.request_turn(make_request())

    @pytest.mark.asyncio
    async def test_empty_reply_is_backend_error(self):
        backend = OpenAITurnBackend(client=FakeOpenAIClient(FakeCompletions(content="")))
        with pytest.raises(TurnBackendError):
            await backend.request_turn(make_request())

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = FakeOpenAIClient(FakeCompletions())
        backend = OpenAITurnBackend(client=client)
        await backend.aclose()
        assert client.closed is False

    def test_api_key_required_without_client(self):
        with pytest.raises(ValueError):
            OpenAITurnBackend(api_key=None)
