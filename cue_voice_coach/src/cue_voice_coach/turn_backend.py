"""
Turn Backend

Wire contract with the conversational turn endpoint, and the two backends
that speak it:

- HttpTurnBackend: POSTs to the FastAPI turn endpoint with httpx
- OpenAITurnBackend: calls the chat model in-process with AsyncOpenAI

Request:  {conversationHistory, scenario: {title}, gradeLevel, phase,
           curriculumScript?, forceVerbatim?, systemInstructions?}
Response: {aiResponse, nextPhase?, shouldContinue?}

Any transport failure, non-2xx status or malformed payload is raised as
TurnBackendError.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from cue_voice_coach.errors import TurnBackendError
from cue_voice_coach.grade_policy import resolve_policy

logger = logging.getLogger(__name__)

FORCING_PREFIX = "RESPOND WITH EXACTLY:"


def forcing_instruction(text: str) -> str:
    """Synthetic learner-role instruction asking the model to repeat ``text`` verbatim."""
    return f'{FORCING_PREFIX} "{text}"'


@dataclass
class TurnRequest:
    conversation_history: List[Dict[str, str]]
    scenario_title: str
    grade_level: str
    phase: str
    curriculum_script: Optional[str] = None
    force_verbatim: bool = False
    system_instructions: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "conversationHistory": list(self.conversation_history),
            "scenario": {"title": self.scenario_title},
            "gradeLevel": self.grade_level,
            "phase": self.phase,
        }
        if self.curriculum_script:
            payload["curriculumScript"] = self.curriculum_script
        if self.force_verbatim:
            payload["forceVerbatim"] = True
        if self.system_instructions:
            payload["systemInstructions"] = self.system_instructions
        return payload


@dataclass
class TurnResponse:
    ai_response: str
    next_phase: Optional[str] = None
    should_continue: Optional[bool] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Any) -> "TurnResponse":
        if not isinstance(payload, dict):
            raise TurnBackendError(f"Malformed turn response: expected object, got {type(payload).__name__}")

        ai_response = payload.get("aiResponse")
        if not isinstance(ai_response, str) or not ai_response.strip():
            raise TurnBackendError("Malformed turn response: missing aiResponse")

        next_phase = payload.get("nextPhase")
        if next_phase is not None and not isinstance(next_phase, str):
            next_phase = None

        should_continue = payload.get("shouldContinue")
        if should_continue is not None and not isinstance(should_continue, bool):
            should_continue = None

        return cls(
            ai_response=ai_response.strip(),
            next_phase=next_phase,
            should_continue=should_continue,
            raw=payload,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"aiResponse": self.ai_response}
        if self.next_phase is not None:
            payload["nextPhase"] = self.next_phase
        if self.should_continue is not None:
            payload["shouldContinue"] = self.should_continue
        return payload


class TurnBackend:
    """Interface for anything that can produce one coach turn."""

    async def request_turn(self, request: TurnRequest) -> TurnResponse:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Prompt assembly (shared by the in-process backend and the FastAPI endpoint)
# ---------------------------------------------------------------------------

def build_system_prompt(request: TurnRequest) -> str:
    policy = resolve_policy(request.grade_level)
    prompt = f"""You are Cue, a social skills coach for students in grade {request.grade_level}.

{policy.age_context}

Current scenario: {request.scenario_title}
Current phase: {request.phase}

CRITICAL INSTRUCTION: When you receive a message that says "{FORCING_PREFIX}", you MUST repeat that exact text word-for-word. Do not paraphrase, add to it, or change it in any way. Just say those exact words."""

    if request.curriculum_script and not request.force_verbatim:
        prompt += (
            "\n\nCoaching material for this reply (build on it, you do not need to repeat it word-for-word):\n"
            f"{request.curriculum_script}"
        )

    if request.system_instructions:
        prompt += f"\n\n{request.system_instructions}"

    return prompt


def build_messages(request: TurnRequest) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": build_system_prompt(request)}]

    for entry in request.conversation_history:
        text = entry.get("text") or entry.get("content") or ""
        if not text:
            continue
        role = "user" if entry.get("role") == "user" else "assistant"
        messages.append({"role": role, "content": text})

    if request.force_verbatim and request.curriculum_script:
        instruction = forcing_instruction(request.curriculum_script)
        last = messages[-1] if len(messages) > 1 else None
        if not last or last["role"] != "user" or last["content"] != instruction:
            messages.append({"role": "user", "content": instruction})

    return messages


class HttpTurnBackend(TurnBackend):
    """Turn backend that POSTs to the conversational turn endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint_url = endpoint_url
        self.headers = headers or {}
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def request_turn(self, request: TurnRequest) -> TurnResponse:
        logger.debug(f"🌐 [TurnBackend] POST {self.endpoint_url} (phase={request.phase}, forced={request.force_verbatim})")
        try:
            response = await self.client.post(
                self.endpoint_url,
                json=request.to_payload(),
                headers=self.headers,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TurnBackendError(f"Turn endpoint unreachable: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise TurnBackendError(
                f"Turn endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TurnBackendError("Turn endpoint returned malformed JSON", status_code=response.status_code) from e

        return TurnResponse.from_payload(payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class OpenAITurnBackend(TurnBackend):
    """Turn backend that calls the chat model directly."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        client: Optional[AsyncOpenAI] = None,
        temperature: float = 0.3,
        max_tokens: int = 200,
    ):
        self._owns_client = client is None
        if client is None:
            if not api_key:
                raise ValueError("OPENAI_API_KEY is required for the OpenAI turn backend")
            client = AsyncOpenAI(api_key=api_key)
        self.llm_client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def request_turn(self, request: TurnRequest) -> TurnResponse:
        try:
            response = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=build_messages(request),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise TurnBackendError(f"Language model call failed: {e}") from e

        if not response.choices:
            raise TurnBackendError("Language model returned no choices")
        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise TurnBackendError("Language model returned an empty reply")

        return TurnResponse(
            ai_response=content,
            should_continue=request.phase != "complete",
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.llm_client.close()
