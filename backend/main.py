"""
FastAPI Backend for the Cue Voice Coach

Hosts the conversational turn endpoint the voice-practice orchestrator
talks to:
- POST /api/voice/conversation: one coach turn from the chat model
- GET  /api/voice/policy/{grade_level}: timing/length policy for a grade
- GET  /api/voice/scripts/{grade_level}: curriculum scripts for a grade band
- GET  /: health check
"""

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
import os
import sys
import time
import logging
import signal

from lib.logger import setup_logging, get_logger

setup_logging(level=logging.INFO, use_colors=True)

logger = get_logger("backend.main")

# Add the cue_voice_coach package to Python path
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)

package_src = os.path.join(project_root, 'cue_voice_coach', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from lib.auth import get_current_learner
from lib.supabase_client import is_supabase_configured

from cue_voice_coach.curriculum_scripts import available_scripts, compose_onboarding
from cue_voice_coach.errors import TurnBackendError
from cue_voice_coach.grade_policy import normalize_grade_band, resolve_policy
from cue_voice_coach.scenario_classifier import resolve_scenario
from cue_voice_coach.settings import CoachSettings
from cue_voice_coach.turn_backend import OpenAITurnBackend, TurnBackend, TurnRequest

SERVICE_NAME = "Cue Voice Coach API"
SERVICE_VERSION = "1.0.0"


class BackendNotConfigured(Exception):
    """The chat model backend cannot be built from the current environment."""


# Singleton so the OpenAI client is not rebuilt on every request
_turn_backend: Optional[TurnBackend] = None


def get_turn_backend() -> TurnBackend:
    """Get or create the singleton in-process turn backend."""
    global _turn_backend
    if _turn_backend is None:
        settings = CoachSettings.from_env()
        if not settings.openai_api_key:
            raise BackendNotConfigured("OPENAI_API_KEY is not set")
        _turn_backend = OpenAITurnBackend(api_key=settings.openai_api_key, model=settings.openai_model)
    return _turn_backend


app = FastAPI(
    title=SERVICE_NAME,
    description="Conversational turn endpoint for voice-driven social-skills practice",
    version=SERVICE_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BackendNotConfigured)
async def backend_not_configured_handler(request: Request, exc: BackendNotConfigured):
    logger.error("Turn backend not configured", error=exc)
    return JSONResponse(status_code=503, content={"error": str(exc)})


# ==================== Pydantic Models ====================

class HistoryEntry(BaseModel):
    role: str = "user"
    text: Optional[str] = None
    content: Optional[str] = None


class ScenarioRef(BaseModel):
    # Plain string, or one wording per grade band
    title: Optional[Union[str, Dict[str, str]]] = None
    name: Optional[str] = None


class ConversationRequest(BaseModel):
    conversationHistory: List[HistoryEntry] = Field(default_factory=list)
    scenario: ScenarioRef = Field(default_factory=ScenarioRef)
    gradeLevel: Union[str, int] = "6"
    phase: str = "intro"
    curriculumScript: Optional[str] = None
    forceVerbatim: bool = False
    systemInstructions: Optional[str] = None

    def to_turn_request(self) -> TurnRequest:
        grade_level = str(self.gradeLevel)
        scenario = resolve_scenario(
            {"title": self.scenario.title, "name": self.scenario.name},
            normalize_grade_band(grade_level),
        )
        history = []
        for entry in self.conversationHistory:
            text = entry.text or entry.content
            if text:
                history.append({"role": entry.role, "text": text})
        return TurnRequest(
            conversation_history=history,
            scenario_title=scenario.title,
            grade_level=grade_level,
            phase=self.phase,
            curriculum_script=self.curriculumScript,
            force_verbatim=self.forceVerbatim,
            system_instructions=self.systemInstructions,
        )


class ConversationResponse(BaseModel):
    aiResponse: str
    nextPhase: Optional[str] = None
    shouldContinue: bool
    phase: str


# ==================== API Endpoints ====================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "openai_configured": bool(os.getenv("OPENAI_API_KEY")),
        "supabase_configured": is_supabase_configured(),
    }


@app.post("/api/voice/conversation", response_model=ConversationResponse, response_model_exclude_none=True)
async def voice_conversation(
    body: ConversationRequest,
    learner: dict = Depends(get_current_learner),
    backend: TurnBackend = Depends(get_turn_backend),
):
    """
    Produce one coach turn.

    Returns {aiResponse, nextPhase?, shouldContinue, phase}. Model failures
    come back as 502 so the orchestrator falls back to canned text.
    """
    start_time = time.time()
    path = "/api/voice/conversation"
    logger.request("POST", path, learner_id=learner.get("id"), data={
        "grade_level": str(body.gradeLevel),
        "phase": body.phase,
        "history_length": len(body.conversationHistory),
        "force_verbatim": body.forceVerbatim,
    })

    try:
        turn = await backend.request_turn(body.to_turn_request())
    except TurnBackendError as e:
        logger.error("Turn generation failed", error=e)
        logger.response(502, path, duration=time.time() - start_time)
        return JSONResponse(status_code=502, content={"error": str(e)})

    should_continue = turn.should_continue
    if should_continue is None:
        should_continue = body.phase != "complete"

    logger.response(200, path, duration=time.time() - start_time, data={
        "reply_preview": turn.ai_response[:80],
        "next_phase": turn.next_phase,
    })
    return ConversationResponse(
        aiResponse=turn.ai_response,
        nextPhase=turn.next_phase,
        shouldContinue=should_continue,
        phase=body.phase,
    )


@app.get("/api/voice/policy/{grade_level}")
async def voice_policy(grade_level: str):
    """Timing and length policy for a grade level, for front-end timers."""
    policy = resolve_policy(grade_level)
    return {
        "gradeBand": policy.band.value,
        "wordLimit": policy.word_limit,
        "interTurnDelayMs": policy.inter_turn_delay_ms,
        "silenceTimeoutMs": policy.silence_timeout_ms,
        "registerHint": policy.register_hint,
        "speechRate": policy.speech_rate,
        "paceLabel": policy.pace_label,
    }


@app.get("/api/voice/scripts/{grade_level}")
async def voice_scripts(grade_level: str):
    """Onboarding text and per-scenario scripts for a grade band."""
    band = normalize_grade_band(grade_level)
    return {
        "gradeBand": band.value,
        "onboarding": compose_onboarding(band),
        "scripts": {
            key: {"introLine": script.intro_line, "afterResponseLine": script.after_response_line}
            for key, script in available_scripts(band).items()
        },
    }


@app.on_event("startup")
async def startup_event():
    logger.section("VOICE COACH BACKEND", {
        "openai_configured": bool(os.getenv("OPENAI_API_KEY")),
        "supabase_configured": is_supabase_configured(),
        "auth_required": os.getenv("VOICE_REQUIRE_AUTH", "false"),
    })


@app.on_event("shutdown")
async def shutdown_event():
    global _turn_backend
    if _turn_backend is not None:
        await _turn_backend.aclose()
        _turn_backend = None
        logger.info("🛑 Turn backend closed")


if __name__ == "__main__":
    import uvicorn

    def handle_exit(*args):
        """Handle graceful shutdown."""
        logger.section("SERVER SHUTDOWN", {"reason": "signal received"})
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    try:
        uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
