"""
AI Response Generator

Produces the coach's next line for a session.

Turn kinds:
- turn 0 (forcing): the model is asked to repeat the onboarding text plus
  the scenario intro line verbatim; the scripted text is what gets delivered
- turn 1 (guided): the scenario's after-response line is sent as coaching
  material to build on
- later turns: free generation under register/word-ceiling instructions

Every call runs under a short timeout. Transport failures and timeouts give
a canned fallback line. Output containing banned vocabulary is regenerated
once with a stricter instruction; a second failure raises ContentPolicyError.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from cue_voice_coach.curriculum_scripts import forced_opening, get_script
from cue_voice_coach.errors import ContentPolicyError, TurnBackendError
from cue_voice_coach.fallback_responses import fallback_for
from cue_voice_coach.grade_policy import GradePolicy
from cue_voice_coach.response_validator import BANNED_TERMS, validate
from cue_voice_coach.session_state import ConversationSession, Phase
from cue_voice_coach.settings import CoachSettings
from cue_voice_coach.turn_backend import TurnBackend, TurnRequest, TurnResponse, forcing_instruction

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2

PHASE_GUIDANCE = {
    Phase.INTRO: "Welcome the learner and set up the scenario.",
    Phase.PRACTICE: "Stay in the role-play. Respond as the other person would, then give one short coaching tip.",
    Phase.FEEDBACK: "Give specific, encouraging feedback on how the learner handled the scenario.",
    Phase.COMPLETE: "Wrap up warmly. Celebrate what the learner practiced today.",
}

_WRAPPING_QUOTES = "\"'“”‘’"
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class GeneratedReply:
    text: str
    declared_next_phase: Optional[Phase] = None
    is_fallback: bool = False
    attempts: int = 1
    forced: bool = False


def _normalize_for_comparison(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text.strip().strip(_WRAPPING_QUOTES).strip())


def coaching_instructions(policy: GradePolicy, grade_level: str, phase: Phase) -> str:
    """System instructions sent with every turn."""
    return f"""LANGUAGE: {policy.register_hint}
LENGTH: Keep your reply under {policy.word_limit} words.
PHASE: {PHASE_GUIDANCE.get(phase, "")}
COACHING:
- Name the specific words the learner used.
- Explain why those words worked or did not work.
- Model an improved way to say it.
AUDIENCE: This is for a child in grade {grade_level} at school. Never use workplace, business, or professional language."""


def stricter_instruction(term: str, grade_level: str) -> str:
    """Amended instruction for the single regenerate after a banned term."""
    return (
        f'Your previous response contained inappropriate workplace language ("{term}"). '
        "Remember: this is for a CHILD in SCHOOL, not an adult at work. "
        "Use words about classmates, friends, teachers, recess, lunch, and class projects instead. "
        "CRITICAL: Do not use ANY workplace, business, or professional language. "
        f"This is for a child in grade {grade_level}."
    )


class AIResponseGenerator:
    def __init__(
        self,
        backend: TurnBackend,
        settings: Optional[CoachSettings] = None,
        banned_terms: Iterable[str] = BANNED_TERMS,
    ):
        self.backend = backend
        self.settings = settings or CoachSettings()
        self.banned_terms = tuple(banned_terms)
        # Backend calls made, across all turns; tests read this
        self.call_count = 0

    async def generate(
        self,
        session: ConversationSession,
        learner_utterance: Optional[str] = None,
    ) -> GeneratedReply:
        """
        Generate the coach reply for the session's current turn.

        Args:
            session: Session whose transcript already holds the learner utterance
            learner_utterance: The utterance being answered (None at session start)

        Returns:
            GeneratedReply with the text to speak and any backend-declared phase

        Raises:
            ContentPolicyError: If the regenerated reply still contains a banned term
        """
        turn_count = session.turn_count
        if turn_count == 0:
            return await self._generate_forced_opening(session)

        grade_level = self._grade_level(session)
        script = get_script(session.grade_band, session.scenario_key)
        request = TurnRequest(
            conversation_history=session.history_for_backend(self.settings.history_window),
            scenario_title=session.scenario.title,
            grade_level=grade_level,
            phase=session.phase.value,
            curriculum_script=script.after_response_line if turn_count == 1 else None,
            system_instructions=coaching_instructions(session.timing_policy, grade_level, session.phase),
        )

        logger.info(
            f"🤖 [Generator] Turn {turn_count} ({session.phase.value}) "
            f"{'guided' if turn_count == 1 else 'free'}: {(learner_utterance or '')[:60]!r}"
        )

        try:
            response = await self._call_backend(request)
        except TurnBackendError as e:
            return self._fallback(session, e)

        result = validate(response.ai_response, self.banned_terms)
        if result.is_valid:
            return self._reply(response, attempts=1)

        logger.warning(f"🔁 [Generator] Regenerating once without {result.violating_term!r}")
        retry_request = replace(
            request,
            system_instructions=(
                f"{request.system_instructions}\n\n"
                f"{stricter_instruction(result.violating_term, grade_level)}"
            ),
        )
        try:
            response = await self._call_backend(retry_request)
        except TurnBackendError as e:
            return self._fallback(session, e)

        result = validate(response.ai_response, self.banned_terms)
        if not result.is_valid:
            logger.error(f"❌ [Generator] Regenerated reply still contains {result.violating_term!r}")
            raise ContentPolicyError(result.violating_term, attempts=MAX_ATTEMPTS)

        return self._reply(response, attempts=MAX_ATTEMPTS)

    async def _generate_forced_opening(self, session: ConversationSession) -> GeneratedReply:
        scripted = forced_opening(session.grade_band, session.scenario_key)
        grade_level = self._grade_level(session)
        history = session.history_for_backend(self.settings.history_window)
        history.append({"role": "user", "text": forcing_instruction(scripted)})

        request = TurnRequest(
            conversation_history=history,
            scenario_title=session.scenario.title,
            grade_level=grade_level,
            phase=session.phase.value,
            curriculum_script=scripted,
            force_verbatim=True,
            system_instructions=coaching_instructions(session.timing_policy, grade_level, session.phase),
        )

        logger.info(f"🎯 [Generator] Forcing turn 0 for {session.grade_band.value}/{session.scenario_key}")
        try:
            response = await self._call_backend(request)
        except TurnBackendError as e:
            return self._fallback(session, e)

        if _normalize_for_comparison(response.ai_response) != _normalize_for_comparison(scripted):
            logger.warning("⚠️ [Generator] Model paraphrased the forced opening, delivering the scripted text")

        return GeneratedReply(
            text=scripted,
            declared_next_phase=Phase.parse(response.next_phase),
            forced=True,
        )

    async def _call_backend(self, request: TurnRequest) -> TurnResponse:
        self.call_count += 1
        try:
            return await asyncio.wait_for(
                self.backend.request_turn(request),
                timeout=self.settings.generation_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TurnBackendError(
                f"Turn backend timed out after {self.settings.generation_timeout_seconds}s"
            ) from e
        except OSError as e:
            raise TurnBackendError(f"Turn backend connection failed: {e}") from e
        except TurnBackendError:
            raise
        except Exception as e:
            logger.error(f"❌ [Generator] Unexpected {type(e).__name__} from turn backend: {e}")
            raise TurnBackendError(f"Turn backend failed: {e}") from e

    def _fallback(self, session: ConversationSession, error: Exception) -> GeneratedReply:
        text = fallback_for(session.grade_band, session.phase, session.turn_count, session.scenario_key)
        logger.warning(f"⚠️ [Generator] Using fallback for turn {session.turn_count}: {error}")
        return GeneratedReply(text=text, is_fallback=True, attempts=0, forced=session.turn_count == 0)

    @staticmethod
    def _reply(response: TurnResponse, attempts: int) -> GeneratedReply:
        return GeneratedReply(
            text=response.ai_response,
            declared_next_phase=Phase.parse(response.next_phase),
            attempts=attempts,
        )

    @staticmethod
    def _grade_level(session: ConversationSession) -> str:
        if session.grade_level is None or str(session.grade_level).strip() == "":
            return session.grade_band.value
        return str(session.grade_level).strip()
