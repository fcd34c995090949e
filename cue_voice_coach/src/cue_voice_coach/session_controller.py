"""
Session Controller

Façade over one voice-practice session:

- start_session(scenario, grade_level)
- submit_user_utterance(text)
- end_session()

Wires the classifier, grade policy, generator, phase machine and
turn-taking lifecycle together, and publishes an immutable snapshot to
observers after every change. Failures inside the generation pipeline stop
here; only microphone permission denial and the double content-policy
failure reach the UI (the latter as ``last_error`` on a live session).
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from cue_voice_coach.errors import ContentPolicyError, MicrophonePermissionError, SpeechInputError
from cue_voice_coach.grade_policy import normalize_grade_band, resolve_policy
from cue_voice_coach.lifecycle_manager import TurnTakingLifecycle
from cue_voice_coach.phase_machine import ConversationPhaseMachine
from cue_voice_coach.response_generator import AIResponseGenerator
from cue_voice_coach.response_validator import BANNED_TERMS
from cue_voice_coach.scenario_classifier import resolve_scenario
from cue_voice_coach.session_events import (
    CONTENT_POLICY_FAILURE,
    FALLBACK_USED,
    PERMISSION_DENIED,
    PHASE_TRANSITION,
    SESSION_ENDED,
    SESSION_STARTED,
    SPEECH_ERROR,
    EventSink,
    SessionEvent,
)
from cue_voice_coach.session_state import ConversationSession, Phase, Role, SessionSnapshot
from cue_voice_coach.settings import CoachSettings
from cue_voice_coach.speech import Microphone, SpeechSynthesizer
from cue_voice_coach.turn_backend import TurnBackend

logger = logging.getLogger(__name__)

Observer = Callable[[SessionSnapshot], None]


class VoiceSessionController:
    def __init__(
        self,
        backend: TurnBackend,
        synthesizer: SpeechSynthesizer,
        microphone: Optional[Microphone] = None,
        settings: Optional[CoachSettings] = None,
        event_sink: Optional[EventSink] = None,
        banned_terms=BANNED_TERMS,
    ):
        self.settings = settings or CoachSettings()
        self.backend = backend
        self.synthesizer = synthesizer
        self.microphone = microphone
        self.event_sink = event_sink
        self.generator = AIResponseGenerator(backend, self.settings, banned_terms=banned_terms)
        self.phase_machine = ConversationPhaseMachine(
            practice_turn_ceiling=self.settings.practice_turn_ceiling,
            feedback_turns=self.settings.feedback_turns,
        )
        self.session: Optional[ConversationSession] = None
        self.lifecycle: Optional[TurnTakingLifecycle] = None
        self._observers: List[Observer] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> Optional[SessionSnapshot]:
        return self.session.snapshot() if self.session else None

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        if not self.session or not self._observers:
            return
        snapshot = self.session.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as e:
                logger.warning(f"⚠️ [Session] Observer failed: {e}")

    def _emit(self, kind: str, **data: Any) -> None:
        if not self.session or self.event_sink is None:
            return
        try:
            self.event_sink.record(SessionEvent(kind=kind, session_id=self.session.session_id, data=data))
        except Exception as e:
            logger.warning(f"⚠️ [Session] Event sink failed on {kind}: {e}")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start_session(self, scenario: Any, grade_level: Any) -> SessionSnapshot:
        """
        Build a session and queue its opening line for playback.

        Ends any session still running on this controller first. Returns
        once the turn-0 coach message is in the transcript and speaking.
        """
        if self.session is not None and self.session.alive:
            await self.end_session()

        band = normalize_grade_band(grade_level)
        policy = resolve_policy(band).scaled(self.settings.timing_scale)
        session = ConversationSession(
            scenario=resolve_scenario(scenario, band),
            grade_level=grade_level,
            grade_band=band,
            timing_policy=policy,
        )
        self.session = session
        self.lifecycle = TurnTakingLifecycle(
            session,
            self.synthesizer,
            microphone=self.microphone,
            silence_prompts_enabled=self.settings.silence_prompts_enabled,
            on_change=self._notify,
            on_event=self._emit,
            on_help_prompt=self._append_help_prompt,
            on_permission_denied=self._permission_denied,
        )
        lifecycle = self.lifecycle

        logger.info(
            f"🎬 [Session] Starting {session.session_id[:8]}: "
            f"{session.scenario.title!r} ({session.scenario_key}, grade {band.value})"
        )
        self._emit(SESSION_STARTED, scenario_key=session.scenario_key, grade_band=band.value)

        epoch = lifecycle.begin_opening()
        reply = await self.generator.generate(session)
        if not lifecycle.is_current(epoch):
            logger.info("🎬 [Session] Opening line discarded, session moved on")
            return session.snapshot()

        session.append_message(Role.COACH, reply.text, is_fallback=reply.is_fallback)
        if reply.is_fallback:
            session.fallback_count += 1
            self._emit(FALLBACK_USED, turn=0, phase=session.phase.value)
        lifecycle.speak(reply.text)
        self._notify()
        return session.snapshot()

    def submit_user_utterance(self, text: Optional[str]) -> Optional[asyncio.Task]:
        """
        Accept one final learner utterance.

        The utterance is appended and counted before this returns; the coach
        answer runs as the returned task. Returns None (and changes nothing)
        when there is no live session, the session is complete, or the text
        is empty.
        """
        session = self.session
        if session is None or not session.alive or session.is_complete:
            return None
        if text is None or not text.strip():
            return None

        utterance = text.strip()
        session.append_message(Role.LEARNER, utterance)
        session.turn_count += 1
        session.last_error = None
        session.pending_retry_turn = None
        logger.info(f"🗣️ [Session] Turn {session.turn_count}: {utterance[:60]!r}")

        self._notify()
        return self._start_turn(utterance)

    def retry_last_turn(self) -> Optional[asyncio.Task]:
        """Rerun generation for the learner turn that hit a content-policy failure."""
        session = self.session
        if session is None or not session.alive or session.is_complete:
            return None
        if session.pending_retry_turn is None or session.pending_retry_turn != session.turn_count:
            return None

        logger.info(f"🔁 [Session] Retrying turn {session.turn_count}")
        session.last_error = None
        session.pending_retry_turn = None
        return self._start_turn(session.last_learner_text())

    async def end_session(self) -> None:
        """Tear the session down. Idempotent."""
        session = self.session
        if session is None or not session.alive:
            return

        session.alive = False
        session.ended_at = datetime.now()
        if self.lifecycle is not None:
            self.lifecycle.shutdown()

        logger.info(f"🛑 [Session] Ended {session.session_id[:8]} after {session.turn_count} turns")
        self._emit(SESSION_ENDED, **self.session_summary())
        self._notify()

    def report_speech_error(self, kind: str) -> None:
        """
        Speech-to-text error from the browser or platform recogniser.

        Raises:
            MicrophonePermissionError: When microphone access was denied
        """
        error = SpeechInputError(kind)
        if error.is_ignorable:
            logger.debug(f"🎙️ [Session] Ignoring speech input error: {kind}")
            return

        if error.is_permission_denial:
            denial = MicrophonePermissionError(f"Microphone access denied ({kind})")
            if self.lifecycle is not None and self.session is not None and self.session.alive:
                self.lifecycle.permission_denied(denial)
            raise denial

        logger.warning(f"⚠️ [Session] Speech input error: {kind}")
        self._emit(SPEECH_ERROR, kind=kind)

    def session_summary(self) -> Dict[str, Any]:
        session = self.session
        if session is None:
            return {}
        end = session.ended_at or datetime.now()
        per_phase: Dict[str, int] = {phase.value: 0 for phase in Phase}
        for message in session.transcript:
            per_phase[message.phase.value] += 1
        return {
            "session_id": session.session_id,
            "scenario_key": session.scenario_key,
            "grade_band": session.grade_band.value,
            "turn_count": session.turn_count,
            "phase": session.phase.value,
            "messages_per_phase": per_phase,
            "fallback_count": session.fallback_count,
            "duration_seconds": round((end - session.created_at).total_seconds(), 3),
            "completed": session.is_complete,
        }

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _start_turn(self, utterance: Optional[str]) -> asyncio.Task:
        session = self.session

        async def respond(epoch: int) -> Optional[str]:
            return await self._respond(session, utterance, epoch)

        return self.lifecycle.learner_turn_received(respond)

    async def _respond(self, session: ConversationSession, utterance: Optional[str], epoch: int) -> Optional[str]:
        lifecycle = self.lifecycle
        try:
            reply = await self.generator.generate(session, utterance)
        except ContentPolicyError as e:
            if not lifecycle.is_current(epoch):
                return None
            logger.error(f"❌ [Session] Turn {session.turn_count} failed content policy: {e.term!r}")
            session.last_error = e
            session.pending_retry_turn = session.turn_count
            self._emit(CONTENT_POLICY_FAILURE, turn=session.turn_count, term=e.term, attempts=e.attempts)
            lifecycle.begin_listening()
            self._notify()
            return None

        if not lifecycle.is_current(epoch):
            logger.info(f"🗑️ [Session] Dropping stale reply for turn {session.turn_count}")
            return None

        transition = self.phase_machine.advance(session, reply.declared_next_phase)
        session.append_message(Role.COACH, reply.text, phase=session.phase, is_fallback=reply.is_fallback)

        if reply.is_fallback:
            session.fallback_count += 1
            self._emit(FALLBACK_USED, turn=session.turn_count, phase=session.phase.value)
        if transition.changed:
            self._emit(
                PHASE_TRANSITION,
                previous=transition.previous.value,
                current=transition.current.value,
                turn=transition.turn_count,
                reason=transition.reason,
            )

        self._notify()
        return reply.text

    def _append_help_prompt(self, text: str) -> None:
        if self.session is not None and self.session.alive:
            self.session.append_message(Role.COACH, text, is_help_prompt=True)
            self._notify()

    def _permission_denied(self, error: MicrophonePermissionError) -> None:
        if self.session is None:
            return
        self.session.last_error = error
        self._emit(PERMISSION_DENIED, error=str(error))
        self._notify()
