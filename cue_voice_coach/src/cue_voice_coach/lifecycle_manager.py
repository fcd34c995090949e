"""
Turn-Taking Lifecycle Manager

Owns the activity state of one session (idle / listening / thinking /
speaking, exactly one at a time), the microphone, coach audio, and the two
timers:

- silence timer: armed while listening; on expiry a help prompt is spoken
  and listening resumes
- inter-turn delay: a pause between the learner finishing and the coach
  answering

Every learner turn bumps a generation epoch. Work started under an older
epoch (a superseded turn, or anything in flight when the session ends) is
dropped instead of applied.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from cue_voice_coach.errors import MicrophonePermissionError
from cue_voice_coach.fallback_responses import help_prompt
from cue_voice_coach.session_events import HELP_PROMPT, SPEECH_ERROR
from cue_voice_coach.session_state import ActivityState, ConversationSession
from cue_voice_coach.speech import AudioHandle, Microphone, NullMicrophone, SpeechSynthesizer

logger = logging.getLogger(__name__)

# Produces the coach text for a turn started under ``epoch``, or None to stay quiet
RespondFn = Callable[[int], Awaitable[Optional[str]]]


class TurnTakingLifecycle:
    def __init__(
        self,
        session: ConversationSession,
        synthesizer: SpeechSynthesizer,
        microphone: Optional[Microphone] = None,
        silence_prompts_enabled: bool = True,
        on_change: Optional[Callable[[], None]] = None,
        on_event: Optional[Callable[..., None]] = None,
        on_help_prompt: Optional[Callable[[str], None]] = None,
        on_permission_denied: Optional[Callable[[MicrophonePermissionError], None]] = None,
    ):
        self.session = session
        self.synthesizer = synthesizer
        self.microphone = microphone or NullMicrophone()
        self.silence_prompts_enabled = silence_prompts_enabled
        self._on_change = on_change
        self._on_event = on_event
        self._on_help_prompt = on_help_prompt
        self._on_permission_denied = on_permission_denied

        self.epoch = 0
        self.silence_count = 0
        self.blocked = False
        self._silence_timer: Optional[asyncio.TimerHandle] = None
        self._turn_task: Optional[asyncio.Task] = None
        self._playback_task: Optional[asyncio.Task] = None
        self._audio: Optional[AudioHandle] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ActivityState:
        return self.session.activity_state

    @property
    def alive(self) -> bool:
        return self.session.alive

    def is_current(self, epoch: int) -> bool:
        return self.session.alive and epoch == self.epoch

    def _set_state(self, state: ActivityState) -> None:
        # Microphone is only open while listening
        if state is ActivityState.LISTENING:
            if not self.microphone.is_listening:
                self.microphone.start()
        elif self.microphone.is_listening:
            self.microphone.stop()

        if self.session.activity_state is not state:
            logger.debug(f"🎧 [Lifecycle] {self.session.activity_state.value} → {state.value}")
            self.session.activity_state = state
            self._notify()

    def _notify(self) -> None:
        if self._on_change:
            self._on_change()

    def _emit(self, kind: str, **data) -> None:
        if self._on_event:
            self._on_event(kind, **data)

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def begin_opening(self) -> int:
        """Enter thinking for the session's opening line. Returns the epoch it runs under."""
        self._set_state(ActivityState.THINKING)
        return self.epoch

    def learner_turn_received(self, respond: RespondFn) -> asyncio.Task:
        """
        Start the coach's answer to a learner turn.

        Supersedes any turn still in flight: its audio is stopped, its task
        cancelled and its epoch invalidated. The answer is produced after the
        grade band's inter-turn delay.
        """
        self.epoch += 1
        epoch = self.epoch
        self._clear_silence_timer()
        self._cancel_turn()
        self._cancel_playback()
        self._set_state(ActivityState.THINKING)

        self._turn_task = asyncio.get_running_loop().create_task(self._run_turn(epoch, respond))
        return self._turn_task

    async def _run_turn(self, epoch: int, respond: RespondFn) -> None:
        delay = self.session.timing_policy.inter_turn_delay_seconds
        if delay > 0:
            await asyncio.sleep(delay)
        if not self.is_current(epoch):
            return

        text = await respond(epoch)
        if text is None or not self.is_current(epoch):
            return
        self.speak(text)

    # ------------------------------------------------------------------
    # Speaking
    # ------------------------------------------------------------------

    def speak(self, text: str) -> asyncio.Task:
        """
        Queue coach audio. Returns the task that settles the session once playback ends.

        After playback the session goes back to listening, or to idle once the
        conversation is complete.
        """
        self._clear_silence_timer()
        self._cancel_playback()
        self._set_state(ActivityState.SPEAKING)

        handle: Optional[AudioHandle] = None
        try:
            handle = self.synthesizer.speak(text, self.session.grade_band)
        except Exception as e:
            self._speech_failed(e)

        self._audio = handle
        self._playback_task = asyncio.get_running_loop().create_task(
            self._after_playback(handle, self.epoch)
        )
        return self._playback_task

    async def _after_playback(self, handle: Optional[AudioHandle], epoch: int) -> None:
        if handle is not None:
            try:
                await handle.wait()
            except Exception as e:
                self._speech_failed(e)

        if not self.is_current(epoch):
            return
        self._audio = None

        if self.session.is_complete:
            self._set_state(ActivityState.IDLE)
            logger.info("🏁 [Lifecycle] Conversation complete, not re-arming listening")
            return
        if self.blocked:
            self._set_state(ActivityState.IDLE)
            return
        self.begin_listening()

    def _speech_failed(self, error: Exception) -> None:
        # Treated as playback completion
        logger.warning(f"⚠️ [Lifecycle] Speech synthesis failed: {error}")
        self._emit(SPEECH_ERROR, error=str(error))

    def _stop_audio(self) -> None:
        if self._audio is not None:
            self._audio.stop()
            self._audio = None

    # ------------------------------------------------------------------
    # Listening
    # ------------------------------------------------------------------

    def begin_listening(self) -> None:
        """Open the microphone and arm the silence timer."""
        if not self.alive or self.blocked or self.session.is_complete:
            return
        try:
            self._set_state(ActivityState.LISTENING)
        except MicrophonePermissionError as e:
            self.permission_denied(e)
            return
        self._arm_silence_timer()

    def permission_denied(self, error: MicrophonePermissionError) -> None:
        logger.error(f"🎙️ [Lifecycle] Microphone permission denied: {error}")
        self.blocked = True
        self._clear_silence_timer()
        self._set_state(ActivityState.IDLE)
        if self._on_permission_denied:
            self._on_permission_denied(error)

    def _arm_silence_timer(self) -> None:
        self._clear_silence_timer()
        if not self.silence_prompts_enabled:
            return
        timeout = self.session.timing_policy.silence_timeout_seconds
        self._silence_timer = asyncio.get_running_loop().call_later(timeout, self._on_silence)

    def _clear_silence_timer(self) -> None:
        if self._silence_timer is not None:
            self._silence_timer.cancel()
            self._silence_timer = None

    def _on_silence(self) -> None:
        self._silence_timer = None
        if not self.alive or self.state is not ActivityState.LISTENING:
            return

        text = help_prompt(self.session.grade_band, self.silence_count)
        self.silence_count += 1
        logger.info(f"⏳ [Lifecycle] Silence timeout #{self.silence_count}, offering help")
        if self._on_help_prompt:
            self._on_help_prompt(text)
        self._emit(HELP_PROMPT, text=text, count=self.silence_count)
        self.speak(text)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _cancel_turn(self) -> None:
        if self._turn_task is not None and not self._turn_task.done():
            self._turn_task.cancel()
        self._turn_task = None

    def _cancel_playback(self) -> None:
        if self._playback_task is not None and not self._playback_task.done():
            self._playback_task.cancel()
        self._playback_task = None
        self._stop_audio()

    def shutdown(self) -> None:
        """Drop everything in flight and settle in idle. Safe to call repeatedly."""
        self.epoch += 1
        self._clear_silence_timer()
        self._cancel_turn()
        self._cancel_playback()
        if self.microphone.is_listening:
            self.microphone.stop()
        self.session.activity_state = ActivityState.IDLE

    @property
    def pending_turn(self) -> Optional[asyncio.Task]:
        return self._turn_task
