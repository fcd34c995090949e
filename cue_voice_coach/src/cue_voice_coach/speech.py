"""
Speech Collaborators

Interfaces for the speech-to-text and text-to-speech sides of a session,
plus simple implementations for terminal use and tests.

Text-to-speech: ``speak(text, band) -> AudioHandle``. The handle completes
when playback ends (or fails with the synthesis error); ``stop()`` cuts
playback short and counts as completion.

Microphone: ``start()`` / ``stop()``. ``start()`` raises
MicrophonePermissionError when access is denied.
"""

import asyncio
import sys
from typing import List, Optional, TextIO

from cue_voice_coach.errors import MicrophonePermissionError
from cue_voice_coach.grade_policy import GradeBand, POLICIES


class AudioHandle:
    """Handle for one piece of coach audio."""

    def __init__(self, text: str = ""):
        self.text = text
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._timer: Optional[asyncio.TimerHandle] = None
        self.stopped = False

    @property
    def done(self) -> bool:
        return self._future.done()

    def finish(self) -> None:
        if not self._future.done():
            self._future.set_result(None)

    def fail(self, error: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(error)

    def finish_after(self, seconds: float) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(max(0.0, seconds), self.finish)

    def stop(self) -> None:
        self.stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.finish()

    async def wait(self) -> None:
        """Wait for playback to end. Raises the synthesis error if playback failed."""
        await self._future


class SpeechSynthesizer:
    """Text-to-speech collaborator."""

    def speak(self, text: str, band: GradeBand) -> AudioHandle:
        raise NotImplementedError


class Microphone:
    """Speech-to-text capture collaborator."""

    is_listening: bool = False

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class InstantSpeechSynthesizer(SpeechSynthesizer):
    """Completes playback immediately and records what was spoken."""

    def __init__(self):
        self.spoken: List[str] = []

    def speak(self, text: str, band: GradeBand) -> AudioHandle:
        self.spoken.append(text)
        handle = AudioHandle(text)
        handle.finish()
        return handle


class PrintingSpeechSynthesizer(SpeechSynthesizer):
    """Prints coach lines and holds 'playback' for roughly as long as speaking them would take."""

    def __init__(self, out: Optional[TextIO] = None, words_per_second: float = 2.5, time_scale: float = 1.0):
        self.out = out or sys.stdout
        self.words_per_second = words_per_second
        self.time_scale = time_scale

    def estimate_seconds(self, text: str, band: GradeBand) -> float:
        rate = POLICIES[band].speech_rate
        words = len(text.split())
        return words / (self.words_per_second * rate) * self.time_scale

    def speak(self, text: str, band: GradeBand) -> AudioHandle:
        print(f"🗣️  Cue: {text}", file=self.out, flush=True)
        handle = AudioHandle(text)
        handle.finish_after(self.estimate_seconds(text, band))
        return handle


class NullMicrophone(Microphone):
    """Microphone stand-in that only tracks its state."""

    def __init__(self, permission_granted: bool = True):
        self.permission_granted = permission_granted
        self.is_listening = False
        self.start_count = 0
        self.stop_count = 0

    def start(self) -> None:
        if not self.permission_granted:
            raise MicrophonePermissionError("Microphone access was denied")
        self.start_count += 1
        self.is_listening = True

    def stop(self) -> None:
        self.stop_count += 1
        self.is_listening = False
