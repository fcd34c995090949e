"""
Session State Data Model

Defines the ConversationSession dataclass for one voice-practice attempt,
plus the Message and snapshot types the controller hands to observers.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from cue_voice_coach.grade_policy import GradeBand, GradePolicy
from cue_voice_coach.scenario_classifier import Scenario


class Phase(Enum):
    """Conversation phases, in forward order."""
    INTRO = "intro"
    PRACTICE = "practice"
    FEEDBACK = "feedback"
    COMPLETE = "complete"

    @property
    def order(self) -> int:
        return PHASE_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> Optional["Phase"]:
        """Parse a phase name leniently; None when it is not a known phase."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


PHASE_ORDER: Tuple[Phase, ...] = (Phase.INTRO, Phase.PRACTICE, Phase.FEEDBACK, Phase.COMPLETE)


class Role(Enum):
    LEARNER = "learner"
    COACH = "coach"


class ActivityState(Enum):
    """Mutually exclusive turn-taking states."""
    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"


@dataclass(frozen=True)
class Message:
    """One transcript entry. ``phase`` is the phase in effect when it was produced."""
    role: Role
    text: str
    phase: Phase
    timestamp: datetime
    is_fallback: bool = False
    is_help_prompt: bool = False

    def to_history_entry(self) -> Dict[str, str]:
        """Wire form used in conversationHistory."""
        return {
            "role": "user" if self.role is Role.LEARNER else "assistant",
            "text": self.text,
        }


@dataclass
class ConversationSession:
    """State for one practice attempt. Mutated only by the session controller."""
    scenario: Scenario
    grade_level: Any
    grade_band: GradeBand
    timing_policy: GradePolicy
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phase: Phase = Phase.INTRO
    turn_count: int = 0
    transcript: List[Message] = field(default_factory=list)
    activity_state: ActivityState = ActivityState.IDLE
    alive: bool = True
    created_at: datetime = field(default_factory=datetime.now)
    ended_at: Optional[datetime] = None
    # Turn count at which the feedback phase was entered
    feedback_started_at_turn: Optional[int] = None
    fallback_count: int = 0
    last_error: Optional[Exception] = None
    # Learner turn whose generation hit a fatal content-policy failure
    pending_retry_turn: Optional[int] = None

    @property
    def scenario_key(self) -> str:
        return self.scenario.key

    @property
    def is_complete(self) -> bool:
        return self.phase is Phase.COMPLETE

    def append_message(
        self,
        role: Role,
        text: str,
        phase: Optional[Phase] = None,
        is_fallback: bool = False,
        is_help_prompt: bool = False,
    ) -> Message:
        """Append a message, keeping timestamps non-decreasing."""
        now = datetime.now()
        if self.transcript and now < self.transcript[-1].timestamp:
            now = self.transcript[-1].timestamp
        message = Message(
            role=role,
            text=text,
            phase=phase or self.phase,
            timestamp=now,
            is_fallback=is_fallback,
            is_help_prompt=is_help_prompt,
        )
        self.transcript.append(message)
        return message

    def history_for_backend(self, window: Optional[int] = None) -> List[Dict[str, str]]:
        """Most recent transcript entries in wire form. Help prompts are left out."""
        entries = [m.to_history_entry() for m in self.transcript if not m.is_help_prompt]
        if window is not None and window > 0:
            entries = entries[-window:]
        return entries

    def last_learner_text(self) -> Optional[str]:
        for message in reversed(self.transcript):
            if message.role is Role.LEARNER:
                return message.text
        return None

    def snapshot(self) -> "SessionSnapshot":
        return SessionSnapshot(
            session_id=self.session_id,
            scenario_title=self.scenario.title,
            scenario_key=self.scenario.key,
            grade_band=self.grade_band,
            phase=self.phase,
            turn_count=self.turn_count,
            activity_state=self.activity_state,
            transcript=tuple(self.transcript),
            alive=self.alive,
            last_error=self.last_error,
        )


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of a session handed to UI observers."""
    session_id: str
    scenario_title: str
    scenario_key: str
    grade_band: GradeBand
    phase: Phase
    turn_count: int
    activity_state: ActivityState
    transcript: Tuple[Message, ...]
    alive: bool
    last_error: Optional[Exception] = None

    @property
    def is_listening(self) -> bool:
        return self.activity_state is ActivityState.LISTENING

    @property
    def is_thinking(self) -> bool:
        return self.activity_state is ActivityState.THINKING

    @property
    def is_speaking(self) -> bool:
        return self.activity_state is ActivityState.SPEAKING
