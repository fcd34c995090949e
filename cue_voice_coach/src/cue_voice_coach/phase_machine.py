"""
Conversation Phase Machine

intro → practice → feedback → complete

Default rule is turn-count driven:
- intro → practice after the first learner turn
- practice → feedback once the turn count reaches the practice ceiling
- feedback → complete after a fixed number of feedback turns

A phase declared by the backend wins over the rule when it is strictly
forward of the current phase. Backward or same-phase declarations are
ignored. ``complete`` is terminal.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cue_voice_coach.session_state import ConversationSession, Phase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseTransition:
    previous: Phase
    current: Phase
    turn_count: int
    declared: Optional[Phase] = None
    # "declared", "turn_count", or None when the phase did not change
    reason: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.previous is not self.current


class ConversationPhaseMachine:
    def __init__(self, practice_turn_ceiling: int = 6, feedback_turns: int = 2):
        if practice_turn_ceiling < 1:
            raise ValueError("practice_turn_ceiling must be at least 1")
        if feedback_turns < 0:
            raise ValueError("feedback_turns must not be negative")
        self.practice_turn_ceiling = practice_turn_ceiling
        self.feedback_turns = feedback_turns

    def next_phase(
        self,
        current: Phase,
        turn_count: int,
        declared: Optional[Phase] = None,
        feedback_started_at_turn: Optional[int] = None,
    ) -> Phase:
        """Pure transition function."""
        if current is Phase.COMPLETE:
            return Phase.COMPLETE

        if declared is not None and declared.order > current.order:
            return declared

        if current is Phase.INTRO:
            return Phase.PRACTICE if turn_count >= 1 else Phase.INTRO

        if current is Phase.PRACTICE:
            return Phase.FEEDBACK if turn_count >= self.practice_turn_ceiling else Phase.PRACTICE

        # feedback
        entered = feedback_started_at_turn if feedback_started_at_turn is not None else turn_count
        if turn_count - entered >= self.feedback_turns:
            return Phase.COMPLETE
        return Phase.FEEDBACK

    def advance(self, session: ConversationSession, declared_next_phase=None) -> PhaseTransition:
        """
        Apply one transition to the session after a processed learner turn.

        Args:
            session: Session to update in place
            declared_next_phase: Phase named by the backend, if any (Phase or str)

        Returns:
            The transition that was applied
        """
        previous = session.phase
        declared = Phase.parse(declared_next_phase)

        if declared is not None and declared.order <= previous.order and declared is not previous:
            logger.info(
                f"🧭 [Phase] Ignoring backward phase {declared.value} (current: {previous.value})"
            )

        current = self.next_phase(
            previous,
            session.turn_count,
            declared=declared,
            feedback_started_at_turn=session.feedback_started_at_turn,
        )

        reason = None
        if current is not previous:
            reason = "declared" if declared is current else "turn_count"
            session.phase = current
            if current is Phase.FEEDBACK:
                session.feedback_started_at_turn = session.turn_count
            logger.info(
                f"🧭 [Phase] {previous.value} → {current.value} "
                f"(turn {session.turn_count}, {reason})"
            )

        return PhaseTransition(
            previous=previous,
            current=current,
            turn_count=session.turn_count,
            declared=declared,
            reason=reason,
        )
