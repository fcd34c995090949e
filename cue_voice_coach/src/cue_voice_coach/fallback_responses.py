"""
Fallback Responses

Canned coach lines used when the turn backend times out or fails. The
conversation keeps going; the line depends on phase, grade band and turn.
"""

from typing import Dict, Tuple

from cue_voice_coach.curriculum_scripts import forced_opening, get_script
from cue_voice_coach.grade_policy import GradeBand
from cue_voice_coach.session_state import Phase

PHASE_FALLBACKS: Dict[Phase, Tuple[str, ...]] = {
    Phase.INTRO: (
        "Hi there! I'm here to help you practice social skills. Let's work on this scenario together.",
        "Welcome! I'm excited to practice with you today. Let's start with this situation.",
        "Hello! I'm your practice partner. Let's explore this social scenario step by step.",
    ),
    Phase.PRACTICE: (
        "That's interesting! Can you tell me more about what you're thinking?",
        "I see. How do you think the other person might feel in this situation?",
        "Good point! What would you do next in this scenario?",
        "I understand. Let's think about this from a different angle.",
        "That's a thoughtful response. How might you handle this differently?",
    ),
    Phase.FEEDBACK: (
        "You did a great job working through that scenario! You showed good thinking.",
        "I'm proud of how you handled that situation. You're learning and growing!",
        "Excellent work! You demonstrated some really good social skills there.",
        "You're making great progress! Keep up the wonderful work.",
    ),
    Phase.COMPLETE: (
        "Great job completing this practice session! You've learned a lot today.",
        "Congratulations on finishing this scenario! You should be proud of your progress.",
        "Well done! You've successfully worked through this social situation.",
        "Amazing work! You've completed this practice session with flying colors.",
    ),
}

# Shorter wording for the youngest learners
K2_FALLBACKS: Dict[Phase, Tuple[str, ...]] = {
    Phase.INTRO: (
        "Hi! Let's practice together!",
        "Hello friend! Let's play and practice!",
    ),
    Phase.PRACTICE: (
        "Nice! Can you tell me more?",
        "Good try! What would you say next?",
        "How do you think your friend feels?",
    ),
    Phase.FEEDBACK: (
        "You did so great! I'm proud of you!",
        "Wow! You were so kind and friendly!",
    ),
    Phase.COMPLETE: (
        "Great job! We finished practicing!",
        "Yay! You did it! Great practice today!",
    ),
}

HELP_PROMPTS: Tuple[str, ...] = (
    "Take your time. What would you like to say?",
    "It's okay to pause and think. Your turn!",
    "I'm still here. Say whatever comes to mind.",
)

K2_HELP_PROMPTS: Tuple[str, ...] = (
    "Take your time! What do you want to say?",
    "It's okay! I'm still here. Your turn!",
)


def fallback_for(band: GradeBand, phase: Phase, turn_count: int, scenario_key: str) -> str:
    """
    Canned coach reply for a failed generation.

    Turn 0 gets the scripted opening, turn 1 the scenario's after-response
    line; later turns rotate through the phase list.
    """
    if turn_count == 0:
        return forced_opening(band, scenario_key)
    if turn_count == 1:
        return get_script(band, scenario_key).after_response_line

    table = K2_FALLBACKS if band is GradeBand.K_2 else PHASE_FALLBACKS
    options = table.get(phase) or PHASE_FALLBACKS[Phase.PRACTICE]
    return options[turn_count % len(options)]


def help_prompt(band: GradeBand, silence_count: int) -> str:
    """The ``silence_count``-th help prompt for a quiet learner, rotating."""
    prompts = K2_HELP_PROMPTS if band is GradeBand.K_2 else HELP_PROMPTS
    return prompts[silence_count % len(prompts)]
