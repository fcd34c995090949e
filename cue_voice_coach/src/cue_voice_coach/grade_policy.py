"""
Grade Policy Table

Grade level → timing and language policy for a practice session.

Each grade band gets:
- a hard word ceiling for coach replies
- a deliberate pause before the coach answers (inter-turn delay)
- a silence timeout before the coach offers help
- a register hint describing age-appropriate language
"""

import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class GradeBand(Enum):
    """Grade bands used for age-appropriateness policy."""
    K_2 = "K-2"
    G3_5 = "3-5"
    G6_8 = "6-8"
    G9_12 = "9-12"


DEFAULT_BAND = GradeBand.G6_8


@dataclass(frozen=True)
class GradePolicy:
    """Resolved policy entry for one grade band."""
    band: GradeBand
    word_limit: int
    inter_turn_delay_ms: int
    silence_timeout_ms: int
    register_hint: str
    age_context: str
    speech_rate: float = 1.0
    pace_label: str = "NATURAL"

    @property
    def inter_turn_delay_seconds(self) -> float:
        return self.inter_turn_delay_ms / 1000.0

    @property
    def silence_timeout_seconds(self) -> float:
        return self.silence_timeout_ms / 1000.0

    def scaled(self, factor: float) -> "GradePolicy":
        """Copy of this policy with both timers multiplied by ``factor``."""
        if factor == 1.0:
            return self
        return replace(
            self,
            inter_turn_delay_ms=max(0, int(round(self.inter_turn_delay_ms * factor))),
            silence_timeout_ms=max(1, int(round(self.silence_timeout_ms * factor))),
        )


POLICIES: Dict[GradeBand, GradePolicy] = {
    GradeBand.K_2: GradePolicy(
        band=GradeBand.K_2,
        word_limit=8,
        inter_turn_delay_ms=1000,
        silence_timeout_ms=2000,
        register_hint="Use very simple words and short sentences. Focus on emotions, kindness, and sharing.",
        age_context="You are talking to a K-2 student (ages 5-8). Use simple, encouraging language with short sentences.",
        speech_rate=0.85,
        pace_label="LIVELY",
    ),
    GradeBand.G3_5: GradePolicy(
        band=GradeBand.G3_5,
        word_limit=12,
        inter_turn_delay_ms=800,
        silence_timeout_ms=2000,
        register_hint=(
            "Speak clearly. Use examples from the playground, lunch, or group work. "
            "Focus on friendships and respectful behavior."
        ),
        age_context="You are talking to a grades 3-5 student (ages 8-11). Use clear, friendly language.",
        speech_rate=0.90,
        pace_label="MOMENTUM",
    ),
    GradeBand.G6_8: GradePolicy(
        band=GradeBand.G6_8,
        word_limit=15,
        inter_turn_delay_ms=500,
        silence_timeout_ms=2500,
        register_hint=(
            "Be relatable and casual. Include examples from class projects, texting, or friends "
            "pressuring you. Encourage positive responses."
        ),
        age_context="You are talking to a middle school student (ages 11-14). Use conversational, supportive language.",
        speech_rate=0.95,
        pace_label="NATURAL",
    ),
    GradeBand.G9_12: GradePolicy(
        band=GradeBand.G9_12,
        word_limit=20,
        inter_turn_delay_ms=500,
        silence_timeout_ms=3000,
        register_hint=(
            "Use a mature, respectful tone. Reflect real-world social dynamics. "
            "Help them build confidence in self-expression."
        ),
        age_context="You are talking to a high school student (ages 14-18). Use mature, thoughtful language.",
        speech_rate=1.00,
        pace_label="REAL-TIME",
    ),
}

_BAND_BY_LABEL = {band.value.lower(): band for band in GradeBand}
_KINDERGARTEN_RE = re.compile(r"^(?:k|kg|kinder|kindergarten)$|\bk\b|\bkindergarten\b")
_NUMBER_RE = re.compile(r"\d+")


def _band_for_grade_number(grade: int) -> Optional[GradeBand]:
    if 0 <= grade <= 2:
        return GradeBand.K_2
    if 3 <= grade <= 5:
        return GradeBand.G3_5
    if 6 <= grade <= 8:
        return GradeBand.G6_8
    if 9 <= grade <= 12:
        return GradeBand.G9_12
    return None


def normalize_grade_band(grade_level: Union[str, int, GradeBand, None]) -> GradeBand:
    """
    Normalize a raw grade level to a grade band.

    Accepts bare grade numbers ("6", 6), kindergarten ("K"), band strings
    ("9-12", "k-2") and loose labels ("Grade 4"). Anything unparseable
    resolves to the 6-8 band.
    """
    if isinstance(grade_level, GradeBand):
        return grade_level
    if grade_level is None or isinstance(grade_level, bool):
        return DEFAULT_BAND

    text = str(grade_level).strip().lower().replace("–", "-").replace(" ", "")
    if text in _BAND_BY_LABEL:
        return _BAND_BY_LABEL[text]

    loose = str(grade_level).strip().lower()
    if _KINDERGARTEN_RE.search(loose):
        return GradeBand.K_2

    match = _NUMBER_RE.search(text)
    if match:
        band = _band_for_grade_number(int(match.group(0)))
        if band:
            return band

    logger.debug(f"🎚️ [GradePolicy] Unrecognised grade level {grade_level!r}, defaulting to {DEFAULT_BAND.value}")
    return DEFAULT_BAND


def resolve_policy(grade_level: Union[str, int, GradeBand, None]) -> GradePolicy:
    """Resolve the policy entry for a raw grade level. Never fails."""
    return POLICIES[normalize_grade_band(grade_level)]
