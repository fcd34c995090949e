"""
Coach Settings

Environment-driven configuration for the voice-practice orchestrator.
Every value has a default, so a session can run with no environment at all.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_TURN_ENDPOINT = "http://localhost:8000/api/voice/conversation"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ [Settings] Invalid value for {name}: {raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"⚠️ [Settings] Invalid value for {name}: {raw!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CoachSettings:
    """Tunable parameters shared by every session built from these settings."""
    turn_endpoint_url: str = DEFAULT_TURN_ENDPOINT
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    generation_timeout_seconds: float = 4.5
    practice_turn_ceiling: int = 6
    feedback_turns: int = 2
    history_window: int = 10
    timing_scale: float = 1.0
    silence_prompts_enabled: bool = True

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "CoachSettings":
        """Build settings from environment variables (and a .env file if present)."""
        if load_env_file:
            load_dotenv()

        return cls(
            turn_endpoint_url=os.getenv("VOICE_TURN_ENDPOINT", DEFAULT_TURN_ENDPOINT),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            generation_timeout_seconds=_env_float("VOICE_GENERATION_TIMEOUT_SECONDS", 4.5),
            practice_turn_ceiling=_env_int("VOICE_PRACTICE_TURN_CEILING", 6),
            feedback_turns=_env_int("VOICE_FEEDBACK_TURNS", 2),
            history_window=_env_int("VOICE_HISTORY_WINDOW", 10),
            timing_scale=_env_float("VOICE_TIMING_SCALE", 1.0),
            silence_prompts_enabled=_env_bool("VOICE_SILENCE_PROMPTS", True),
        )
