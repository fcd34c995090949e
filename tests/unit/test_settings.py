"""
Unit Tests for Coach Settings
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "cue_voice_coach", "src"))

from cue_voice_coach.settings import DEFAULT_TURN_ENDPOINT, CoachSettings

ENV_NAMES = [
    "VOICE_TURN_ENDPOINT",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "VOICE_GENERATION_TIMEOUT_SECONDS",
    "VOICE_PRACTICE_TURN_CEILING",
    "VOICE_FEEDBACK_TURNS",
    "VOICE_HISTORY_WINDOW",
    "VOICE_TIMING_SCALE",
    "VOICE_SILENCE_PROMPTS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestCoachSettings:
    """Test suite for environment-driven settings."""

    def test_defaults(self, clean_env):
        settings = CoachSettings.from_env(load_env_file=False)
        assert settings.turn_endpoint_url == DEFAULT_TURN_ENDPOINT
        assert settings.openai_api_key is None
        assert settings.generation_timeout_seconds == 4.5
        assert settings.practice_turn_ceiling == 6
        assert settings.feedback_turns == 2
        assert settings.history_window == 10
        assert settings.timing_scale == 1.0
        assert settings.silence_prompts_enabled is True

    def test_values_from_env(self, clean_env):
        clean_env.setenv("VOICE_TURN_ENDPOINT", "http://coach.test/turn")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("VOICE_GENERATION_TIMEOUT_SECONDS", "2.5")
        clean_env.setenv("VOICE_PRACTICE_TURN_CEILING", "8")
        clean_env.setenv("VOICE_TIMING_SCALE", "0.1")
        settings = CoachSettings.from_env(load_env_file=False)
        assert settings.turn_endpoint_url == "http://coach.test/turn"
        assert settings.openai_api_key == "sk-test"
        assert settings.generation_timeout_seconds == 2.5
        assert settings.practice_turn_ceiling == 8
        assert settings.timing_scale == 0.1

    def test_invalid_numbers_fall_back(self, clean_env):
        clean_env.setenv("VOICE_GENERATION_TIMEOUT_SECONDS", "soon")
        clean_env.setenv("VOICE_HISTORY_WINDOW", "ten")
        settings = CoachSettings.from_env(load_env_file=False)
        assert settings.generation_timeout_seconds == 4.5
        assert settings.history_window == 10

    @pytest.mark.parametrize("raw,expected", [
        ("true", True),
        ("1", True),
        ("On", True),
        ("false", False),
        ("0", False),
        ("", False),
    ])
    def test_silence_prompt_flag(self, clean_env, raw, expected):
        clean_env.setenv("VOICE_SILENCE_PROMPTS", raw)
        assert CoachSettings.from_env(load_env_file=False).silence_prompts_enabled is expected

    def test_empty_api_key_is_none(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "")
        assert CoachSettings.from_env(load_env_file=False).openai_api_key is None

    def test_settings_are_frozen(self):
        settings = CoachSettings()
        with pytest.raises(AttributeError):
            settings.feedback_turns = 3
