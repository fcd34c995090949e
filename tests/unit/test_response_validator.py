"""
Unit Tests for Response Validator

Tests whole-word banned term detection.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "cue_voice_coach", "src"))

from cue_voice_coach.response_validator import BANNED_TERMS, ValidationResult, validate


class TestValidate:
    """Test suite for validate()."""

    def test_banned_term_detected(self):
        result = validate("I met my coworker today")
        assert result == ValidationResult(is_valid=False, violating_term="coworker")

    def test_no_substring_false_positive(self):
        assert validate("the classroom is busy").is_valid

    @pytest.mark.parametrize("text", [
        "Your BOSS would be proud",
        "Talk to the Manager.",
        "a business-like tone",
    ])
    def test_case_insensitive_whole_words(self, text):
        assert not validate(text).is_valid

    @pytest.mark.parametrize("text", [
        "Bossy friends can be hard",
        "Officers keep the school safe",
        "Great interviewing skills",
        "Chrome is a browser",
    ])
    def test_longer_words_do_not_match(self, text):
        assert validate(text).is_valid

    def test_multi_word_terms(self):
        result = validate("Let's pretend this is a team meeting at lunch")
        assert result.violating_term == "team meeting"

    def test_first_match_in_list_order(self):
        result = validate("The manager asked the coworker")
        assert result.violating_term == "coworker"

    def test_custom_banned_terms(self):
        assert not validate("no homework today", banned_terms=["homework"]).is_valid
        assert validate("I met my coworker", banned_terms=[]).is_valid

    def test_empty_text_is_valid(self):
        assert validate("").is_valid

    def test_default_list_contents(self):
        assert "coworker" in BANNED_TERMS
        assert "career path" in BANNED_TERMS
