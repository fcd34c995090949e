"""
Unit Tests for Grade Policy Table

Tests grade level normalization and policy lookup.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "cue_voice_coach", "src"))

from cue_voice_coach.grade_policy import GradeBand, POLICIES, normalize_grade_band, resolve_policy


class TestNormalizeGradeBand:
    """Test suite for grade level normalization."""

    @pytest.mark.parametrize("raw, expected", [
        ("K", GradeBand.K_2),
        ("k", GradeBand.K_2),
        ("Kindergarten", GradeBand.K_2),
        ("0", GradeBand.K_2),
        ("2", GradeBand.K_2),
        (1, GradeBand.K_2),
        ("3", GradeBand.G3_5),
        ("5", GradeBand.G3_5),
        ("6", GradeBand.G6_8),
        (8, GradeBand.G6_8),
        ("9", GradeBand.G9_12),
        ("12", GradeBand.G9_12),
    ])
    def test_bare_grades(self, raw, expected):
        assert normalize_grade_band(raw) == expected

    @pytest.mark.parametrize("raw, expected", [
        ("K-2", GradeBand.K_2),
        ("k-2", GradeBand.K_2),
        ("3-5", GradeBand.G3_5),
        ("6-8", GradeBand.G6_8),
        ("9-12", GradeBand.G9_12),
        ("9–12", GradeBand.G9_12),
        (" 9 - 12 ", GradeBand.G9_12),
    ])
    def test_band_strings(self, raw, expected):
        assert normalize_grade_band(raw) == expected

    def test_loose_labels_use_first_number(self):
        assert normalize_grade_band("Grade 4") == GradeBand.G3_5
        assert normalize_grade_band("10th grade") == GradeBand.G9_12

    @pytest.mark.parametrize("raw", [None, "", "senior", "grade 17", True, "???"])
    def test_unparseable_defaults_to_middle_school(self, raw):
        assert normalize_grade_band(raw) == GradeBand.G6_8

    def test_band_passes_through(self):
        assert normalize_grade_band(GradeBand.G3_5) is GradeBand.G3_5


class TestResolvePolicy:
    """Test suite for policy lookup."""

    def test_every_band_has_policy(self):
        for band in GradeBand:
            assert POLICIES[band].band is band

    def test_word_limits_grow_with_age(self):
        limits = [POLICIES[band].word_limit for band in GradeBand]
        assert limits == sorted(limits)
        assert resolve_policy("K").word_limit == 8
        assert resolve_policy("11").word_limit == 20

    def test_youngest_get_longest_pause(self):
        assert resolve_policy("1").inter_turn_delay_ms == 1000
        assert resolve_policy("7").inter_turn_delay_ms == 500

    def test_unparseable_input_never_fails(self):
        policy = resolve_policy("not a grade")
        assert policy.band == GradeBand.G6_8
        assert policy.silence_timeout_ms == 2500
        assert policy.register_hint

    def test_scaled_shrinks_timers_only(self):
        policy = resolve_policy("4")
        scaled = policy.scaled(0.01)
        assert scaled.inter_turn_delay_ms == 8
        assert scaled.silence_timeout_ms == 20
        assert scaled.word_limit == policy.word_limit
        assert policy.scaled(1.0) is policy

    def test_seconds_properties(self):
        policy = resolve_policy("9-12")
        assert policy.silence_timeout_seconds == pytest.approx(3.0)
        assert policy.inter_turn_delay_seconds == pytest.approx(0.5)
