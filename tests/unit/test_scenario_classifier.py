"""
Unit Tests for Scenario Classifier

Tests keyword classification and scenario title resolution.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "cue_voice_coach", "src"))

from cue_voice_coach.grade_policy import GradeBand
from cue_voice_coach.scenario_classifier import (
    ByGradeTitle,
    PlainTitle,
    classify,
    parse_scenario_title,
    resolve_scenario,
    scenario_keys,
)


class TestClassify:
    """Test suite for classify()."""

    @pytest.mark.parametrize("title, expected", [
        ("Starting a Conversation", "starting-conversation"),
        ("Making Friends", "making-friends"),
        ("Paying Attention", "paying-attention"),
        ("Being a good LISTENER", "paying-attention"),
        ("Asking for Help", "asking-help"),
        ("Joining a Group", "joining-group"),
        ("group project time", "joining-group"),
    ])
    def test_keywords(self, title, expected):
        assert classify(title) == expected

    def test_rules_checked_in_order(self):
        # Two-word rules win over single keywords
        assert classify("Joining Your Friend Group") == "joining-group"
        assert classify("Making friends in a group") == "making-friends"
        # "friend" wins over "help"
        assert classify("Helping a friend") == "making-friends"

    @pytest.mark.parametrize("title, expected", [
        ("Joining Group Conversations", "joining-group"),
        ("Joining a group conversation", "joining-group"),
        ("Making friends through conversation", "making-friends"),
        ("Paying attention in a conversation", "paying-attention"),
        ("Asking for help in a conversation", "asking-help"),
        ("Starting a conversation with a friend", "starting-conversation"),
    ])
    def test_conversation_alone_does_not_pick_starting(self, title, expected):
        assert classify(title) == expected

    @pytest.mark.parametrize("title", ["Having a conversation", "Start here"])
    def test_one_of_start_or_conversation_falls_to_default(self, title):
        assert classify(title) == "starting-conversation"

    @pytest.mark.parametrize("title", ["", "Lunchroom manners", None, 42])
    def test_default_when_nothing_matches(self, title):
        assert classify(title) == "starting-conversation"

    def test_accepts_scenario_objects(self):
        assert classify({"title": "Asking for help"}) == "asking-help"
        assert classify({"name": "Join the game"}) == "joining-group"
        assert classify({"title": {"K-2": "Saying hi to a friend", "9-12": "Building friendships"}}) == "making-friends"

    def test_closed_vocabulary(self):
        assert scenario_keys() == (
            "starting-conversation",
            "making-friends",
            "paying-attention",
            "asking-help",
            "joining-group",
        )
        for title in ["start", "friend", "listen", "help", "group", "xyz"]:
            assert classify(title) in scenario_keys()


class TestScenarioTitle:
    """Test suite for the plain / by-grade title variant."""

    def test_plain_string(self):
        title = parse_scenario_title("  Making Friends ")
        assert isinstance(title, PlainTitle)
        assert title.kind == "plain"
        assert title.for_band(GradeBand.K_2) == "Making Friends"

    def test_by_grade_mapping(self):
        title = parse_scenario_title({"title": {"K-2": "Say hi", "6-8": "Start a chat"}})
        assert isinstance(title, ByGradeTitle)
        assert title.kind == "byGrade"
        assert title.for_band(GradeBand.K_2) == "Say hi"
        assert title.for_band(GradeBand.G6_8) == "Start a chat"
        # Missing band falls back to the 6-8 wording
        assert title.for_band(GradeBand.G9_12) == "Start a chat"

    def test_resolve_scenario_once(self):
        scenario = resolve_scenario({"title": {"3-5": "Joining recess games"}}, GradeBand.G3_5)
        assert scenario.title == "Joining recess games"
        assert scenario.key == "joining-group"
        assert scenario.to_payload() == {"title": "Joining recess games"}

    def test_empty_scenario_gets_placeholder_title(self):
        scenario = resolve_scenario(None, GradeBand.G6_8)
        assert scenario.title
        assert scenario.key == "starting-conversation"
