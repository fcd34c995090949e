"""
Scenario Classifier

Maps a free-form scenario title to one of a fixed set of curriculum keys.

Scenario titles arrive either as plain strings or as per-grade-band objects
({"K-2": "...", "6-8": "..."}). Both shapes are modelled as a tagged variant
and resolved once, at session setup.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from cue_voice_coach.grade_policy import DEFAULT_BAND, GradeBand, normalize_grade_band

STARTING_CONVERSATION = "starting-conversation"
MAKING_FRIENDS = "making-friends"
PAYING_ATTENTION = "paying-attention"
ASKING_HELP = "asking-help"
JOINING_GROUP = "joining-group"

DEFAULT_SCENARIO_KEY = STARTING_CONVERSATION

# Checked in order; the first rule whose words all appear in the title wins.
# Two-word rules come first so "Joining your friend group" is a group scenario.
KEYWORD_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (STARTING_CONVERSATION, ("start", "conversation")),
    (MAKING_FRIENDS, ("making", "friend")),
    (PAYING_ATTENTION, ("pay", "attention")),
    (ASKING_HELP, ("ask", "help")),
    (JOINING_GROUP, ("join", "group")),
    (MAKING_FRIENDS, ("friend",)),
    (PAYING_ATTENTION, ("attention",)),
    (PAYING_ATTENTION, ("listen",)),
    (ASKING_HELP, ("help",)),
    (JOINING_GROUP, ("join",)),
    (JOINING_GROUP, ("group",)),
)


def scenario_keys() -> Tuple[str, ...]:
    """The closed vocabulary of scenario keys, in rule order."""
    keys: Dict[str, None] = {}
    for key, _ in KEYWORD_RULES:
        keys.setdefault(key, None)
    return tuple(keys)


@dataclass(frozen=True)
class PlainTitle:
    """A scenario title that is the same for every grade band."""
    text: str
    kind: str = field(default="plain", init=False)

    def for_band(self, band: GradeBand) -> str:
        return self.text


@dataclass(frozen=True)
class ByGradeTitle:
    """A scenario title with one wording per grade band."""
    values: Mapping[GradeBand, str]
    kind: str = field(default="byGrade", init=False)

    def for_band(self, band: GradeBand) -> str:
        if band in self.values:
            return self.values[band]
        if DEFAULT_BAND in self.values:
            return self.values[DEFAULT_BAND]
        return next(iter(self.values.values()), "")


ScenarioTitle = Union[PlainTitle, ByGradeTitle]


@dataclass(frozen=True)
class Scenario:
    """Scenario as held by a session: resolved title plus derived key."""
    title: str
    key: str

    def to_payload(self) -> Dict[str, str]:
        return {"title": self.title}


def parse_scenario_title(raw: Any) -> ScenarioTitle:
    """
    Interpret the loose scenario shapes the front end sends.

    Accepts a string, a Scenario, or a mapping with a ``title`` (or ``name``)
    field whose value is either a string or a per-band mapping.
    """
    if isinstance(raw, (PlainTitle, ByGradeTitle)):
        return raw
    if isinstance(raw, Scenario):
        return PlainTitle(raw.title)
    if raw is None:
        return PlainTitle("")
    if isinstance(raw, str):
        return PlainTitle(raw.strip())

    if isinstance(raw, Mapping):
        title = raw.get("title")
        if title is None:
            title = raw.get("name")
        if isinstance(title, Mapping):
            values: Dict[GradeBand, str] = {}
            for band_label, text in title.items():
                if isinstance(text, str) and text.strip():
                    values[normalize_grade_band(band_label)] = text.strip()
            if values:
                return ByGradeTitle(values)
            return PlainTitle("")
        if isinstance(title, str):
            return PlainTitle(title.strip())
        return PlainTitle("")

    return PlainTitle(str(raw).strip())


def classify(scenario: Any) -> str:
    """
    Classify a scenario title (or scenario object) into a scenario key.

    Case-insensitive substring match against the keyword rules (a lone
    "start" or "conversation" is not enough for a rule); falls back to
    "starting-conversation" when nothing matches. Never fails.
    """
    title = parse_scenario_title(scenario)
    if isinstance(title, ByGradeTitle):
        # Any band's wording names the same skill; classify on all of them.
        text = " ".join(title.values.values())
    else:
        text = title.text

    lowered = text.lower()
    for key, words in KEYWORD_RULES:
        if all(word in lowered for word in words):
            return key
    return DEFAULT_SCENARIO_KEY


def resolve_scenario(raw: Any, band: Optional[GradeBand] = None) -> Scenario:
    """Resolve a raw scenario once for a session: pick the band's wording and derive its key."""
    title = parse_scenario_title(raw)
    text = title.for_band(band or DEFAULT_BAND)
    return Scenario(title=text or "conversation practice", key=classify(title))
