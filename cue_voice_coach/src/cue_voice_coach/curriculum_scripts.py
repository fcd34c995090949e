"""
Curriculum Script Store

Pre-authored coach lines per grade band and scenario key.

Every band carries an onboarding preamble (greeting, introduction, safety,
consent) and, per scenario, two scripted lines:
- intro_line: spoken verbatim at turn 0, right after the onboarding text
- after_response_line: coaching material for the turn-1 reply
"""

from dataclasses import dataclass
from typing import Dict, Union

from cue_voice_coach.grade_policy import GradeBand, normalize_grade_band
from cue_voice_coach.scenario_classifier import (
    ASKING_HELP,
    JOINING_GROUP,
    MAKING_FRIENDS,
    PAYING_ATTENTION,
    STARTING_CONVERSATION,
)


@dataclass(frozen=True)
class CurriculumScript:
    intro_line: str
    after_response_line: str


@dataclass(frozen=True)
class Onboarding:
    greeting: str
    introduction: str
    safety: str
    consent: str

    def compose(self) -> str:
        return " ".join(
            part.strip()
            for part in (self.greeting, self.introduction, self.safety, self.consent)
            if part and part.strip()
        )


GENERIC_SCRIPT = CurriculumScript(
    intro_line="Let's practice this together. What would you say first?",
    after_response_line="Nice try! Let's keep practicing. I'll play the other person now.",
)

GENERIC_ONBOARDING = Onboarding(
    greeting="Hi, I'm Cue.",
    introduction="I'm here to help you practice talking with people.",
    safety="This is a safe place to practice.",
    consent="Ready to start?",
)

ONBOARDING: Dict[GradeBand, Onboarding] = {
    GradeBand.K_2: Onboarding(
        greeting="Hi! I'm Cue, and I'm so excited to practice with you today!",
        introduction=(
            "I help friends learn how to talk with other people. We're going to play some fun games "
            "where we practice saying hi, making friends, and having good conversations!"
        ),
        safety="This is a safe place to try new things. There are no wrong answers, and we can practice as many times as you want!",
        consent="Are you ready to practice with me?",
    ),
    GradeBand.G3_5: Onboarding(
        greeting="Hey there! I'm Cue, your practice coach!",
        introduction=(
            "I'm here to help you get really good at starting conversations, making friends, "
            "and talking with people in different situations."
        ),
        safety=(
            "This is a totally safe space - no one else is watching, and there are no wrong answers. "
            "We're just going to practice together!"
        ),
        consent="Sound good?",
    ),
    GradeBand.G6_8: Onboarding(
        greeting="Hi, I'm Cue.",
        introduction=(
            "I'm an AI coach designed to help you practice social situations before you face them in real life. "
            "Whether it's talking to new people, handling awkward moments, or building confidence, "
            "we'll practice it here first."
        ),
        safety="This is completely private, and you can practice anything you want. No judgment, just practice.",
        consent="Where do you want to start?",
    ),
    GradeBand.G9_12: Onboarding(
        greeting="Hi, I'm Cue.",
        introduction=(
            "I'm here to help you refine your communication and social skills, whether that's for job interviews, "
            "college, relationships, or daily interactions. Think of this as a rehearsal space where you can "
            "try different approaches and get real feedback."
        ),
        safety="This is a private space to practice and experiment. Everything we discuss stays here.",
        consent="What would you like to focus on?",
    ),
}

SCRIPTS: Dict[GradeBand, Dict[str, CurriculumScript]] = {
    GradeBand.K_2: {
        STARTING_CONVERSATION: CurriculumScript(
            intro_line="Let's practice saying hello! Can you say hi to me?",
            after_response_line="Yay! Great job! You said hi! That's so nice! Now let's pretend I'm a new friend at school.",
        ),
        MAKING_FRIENDS: CurriculumScript(
            intro_line="Let's practice making new friends! Can you say 'Hi, want to play?'",
            after_response_line="Wow! That was so friendly! You're doing great! Now I'll be a kid on the playground.",
        ),
        PAYING_ATTENTION: CurriculumScript(
            intro_line="Let's practice being a good listener! When I talk, you look at me and nod. Ready?",
            after_response_line=(
                "Perfect! You looked right at me! That's how we show we're listening! Now let's try it for real."
            ),
        ),
        ASKING_HELP: CurriculumScript(
            intro_line="Sometimes we need help. Let's practice asking nicely! Can you say 'Can you help me, please?'",
            after_response_line=(
                "Great job! You asked so nicely! People love to help when you're polite! "
                "Now let's pretend you need help with something."
            ),
        ),
        JOINING_GROUP: CurriculumScript(
            intro_line="Let's practice joining friends who are playing! Can you say 'Can I play too?'",
            after_response_line=(
                "Wonderful! You asked so nicely! That's how we join in! Now I'll pretend to be kids playing."
            ),
        ),
    },
    GradeBand.G3_5: {
        STARTING_CONVERSATION: CurriculumScript(
            intro_line="Okay! Imagine you see someone new at recess. What could you say to start talking with them?",
            after_response_line=(
                "Nice! That's a friendly way to start. What else could you add to show you're interested? "
                "Let me be that new kid for a minute."
            ),
        ),
        MAKING_FRIENDS: CurriculumScript(
            intro_line=(
                "Picture this: there's a new student in your class. "
                "How would you introduce yourself and try to be friends?"
            ),
            after_response_line=(
                "Good thinking! You're being friendly and showing interest. "
                "Let's try this out - I'll be the new student."
            ),
        ),
        PAYING_ATTENTION: CurriculumScript(
            intro_line=(
                "Let's practice being a really good listener. I'm going to tell you about my weekend, "
                "and you show me you're paying attention. Ready?"
            ),
            after_response_line=(
                "I could tell you were really listening! What did you do to show that? "
                "Great! Now let's practice with a real conversation."
            ),
        ),
        ASKING_HELP: CurriculumScript(
            intro_line=(
                "Sometimes we need help with homework or a problem. "
                "How would you ask your teacher for help in a good way?"
            ),
            after_response_line=(
                "That's a respectful way to ask! What made that approach effective? "
                "Awesome! Let me be your teacher for this practice."
            ),
        ),
        JOINING_GROUP: CurriculumScript(
            intro_line="You see a group of classmates playing a game at recess. How would you join them?",
            after_response_line=(
                "Smart approach! You're being polite and showing interest. Let's try it - I'll be part of the group."
            ),
        ),
    },
    GradeBand.G6_8: {
        STARTING_CONVERSATION: CurriculumScript(
            intro_line=(
                "Picture this: there's a new student sitting alone at lunch. "
                "How would you approach them and start a conversation?"
            ),
            after_response_line=(
                "That's a solid opener. It's friendly without being too intense. "
                "How would you keep the conversation going? Alright, let's run through this - I'll be the new student."
            ),
        ),
        MAKING_FRIENDS: CurriculumScript(
            intro_line=(
                "You've noticed someone in your class who seems cool and shares some of your interests. "
                "What's your approach for getting to know them better?"
            ),
            after_response_line=(
                "Good strategy! You're balancing friendliness with respect for their space. "
                "Let's try it out - I'll be that person."
            ),
        ),
        PAYING_ATTENTION: CurriculumScript(
            intro_line=(
                "Imagine a friend is telling you about something important that happened to them. "
                "How do you show them you're really listening and you care?"
            ),
            after_response_line=(
                "Those are great active listening techniques! Which one do you think is most important? "
                "Cool! Let's practice - I'll tell you about something that happened."
            ),
        ),
        ASKING_HELP: CurriculumScript(
            intro_line=(
                "You're stuck on a group project and need to ask your teammates for help without seeming clueless. "
                "How would you approach that?"
            ),
            after_response_line=(
                "That's a mature way to handle it. You're being honest without putting yourself down. "
                "Nice! Let me be one of your teammates."
            ),
        ),
        JOINING_GROUP: CurriculumScript(
            intro_line=(
                "There's a group conversation happening in the hallway about a topic you're interested in. "
                "How do you join without it being awkward?"
            ),
            after_response_line=(
                "Smart timing and approach! You're reading the room well. Let's practice - I'll be part of that group."
            ),
        ),
    },
    GradeBand.G9_12: {
        STARTING_CONVERSATION: CurriculumScript(
            intro_line=(
                "You notice someone in your class who seems to share your interests. "
                "What's your strategy for initiating a conversation?"
            ),
            after_response_line=(
                "Thoughtful approach. You're balancing friendliness with respect for their space. "
                "What factors would influence your timing and tone? Let's try this - I'll be that person."
            ),
        ),
        MAKING_FRIENDS: CurriculumScript(
            intro_line=(
                "You want to expand your social circle and there's someone you'd like to get to know better. "
                "How do you build that connection authentically?"
            ),
            after_response_line=(
                "That shows social intelligence. You're being genuine rather than forced. "
                "How would you gauge their receptiveness? Let's run through this scenario."
            ),
        ),
        PAYING_ATTENTION: CurriculumScript(
            intro_line=(
                "In a serious conversation, someone is sharing something personal with you. "
                "How do you demonstrate empathy and engagement through your listening?"
            ),
            after_response_line=(
                "Those are sophisticated listening skills. Which techniques do you find most effective "
                "in building trust? Let's practice this - I'll share something with you."
            ),
        ),
        ASKING_HELP: CurriculumScript(
            intro_line=(
                "You need assistance with a complex problem, maybe academic, social, or personal. "
                "How do you ask for help in a way that's effective and maintains your confidence?"
            ),
            after_response_line=(
                "That's a mature approach. You're being clear about what you need without apologizing "
                "for needing support. Well done. Let me play the role of someone who can help."
            ),
        ),
        JOINING_GROUP: CurriculumScript(
            intro_line=(
                "You're interested in joining a conversation or group activity. "
                "How do you assess the situation and integrate yourself naturally?"
            ),
            after_response_line=(
                "That demonstrates strong social awareness. You're reading social cues and timing your entry well. "
                "Let's practice - I'll be part of the group."
            ),
        ),
    },
}

BandLike = Union[GradeBand, str, int, None]


def get_script(band: BandLike, scenario_key: str) -> CurriculumScript:
    """Script for (band, scenario key), or the generic script when the store has no entry."""
    return SCRIPTS.get(normalize_grade_band(band), {}).get(scenario_key, GENERIC_SCRIPT)


def compose_onboarding(band: BandLike) -> str:
    """Greeting + introduction + safety + consent for the band, space-joined."""
    return ONBOARDING.get(normalize_grade_band(band), GENERIC_ONBOARDING).compose()


def forced_opening(band: BandLike, scenario_key: str) -> str:
    """The exact text the coach speaks at turn 0."""
    return f"{compose_onboarding(band)} {get_script(band, scenario_key).intro_line}"


def available_scripts(band: BandLike) -> Dict[str, CurriculumScript]:
    """Scripts registered for a band, keyed by scenario key."""
    return dict(SCRIPTS.get(normalize_grade_band(band), {}))
