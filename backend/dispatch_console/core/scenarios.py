"""
RAPID Dispatch Console - Simulation Scenarios

Built-in scripted calls, the danger keyword list, and the sentence splitter
used to turn an uploaded recording's transcript into a playback script.
"""

from __future__ import annotations

import re
from typing import Dict, List, Tuple

from dispatch_console.core.exceptions import UnknownScenarioError
from dispatch_console.core.types import CallScenario, EmergencyType


DANGER_KEYWORDS: Tuple[str, ...] = (
    "not breathing",
    "unconscious",
    "collapsed",
    "bleeding",
    "gun",
    "knife",
    "fire",
    "trapped",
    "heart attack",
    "stroke",
)


SIMULATION_SCENARIOS: Tuple[CallScenario, ...] = (
    CallScenario(
        id="med-1",
        name="Cardiac Arrest (Medical)",
        expected_type=EmergencyType.MEDICAL,
        script=(
            "Hello? Can you hear me?",
            "Please help! My father... he just collapsed in the kitchen.",
            "He is not breathing! I checked and I can't feel a pulse.",
            "Please hurry, he's turning blue. I don't know CPR!",
            "We are at 42 Green Oak Drive, near the park.",
            "Please come fast!",
        ),
    ),
    CallScenario(
        id="fire-1",
        name="Structure Fire (High Noise)",
        expected_type=EmergencyType.FIRE,
        script=(
            "Fire! There's a fire in the building!",
            "It's the complex on 5th Avenue, number 302.",
            "Smoke is everywhere, I can't see the exit!",
            "There are people trapped on the third floor!",
            "The alarms are going off, please send the fire brigade.",
            "The fire is spreading to the roof now!",
        ),
    ),
    CallScenario(
        id="crime-1",
        name="Active Intruder (Crime)",
        expected_type=EmergencyType.CRIME,
        script=(
            "Shh, please be quiet.",
            "Someone is trying to break into my house.",
            "I saw a man with a knife in the backyard.",
            "I'm hiding in the closet with my daughter.",
            "I think he broke the glass... yes, he's inside.",
            "Please send police, I'm scared.",
            "Address is 15 Willow Lane.",
        ),
    ),
)

_SCENARIOS_BY_ID: Dict[str, CallScenario] = {s.id: s for s in SIMULATION_SCENARIOS}

# A sentence is a run of non-terminal characters followed by its terminal
# punctuation, or a trailing run with no terminator.
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")
_WORD_RE = re.compile(r"\w")


def get_scenario(scenario_id: str) -> CallScenario:
    """Look up a built-in scenario by ID."""
    try:
        return _SCENARIOS_BY_ID[scenario_id]
    except KeyError:
        raise UnknownScenarioError(f"Unknown scenario: {scenario_id}") from None


def split_into_script(text: str) -> List[str]:
    """
    Split transcribed text into caller lines on ``.``, ``!`` and ``?``.

    Terminal punctuation stays with its sentence. Fragments with no word
    characters (empty strings, stray punctuation) are dropped.
    """
    lines = []
    for fragment in _SENTENCE_RE.findall(text):
        fragment = fragment.strip()
        if fragment and _WORD_RE.search(fragment):
            lines.append(fragment)
    return lines


def scenario_from_upload(filename: str, text: str) -> CallScenario:
    """Build an ad-hoc scenario from an uploaded recording's transcript."""
    return CallScenario(
        id=f"upload:{filename}",
        name=f"Uploaded Call ({filename})",
        script=tuple(split_into_script(text)),
        expected_type=EmergencyType.UNKNOWN,
    )
