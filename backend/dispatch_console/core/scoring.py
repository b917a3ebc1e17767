"""
RAPID Dispatch Console - Hybrid Triage Scorer

Fuses the external classification with a deterministic local keyword rule.

Algorithm:
    1. Join the transcript lines with single spaces and lower-case the text.
    2. A danger keyword matches when it occurs anywhere in that text
       (substring containment, so "fire" also matches "firearm").
    3. distress = 0.2, +0.4 when the classifier said P1, +0.3 when any
       keyword matched, capped at 1.0. Both bonuses are flags, not counts.
    4. Two or more distinct keyword matches escalate the priority to P1.
       Escalation never lowers a priority.
    5. The classifier confidence is copied verbatim.

The scorer is a pure function: no state, no I/O, same inputs give the
same HybridScore.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from dispatch_console.core.scenarios import DANGER_KEYWORDS
from dispatch_console.core.types import AnalysisResult, HybridScore, SeverityLevel

BASE_DISTRESS = 0.2
P1_DISTRESS_BONUS = 0.4
KEYWORD_DISTRESS_BONUS = 0.3
ESCALATION_MATCH_THRESHOLD = 2


def find_keyword_matches(
    text: str,
    keywords: Iterable[str] = DANGER_KEYWORDS,
) -> frozenset[str]:
    """Return every keyword contained in ``text`` (case-insensitive)."""
    text_lower = text.lower()
    return frozenset(kw for kw in keywords if kw in text_lower)


def score(
    analysis: AnalysisResult,
    transcript: Sequence[str],
    keywords: Iterable[str] = DANGER_KEYWORDS,
) -> HybridScore:
    """
    Compute the hybrid score for a classification over a transcript.

    Args:
        analysis: Classification snapshot to fuse
        transcript: Ordered transcript lines the classification was made on
        keywords: Danger keyword list (defaults to the console list)

    Returns:
        HybridScore with final priority, distress and keyword matches
    """
    matches = find_keyword_matches(" ".join(transcript), keywords)

    distress = BASE_DISTRESS
    if analysis.severity is SeverityLevel.P1:
        distress += P1_DISTRESS_BONUS
    if matches:
        distress += KEYWORD_DISTRESS_BONUS
    distress = min(distress, 1.0)

    final_priority = analysis.severity
    if len(matches) >= ESCALATION_MATCH_THRESHOLD and final_priority is not SeverityLevel.P1:
        final_priority = SeverityLevel.P1

    return HybridScore(
        final_priority=final_priority,
        distress_score=distress,
        keyword_matches=matches,
        ai_confidence=analysis.confidence,
    )
