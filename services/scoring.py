"""Deterministic heuristic scoring used when no generator recommendation is available."""
from __future__ import annotations

import math
from typing import Any, List, Mapping, Sequence

from interview_session.models import Recommendation, Tier
from services.question_bank import keywords_for

WORDS_CAP = 120
DETAILED_AVG_WORDS = 30
TERMINOLOGY_THRESHOLD = 50
MIN_COVERAGE_ANSWERS = 6
UNKNOWN_ROLE_KEYWORD_SCORE = 50

STRENGTH_DETAIL = "Gave detailed answers"
WEAKNESS_BRIEF = "Answers too brief; provide more detail"
STRENGTH_TERMS = "Used relevant terminology"
WEAKNESS_TERMS = "More domain terms needed; mention role-specific techniques"
WEAKNESS_COVERAGE = "Insufficient topic coverage; try to cover more topics in depth"


def _round(value: float) -> int:
    """Round half up, independent of float banker's rounding."""
    return int(math.floor(value + 0.5))


def _transcript(item: Any) -> str:
    if isinstance(item, Mapping):
        text = item.get("transcript")
    else:
        text = getattr(item, "transcript", None)
    return text if isinstance(text, str) else ""


def tier_for(score: int) -> Tier:
    if score >= 70:
        return "Proceed"
    if score >= 45:
        return "Coach"
    return "NeedsDevelopment"


def keyword_matches(text: str, role: str) -> int:
    """Count distinct role keywords occurring case-insensitively in ``text``."""
    lower = text.lower()
    return sum(1 for keyword in keywords_for(role) if keyword in lower)


def score(answers: Sequence[Any], role: str) -> Recommendation:
    """Score captured answers for ``role`` without any external call."""

    joined = " ".join(_transcript(item) for item in answers)
    total_words = len(joined.split())
    answer_count = len(answers)
    avg_words = _round(total_words / answer_count) if answer_count else 0

    keywords = keywords_for(role)
    matches = keyword_matches(joined, role)
    if keywords:
        keyword_score = _round(100 * matches / max(1, len(keywords)))
    else:
        keyword_score = UNKNOWN_ROLE_KEYWORD_SCORE

    value = min(100, _round(min(avg_words, WORDS_CAP) / WORDS_CAP * 60 + keyword_score * 0.4))

    strengths: List[str] = []
    weaknesses: List[str] = []
    if avg_words > DETAILED_AVG_WORDS:
        strengths.append(STRENGTH_DETAIL)
    else:
        weaknesses.append(WEAKNESS_BRIEF)
    if keyword_score > TERMINOLOGY_THRESHOLD:
        strengths.append(STRENGTH_TERMS)
    else:
        weaknesses.append(WEAKNESS_TERMS)
    if answer_count < MIN_COVERAGE_ANSWERS:
        weaknesses.append(WEAKNESS_COVERAGE)

    summary = (
        f"You answered {answer_count} questions with an average of {avg_words} words per answer. "
        f"Detected {matches} relevant keywords for {role or 'Unknown'}."
    )
    return Recommendation(
        tier=tier_for(value),
        score=value,
        summary=summary,
        strengths=strengths,
        weaknesses=weaknesses,
    )


__all__ = ["keyword_matches", "score", "tier_for"]
