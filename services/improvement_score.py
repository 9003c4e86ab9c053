"""
Improvement score (0-100) for a completed follow-up diagnosis
"""
from typing import Any, List, Mapping, Optional

from services.followup_prompts import PILLAR

NEUTRAL_SCORE = 50

# Checked in order; first keyword hit wins
_PROGRESS_LEVELS = [
    (("excellent", "outstanding"), 90),
    (("good", "significant"), 75),
    (("moderate", "average"), 50),
    (("limited", "minimal"), 30),
    (("poor", "no progress"), 10),
]


def parse_progress_level(progress_level: str) -> int:
    lowered = progress_level.lower()
    for keywords, score in _PROGRESS_LEVELS:
        if any(keyword in lowered for keyword in keywords):
            return score
    return NEUTRAL_SCORE


def _nested_text(diagnosis: Mapping[str, Any], record: str, key: str) -> Optional[str]:
    value = diagnosis.get(record)
    if isinstance(value, Mapping) and value.get(key):
        return str(value[key])
    return None


def calculate_improvement_score(diagnosis: Optional[Mapping[str, Any]], category: str) -> int:
    """
    Average of the available factors: strength count, challenge count,
    textual progress levels and (pillar follow-ups) the number of pillar
    recommendations still needed. 0 without a diagnosis, 50 with no factors.
    """
    if not diagnosis:
        return 0

    factors: List[float] = []

    strengths = diagnosis.get("strengths") or []
    if strengths:
        factors.append(min(len(strengths) * 10, 50))

    challenges = diagnosis.get("challenges") or []
    if challenges:
        factors.append(max(50 - len(challenges) * 10, 0))

    progress_level = _nested_text(diagnosis, "situationAnalysis", "progressLevel")
    if progress_level:
        factors.append(parse_progress_level(progress_level))

    if category == PILLAR:
        pillar_recommendations = diagnosis.get("pillarRecommendations") or []
        if pillar_recommendations:
            factors.append(max(70 - len(pillar_recommendations) * 10, 30))
    else:
        implementation_progress = _nested_text(diagnosis, "followupRecommendation", "implementationProgress")
        if implementation_progress:
            factors.append(parse_progress_level(implementation_progress))

    if not factors:
        return NEUTRAL_SCORE

    average = sum(factors) / len(factors)
    return min(max(int(round(average)), 0), 100)
