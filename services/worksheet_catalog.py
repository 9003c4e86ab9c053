"""
Worksheet catalog
Pillar ids and titles, follow-up worksheets, and follow-up id classification
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging
import re

from services.errors import InvalidAnswersError
from services.followup_prompts import PILLAR, WORKBOOK

logger = logging.getLogger(__name__)


# Canonical pillar worksheet ids, numbered 1..12
PILLAR_TYPES = [
    "pillar1_leadership_mindset",
    "pillar2_goal_setting",
    "pillar3_communication_mastery",
    "pillar4_time_mastery",
    "pillar5_strategic_thinking",
    "pillar6_emotional_intelligence",
    "pillar7_delegation_empowerment",
    "pillar8_change_uncertainty",
    "pillar9_conflict_resolution",
    "pillar10_high_performance",
    "pillar11_decision_making",
    "pillar12_execution_results",
]

PILLAR_TITLES = {
    "pillar1_leadership_mindset": "Leadership Mindset",
    "pillar2_goal_setting": "Goal Setting",
    "pillar3_communication_mastery": "Communication Mastery",
    "pillar4_time_mastery": "Time Mastery",
    "pillar5_strategic_thinking": "Strategic Thinking",
    "pillar6_emotional_intelligence": "Emotional Intelligence",
    "pillar7_delegation_empowerment": "Delegation and Empowerment",
    "pillar8_change_uncertainty": "Change and Uncertainty",
    "pillar9_conflict_resolution": "Conflict Resolution",
    "pillar10_high_performance": "High Performance",
    "pillar11_decision_making": "Decision Making",
    "pillar12_execution_results": "Execution and Results",
}

UNKNOWN_PILLAR = "Unknown Pillar"

FOLLOWUP_TYPES = ["followup-1", "followup-2", "followup-3", "followup-4"]

_GENERIC_FOLLOWUP_TITLES = {
    "followup-1": "Ask the Right Questions",
    "followup-2": "Identify the Issues",
    "followup-3": "Find the Best Solution",
    "followup-4": "Execute and Succeed",
}

_IMPLEMENTATION_STEPS = [
    "Self-Assessment",
    "Leadership Vision",
    "Team Alignment",
    "Action Planning",
    "Accountability",
]

_PILLAR_NUMBER = re.compile(r"^pillar(\d+)")


def pillar_number(pillar_id: Optional[str]) -> Optional[int]:
    """'pillar3_communication_mastery' -> 3; None when the id has no pillar<N> prefix"""
    if not pillar_id:
        return None
    match = _PILLAR_NUMBER.match(pillar_id)
    return int(match.group(1)) if match else None


def get_pillar_title(pillar_id: Optional[str]) -> str:
    """
    Exact id lookup first, then the pillar<N> number mapped onto the same table.
    Stored pillar ids are not always canonical (e.g. "pillar3-followup").
    """
    if not pillar_id:
        return UNKNOWN_PILLAR

    if pillar_id in PILLAR_TITLES:
        return PILLAR_TITLES[pillar_id]

    number = pillar_number(pillar_id)
    if number is not None and 1 <= number <= len(PILLAR_TYPES):
        return PILLAR_TITLES[PILLAR_TYPES[number - 1]]

    return UNKNOWN_PILLAR


def find_pillars_in_text(text: Optional[str]) -> List[str]:
    """Canonical pillar ids whose id or title is mentioned in free text, in catalog order"""
    if not text:
        return []
    lowered = text.lower()
    return [
        pillar_id for pillar_id in PILLAR_TYPES
        if pillar_id in lowered or PILLAR_TITLES[pillar_id].lower() in lowered
    ]


# =============================================================================
# FOLLOW-UP WORKSHEETS
# =============================================================================

@dataclass
class WorksheetQuestion:
    id: str
    text: str
    type: str = "textarea"  # text, textarea, rating, choice, checkbox
    options: Optional[List[str]] = None


@dataclass
class Worksheet:
    id: str
    title: str
    description: str
    category: str  # pillar, workbook
    questions: List[WorksheetQuestion] = field(default_factory=list)

    @property
    def question_ids(self) -> List[str]:
        return [q.id for q in self.questions]

    def to_metadata(self) -> Dict[str, str]:
        return {"title": self.title, "description": self.description, "category": self.category}


def _pillar_followup(number: int, pillar_id: str) -> Worksheet:
    title = PILLAR_TITLES[pillar_id]
    prefix = f"p{number}"
    return Worksheet(
        id=f"pillar{number}-followup",
        title=f"{title} Follow-up",
        description=f"Follow-up assessment for the {title} pillar",
        category=PILLAR,
        questions=[
            WorksheetQuestion(f"{prefix}-progress-rating", "How would you rate your progress in this area?", "rating"),
            WorksheetQuestion(f"{prefix}-actions-taken", "What actions have you taken since your original worksheet?"),
            WorksheetQuestion(f"{prefix}-what-worked", "Which strategies have worked best for you?"),
            WorksheetQuestion(f"{prefix}-obstacles", "What obstacles have you encountered?"),
            WorksheetQuestion(f"{prefix}-next-focus", "Where do you want to focus next?"),
            WorksheetQuestion("needs_help", "Would you like coaching support?", "checkbox"),
        ],
    )


def _implementation_followup(step: int, name: str) -> Worksheet:
    return Worksheet(
        id=f"jackier-step{step}-followup",
        title=f"Implementation Follow-up: {name}",
        description=f"Follow-up assessment for overall workbook implementation, step {step}: {name}",
        category=WORKBOOK,
        questions=[
            WorksheetQuestion("implementation-progress", "How is your overall implementation going?"),
            WorksheetQuestion("biggest-win", "What has been your biggest win since the workbook?"),
            WorksheetQuestion("biggest-barrier", "What is the biggest barrier you face?"),
            WorksheetQuestion("pillar-integration", "How are you combining the leadership pillars in practice?"),
            WorksheetQuestion("confidence_rating", "How confident are you in your implementation?", "rating"),
            WorksheetQuestion("needs_help", "Would you like coaching support?", "checkbox"),
        ],
    )


def _generic_followup(worksheet_id: str, title: str) -> Worksheet:
    return Worksheet(
        id=worksheet_id,
        title=title,
        description=f"Follow-up worksheet: {title}",
        category=WORKBOOK,
        questions=[
            WorksheetQuestion("reflection", "What has changed since your original submission?"),
            WorksheetQuestion("next-step", "What is your most important next step?"),
            WorksheetQuestion("needs_help", "Would you like coaching support?", "checkbox"),
        ],
    )


WORKSHEETS: Dict[str, Worksheet] = {}
for _number, _pillar_id in enumerate(PILLAR_TYPES, start=1):
    WORKSHEETS[f"pillar{_number}-followup"] = _pillar_followup(_number, _pillar_id)
for _step, _name in enumerate(_IMPLEMENTATION_STEPS, start=1):
    WORKSHEETS[f"jackier-step{_step}-followup"] = _implementation_followup(_step, _name)
for _worksheet_id in FOLLOWUP_TYPES:
    WORKSHEETS[_worksheet_id] = _generic_followup(_worksheet_id, _GENERIC_FOLLOWUP_TITLES[_worksheet_id])


def followup_worksheet_id(pillar_id: str) -> str:
    """Follow-up worksheet offered for a pillar: 'pillar3_communication_mastery' -> 'pillar3-followup'"""
    number = pillar_number(pillar_id)
    return f"pillar{number}-followup" if number else f"{pillar_id}-followup"


def load_worksheet(worksheet_id: Optional[str]) -> Optional[Worksheet]:
    """Resolve a follow-up worksheet; pillar ids and '<pillar id>-followup' resolve to the pillar's follow-up"""
    if not worksheet_id:
        return None
    worksheet = WORKSHEETS.get(worksheet_id)
    if worksheet is None and worksheet_id.startswith("pillar"):
        worksheet = WORKSHEETS.get(followup_worksheet_id(worksheet_id))
    return worksheet


def resolve_worksheet_metadata(worksheet_id: str) -> Optional[Dict[str, str]]:
    """{title, description, category} or None"""
    worksheet = load_worksheet(worksheet_id)
    return worksheet.to_metadata() if worksheet else None


def get_followup_type(followup_id: str) -> str:
    """Classify a follow-up worksheet id as 'pillar' or 'workbook'"""
    if re.match(r"^pillar\d+-followup$", followup_id):
        return PILLAR
    if re.match(r"^jackier-step\d+-followup$", followup_id):
        return WORKBOOK
    if re.match(r"^pillar\d+", followup_id):
        return PILLAR
    if any(keyword in followup_id for keyword in ("implementation", "workbook", "jackier")):
        return WORKBOOK

    logger.warning(f"[FOLLOWUP] Follow-up ID does not match expected patterns: {followup_id}")
    if "pillar" in followup_id:
        logger.warning(f"[FOLLOWUP] Assuming '{followup_id}' is a pillar follow-up based on naming")
        return PILLAR

    logger.warning(f"[FOLLOWUP] Could not determine follow-up type for ID: {followup_id}, defaulting to 'workbook'")
    return WORKBOOK


def extract_pillar_id(followup_id: str) -> Optional[str]:
    """'pillar1-followup' / 'pillar1_leadership_mindset-followup' -> 'pillar1_leadership_mindset'"""
    match = re.search(r"pillar(\d+)[-_]", followup_id)
    if match:
        index = int(match.group(1)) - 1
        if 0 <= index < len(PILLAR_TYPES):
            return PILLAR_TYPES[index]
    return None


def validate_followup_answers(worksheet: Worksheet, answers: Mapping[str, Any]) -> None:
    """
    Raises:
        InvalidAnswersError: no answers, or answers keyed by unknown question ids
    """
    if not answers:
        raise InvalidAnswersError(f"No answers provided for worksheet: {worksheet.id}")

    known = set(worksheet.question_ids)
    unknown = [key for key in answers if key not in known]
    if unknown:
        raise InvalidAnswersError(f"Invalid answer keys for worksheet {worksheet.id}: {', '.join(unknown)}")


# =============================================================================
# WORKSHEET RELATIONSHIPS (general recommendations)
# =============================================================================

def get_related_worksheets(worksheet_id: str) -> List[Tuple[str, float, str]]:
    """
    Scored (target worksheet id, relevance, context) pairs for a completed
    worksheet: the pillar's own follow-up first, then the neighbouring pillars.
    """
    number = pillar_number(worksheet_id)
    if number is None or not 1 <= number <= len(PILLAR_TYPES):
        return [("followup-1", 0.5, "Reflect on your progress so far")]

    related = [(f"pillar{number}-followup", 0.9, f"Check your progress in {get_pillar_title(worksheet_id)}")]
    if number < len(PILLAR_TYPES):
        next_id = PILLAR_TYPES[number]
        related.append((f"pillar{number + 1}-followup", 0.6, f"Builds on this pillar: {PILLAR_TITLES[next_id]}"))
    if number > 1:
        previous_id = PILLAR_TYPES[number - 2]
        related.append((f"pillar{number - 1}-followup", 0.4, f"Revisit the foundation: {PILLAR_TITLES[previous_id]}"))
    return related
