"""
Prompt assembly for follow-up diagnoses
Selects the template for a follow-up category and fills it from the context data
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
import json
import logging

from services.answer_formatter import format_answers
from services.followup_prompts import PILLAR, PROMPTS
from services.template_engine import render

logger = logging.getLogger(__name__)

NO_PREVIOUS_DIAGNOSIS = "No previous diagnosis available."


@dataclass
class FollowupContextData:
    """Everything a follow-up prompt needs about the original and follow-up submissions"""
    original_answers: Dict[str, Any] = field(default_factory=dict)
    followup_answers: Dict[str, Any] = field(default_factory=dict)
    original_diagnosis: Optional[Mapping[str, Any]] = None
    worksheet_title: str = ""
    worksheet_description: str = ""
    time_elapsed: Optional[str] = None
    pillar_id: Optional[str] = None
    pillar_title: Optional[str] = None
    user_name: Optional[str] = None
    followup_history: str = ""


@dataclass
class AssembledPrompt:
    system_message: str
    user_prompt: str


def _numbered(title: str, items) -> str:
    lines = [f"**{title}**:"]
    for index, item in enumerate(items, start=1):
        lines.append(f"{index}. {item}")
    return "\n".join(lines)


def format_diagnosis(diagnosis: Optional[Mapping[str, Any]]) -> str:
    """
    Format a stored diagnosis for the prompt. Each part is omitted when
    absent; an absent or empty diagnosis yields NO_PREVIOUS_DIAGNOSIS.
    """
    if not diagnosis:
        return NO_PREVIOUS_DIAGNOSIS

    parts = []
    if diagnosis.get("summary"):
        parts.append(f"**Summary**:\n{diagnosis['summary']}")
    if diagnosis.get("strengths"):
        parts.append(_numbered("Strengths", diagnosis["strengths"]))
    if diagnosis.get("challenges"):
        parts.append(_numbered("Challenges", diagnosis["challenges"]))
    if diagnosis.get("recommendations"):
        parts.append(_numbered("Recommendations", diagnosis["recommendations"]))

    situation = diagnosis.get("situationAnalysis") or {}
    if isinstance(situation, Mapping) and situation.get("fullText"):
        parts.append(f"**Situation Analysis**:\n{situation['fullText']}")

    return "\n\n".join(parts) if parts else NO_PREVIOUS_DIAGNOSIS


def _to_json(answers: Optional[Mapping[str, Any]]) -> str:
    return json.dumps(dict(answers or {}), indent=2, ensure_ascii=False, default=str)


def build_prompt_context(category: str, context_data: FollowupContextData) -> Dict[str, str]:
    """Flat placeholder -> text map for one diagnosis request"""
    formatted_original = format_answers(context_data.original_answers)

    additional_context = ""
    if category == PILLAR and context_data.pillar_id:
        additional_context = (
            f'This follow-up is specifically for the "{context_data.pillar_title or "Unknown"}" '
            f"pillar (ID: {context_data.pillar_id})."
        )

    return {
        "originalAnswers": _to_json(context_data.original_answers),
        "followupAnswers": _to_json(context_data.followup_answers),
        "formattedAnswers": format_answers(context_data.followup_answers),
        "originalPillarAnswers": formatted_original,
        "originalWorkbookAnswers": formatted_original,
        "followupHistory": context_data.followup_history or "",
        "originalDiagnosis": format_diagnosis(context_data.original_diagnosis),
        "worksheetTitle": context_data.worksheet_title or "Unknown Worksheet",
        "worksheetDescription": context_data.worksheet_description or "No description available",
        "timeElapsed": str(context_data.time_elapsed) if context_data.time_elapsed else "Unknown",
        "clientName": context_data.user_name or "Client",
        "pillarName": context_data.pillar_title or "Leadership",
        "pillarId": context_data.pillar_id or "",
        "additionalContext": additional_context,
    }


def assemble(category: str, context_data: FollowupContextData) -> AssembledPrompt:
    """Produce the (system message, user prompt) pair for a follow-up category"""
    if category not in PROMPTS:
        raise ValueError(f"Unknown follow-up category: {category}")

    system_message, template = PROMPTS[category]
    prompt_context = build_prompt_context(category, context_data)

    logger.debug(
        f"[DIAGNOSIS] Assembling {category} prompt for client={prompt_context['clientName']}, "
        f"pillar={prompt_context['pillarName']}"
    )
    return AssembledPrompt(system_message=system_message, user_prompt=render(template, prompt_context))
