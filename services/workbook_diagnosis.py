"""
First-pass workbook diagnosis

Generated when a workbook is submitted. The model reply is split on its
markdown headings; list-style sections become the strengths, challenges and
recommendations of the stored DiagnosisResult, and the pillars it recommends
seed the follow-up triggers.
"""
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
import logging
import re

from sqlalchemy.orm import Session

from config import settings
from models import SubmissionStatus, WorkbookSubmission
from services.answer_formatter import format_answers
from services.context_builder import resolve_user_name
from services.diagnosis_converter import (
    DEFAULT_FOLLOWUP_ID,
    ActionableRecommendationRecord,
    DiagnosisResult,
    GrowthAreaRecord,
    NextStepRecord,
    PillarRecommendationRecord,
    StrengthRecord,
)
from services.diagnosis_service import LanguageModel
from services.errors import DiagnosisGenerationError, DiagnosisNotAvailableError, SubmissionNotFoundError
from services.submission_service import attach_diagnosis, find_user_by_id, get_submission, mark_diagnosis_viewed
from services.template_engine import render
from services.worksheet_catalog import (
    FOLLOWUP_TYPES,
    PILLAR_TITLES,
    PILLAR_TYPES,
    find_pillars_in_text,
    load_worksheet,
)

logger = logging.getLogger(__name__)

NO_SUMMARY = "No summary provided."
MAX_FOCUS_PILLARS = 3


# =============================================================================
# PROMPT
# =============================================================================

WORKBOOK_DIAGNOSIS_SYSTEM_MESSAGE = (
    "You are an expert leadership coach with the Jackier Method, analyzing a client's workbook responses. "
    "Your expertise is in identifying patterns in leadership behavior and providing actionable, personalized guidance. "
    "Use evidence from their responses to support your analysis. "
    "When recommending leadership pillars, be specific about why they are relevant to this particular client.\n\n"
    "Formatting instructions:\n"
    "1. Use markdown headings (##) for each section\n"
    "2. Format lists as bullet points with dashes (-)\n"
    "3. Keep the exact section headings as specified\n"
    "4. Always include the exact pillar IDs as specified in the prompt"
)


def _pillar_choices() -> str:
    return "\n".join(f"- {pillar_id} ({PILLAR_TITLES[pillar_id]})" for pillar_id in PILLAR_TYPES)


def _followup_choices() -> str:
    return "\n".join(f"- {followup_id} ({load_worksheet(followup_id).title})" for followup_id in FOLLOWUP_TYPES)


WORKBOOK_DIAGNOSIS_PROMPT = f"""Please analyze the following responses from the Jackier Method Workbook completed by {{{{clientName}}}}:

{{{{formattedAnswers}}}}

{{{{previousContext}}}}

Based on these responses, provide a comprehensive leadership diagnosis with the following sections:

## SUMMARY
One paragraph describing where this leader stands today.

## LEADERSHIP SITUATION ANALYSIS
Provide a detailed analysis (2-3 paragraphs) of the client's current leadership situation: their context and role, the key challenges they face, and the patterns in their leadership approach.

## KEY STRENGTHS
Identify 3-5 specific leadership strengths. For each, write a paragraph starting with "Strength:" followed by lines "Evidence:", "Impact:" and "Leverage:".

## GROWTH AREAS
Identify 3-5 specific growth areas. For each, write a paragraph starting with "Area:" followed by lines "Evidence:", "Impact:" and "Root Cause:".

## ACTIONABLE RECOMMENDATIONS
Provide 3-5 specific recommendations. For each, write a paragraph starting with "Action:" followed by lines "Implementation:", "Outcome:" and "Measurement:".

## RECOMMENDED LEADERSHIP PILLARS
Recommend 2-3 leadership pillars to focus on next. For each, write a paragraph starting with "Pillar:" and the exact pillar ID, followed by lines "Reason:", "Impact:" and "Exercise:".

Choose from these pillars:
{_pillar_choices()}

## IMPLEMENTATION SUPPORT
Recommend one follow-up worksheet. Write a paragraph starting with "Worksheet:" and the exact worksheet ID, followed by lines "Reason:", "Connection:" and "Focus:".

Choose from these follow-up worksheets:
{_followup_choices()}
"""


# =============================================================================
# PARSING
# =============================================================================

# Accepted heading variants per logical section, matched case-insensitively
SECTION_ALIASES: Dict[str, Tuple[str, ...]] = {
    "summary": ("summary", "overview", "executive summary"),
    "situation": ("leadership situation analysis", "situation analysis", "context", "current situation"),
    "strengths": ("key strengths", "strengths", "leadership strengths"),
    "growth_areas": ("growth areas", "challenges", "areas for improvement", "development areas", "weaknesses"),
    "recommendations": ("actionable recommendations", "recommendations", "action items", "action steps", "next steps"),
    "pillars": ("recommended leadership pillars", "leadership pillars", "pillar recommendations", "pillars"),
    "implementation": ("implementation support", "follow-up", "follow up", "followup", "implementation"),
}

_HEADING = re.compile(r"^#{1,2}\s+(.+?)\s*$")
_LIST_ITEM = re.compile(r"^\s*(?:\d+\.|[-*•])\s+(.+)$")
_ITEM_KEYWORDS = (
    "strength", "skill", "talent", "challenge", "weakness", "area",
    "opportunity", "recommend", "action", "step", "focus",
)


def split_sections(text: str) -> Dict[str, str]:
    """Body under each '#' or '##' heading, keyed by the lowercased heading"""
    sections: Dict[str, str] = {}
    current: Optional[str] = None
    lines: List[str] = []

    for line in (text or "").splitlines():
        match = _HEADING.match(line)
        if match:
            if current is not None:
                sections[current] = "\n".join(lines).strip()
            current = match.group(1).strip().lower()
            lines = []
        elif current is not None:
            lines.append(line)

    if current is not None:
        sections[current] = "\n".join(lines).strip()
    return sections


def normalize_sections(sections: Mapping[str, str]) -> Dict[str, str]:
    """Logical section name -> body of the first heading that is one of its aliases"""
    normalized = {}
    for name, aliases in SECTION_ALIASES.items():
        for heading, body in sections.items():
            if heading in aliases:
                normalized[name] = body
                break
    return normalized


def extract_list_items(text: str) -> List[str]:
    """
    Bulleted or numbered lines of a section. Short unbulleted lines mentioning
    an item keyword also count; with nothing found, up to five sentences are
    used instead.
    """
    if not text:
        return []

    items: List[str] = []
    for line in text.splitlines():
        match = _LIST_ITEM.match(line)
        if match:
            items.append(match.group(1).strip())
            continue
        stripped = line.strip()
        if (
            5 < len(stripped) < 200
            and not stripped.startswith("#")
            and stripped not in items
            and any(keyword in stripped.lower() for keyword in _ITEM_KEYWORDS)
        ):
            items.append(stripped)

    if not items and text.strip():
        for sentence in re.split(r"\.\s+", text)[:5]:
            sentence = sentence.strip()
            if len(sentence) > 10 and sentence not in items:
                items.append(sentence)

    return items


def _paragraphs(text: str) -> List[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", text or "") if p.strip()]


def _labelled(paragraph: str, *labels: str) -> str:
    for label in labels:
        match = re.search(rf"{re.escape(label)}\s*:\s*(.+)", paragraph, re.IGNORECASE)
        if match:
            return match.group(1).strip()
    return ""


def _titled_paragraphs(text: str, *labels: str) -> Iterator[Tuple[str, str]]:
    """(title, paragraph) for every paragraph opening with one of the labels"""
    alternation = "|".join(re.escape(label) for label in labels)
    pattern = re.compile(rf"^(?:\d+\.\s*)?(?:\*\*)?(?:{alternation})(?:\*\*)?\s*:\s*(.+)", re.IGNORECASE)
    for paragraph in _paragraphs(text):
        match = pattern.match(paragraph)
        if match:
            yield match.group(1).strip(" *"), paragraph


def parse_strengths(text: str) -> List[StrengthRecord]:
    records = [
        StrengthRecord(
            strength=title,
            evidence=_labelled(paragraph, "Evidence"),
            impact=_labelled(paragraph, "Impact"),
            leverage=_labelled(paragraph, "Leverage", "How to leverage"),
        )
        for title, paragraph in _titled_paragraphs(text, "Strength")
    ]
    return records or [StrengthRecord(strength=item) for item in extract_list_items(text)]


def parse_growth_areas(text: str) -> List[GrowthAreaRecord]:
    records = [
        GrowthAreaRecord(
            area=title,
            evidence=_labelled(paragraph, "Evidence"),
            impact=_labelled(paragraph, "Impact"),
            root_cause=_labelled(paragraph, "Root Cause", "Cause"),
        )
        for title, paragraph in _titled_paragraphs(text, "Growth Area", "Area")
    ]
    return records or [GrowthAreaRecord(area=item) for item in extract_list_items(text)]


def parse_actions(text: str) -> List[ActionableRecommendationRecord]:
    records = [
        ActionableRecommendationRecord(
            action=title,
            implementation=_labelled(paragraph, "Implementation"),
            outcome=_labelled(paragraph, "Expected Outcome", "Outcome"),
            measurement=_labelled(paragraph, "Measurement", "Success Metric"),
        )
        for title, paragraph in _titled_paragraphs(text, "Action", "Recommendation")
    ]
    return records or [ActionableRecommendationRecord(action=item) for item in extract_list_items(text)]


def parse_pillar_recommendations(text: str) -> List[PillarRecommendationRecord]:
    """Only recommendations that name a known pillar are kept"""
    records = []
    for title, paragraph in _titled_paragraphs(text, "Pillar"):
        pillar_ids = find_pillars_in_text(title)
        if not pillar_ids:
            continue
        records.append(PillarRecommendationRecord(
            id=pillar_ids[0],
            title=PILLAR_TITLES[pillar_ids[0]],
            reason=_labelled(paragraph, "Reason", "Why"),
            impact=_labelled(paragraph, "Impact"),
            exercise=_labelled(paragraph, "Key Exercise", "Exercise"),
        ))
    if records:
        return records

    for item in extract_list_items(text):
        pillar_ids = find_pillars_in_text(item)
        if pillar_ids and pillar_ids[0] not in [r.id for r in records]:
            records.append(PillarRecommendationRecord(id=pillar_ids[0], title=PILLAR_TITLES[pillar_ids[0]], reason=item))
    return records


def _match_followup(text: str) -> Optional[str]:
    lowered = (text or "").lower()
    for followup_id in FOLLOWUP_TYPES:
        if followup_id in lowered or load_worksheet(followup_id).title.lower() in lowered:
            return followup_id
    return None


def parse_next_step(text: str) -> NextStepRecord:
    """The recommended follow-up worksheet; the default next step when none is named"""
    for title, paragraph in _titled_paragraphs(text, "Worksheet", "Follow-up"):
        followup_id = _match_followup(title)
        if followup_id:
            return NextStepRecord(
                id=followup_id,
                title=load_worksheet(followup_id).title,
                reason=_labelled(paragraph, "Reason", "Why"),
                connection=_labelled(paragraph, "Connection"),
                focus=_labelled(paragraph, "Focus"),
            )

    followup_id = _match_followup(text)
    if followup_id:
        return NextStepRecord(id=followup_id, title=load_worksheet(followup_id).title, reason=text.strip())
    return NextStepRecord(reason=(text or "").strip())


def _items_or_fallback(section: str, full_text: str, hint: str) -> List[str]:
    items = extract_list_items(section)
    if items:
        return items
    return extract_list_items(full_text) if re.search(hint, full_text or "", re.IGNORECASE) else []


def parse_workbook_diagnosis(generated_text: str) -> DiagnosisResult:
    sections = normalize_sections(split_sections(generated_text))
    logger.debug(f"[WORKBOOK] Diagnosis sections found: {', '.join(sections) or 'none'}")

    pillar_recommendations = parse_pillar_recommendations(sections.get("pillars", ""))
    if pillar_recommendations:
        focus_pillars = [r.id for r in pillar_recommendations]
    else:
        focus_pillars = find_pillars_in_text(sections.get("pillars") or generated_text)

    next_step = parse_next_step(sections.get("implementation", ""))

    return DiagnosisResult(
        summary=sections.get("summary") or sections.get("situation") or NO_SUMMARY,
        strengths=_items_or_fallback(sections.get("strengths", ""), generated_text, r"strength|talent|skill"),
        challenges=_items_or_fallback(
            sections.get("growth_areas", ""), generated_text, r"challenge|growth|improvement|weakness"
        ),
        recommendations=_items_or_fallback(
            sections.get("recommendations", ""), generated_text, r"recommend|action|step|implement"
        ),
        followup_pillars=focus_pillars[:MAX_FOCUS_PILLARS],
        followup_worksheet=next_step.id,
        situation_analysis=sections.get("situation", ""),
        strengths_analysis=parse_strengths(sections.get("strengths", "")),
        growth_areas_analysis=parse_growth_areas(sections.get("growth_areas", "")),
        actionable_recommendations=parse_actions(sections.get("recommendations", "")),
        pillar_recommendations=pillar_recommendations,
        followup_recommendation=next_step,
    )


# =============================================================================
# SERVICE
# =============================================================================

class WorkbookDiagnosisService:
    """Generates and stores the diagnosis of a submitted workbook"""

    def __init__(
        self,
        model: Optional[LanguageModel] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ):
        if model is None:
            from services.openai_service import openai_service
            model = openai_service
        self.model = model
        self.model_name = getattr(model, "model", None) or type(model).__name__
        self.temperature = settings.WORKBOOK_DIAGNOSIS_TEMPERATURE if temperature is None else temperature
        self.max_tokens = settings.WORKBOOK_DIAGNOSIS_MAX_TOKENS if max_tokens is None else max_tokens

    def build_prompt(
        self,
        answers: Mapping[str, Any],
        client_name: str,
        previous_diagnosis: Optional[Mapping[str, Any]] = None
    ) -> str:
        previous_context = ""
        if previous_diagnosis and previous_diagnosis.get("summary"):
            previous_context = f"Previous diagnosis summary: {previous_diagnosis['summary']}"
        return render(WORKBOOK_DIAGNOSIS_PROMPT, {
            "clientName": client_name,
            "formattedAnswers": format_answers(answers),
            "previousContext": previous_context,
        })

    async def generate(
        self,
        answers: Mapping[str, Any],
        client_name: str,
        previous_diagnosis: Optional[Mapping[str, Any]] = None
    ) -> DiagnosisResult:
        """
        Raises:
            DiagnosisGenerationError: the model call failed
        """
        prompt = self.build_prompt(answers, client_name, previous_diagnosis)
        try:
            generated_text = await self.model.complete(
                WORKBOOK_DIAGNOSIS_SYSTEM_MESSAGE,
                prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
        except Exception as e:
            logger.error(
                f"[WORKBOOK] Workbook diagnosis failed (model={self.model_name}): {type(e).__name__}: {e}"
            )
            raise DiagnosisGenerationError("Failed to generate workbook diagnosis") from e

        logger.info(f"[WORKBOOK] Generated workbook diagnosis ({len(generated_text)} chars)")
        return parse_workbook_diagnosis(generated_text)

    async def diagnose(self, db: Session, submission: WorkbookSubmission) -> WorkbookSubmission:
        """
        Generate and attach a diagnosis to a submitted workbook.

        Raises:
            DiagnosisGenerationError: the model call failed; the submission is unchanged
        """
        client_name = resolve_user_name(submission, lambda uid: find_user_by_id(db, uid))
        result = await self.generate(submission.answers or {}, client_name, submission.diagnosis)
        return attach_diagnosis(db, submission, result.to_dict())

    async def diagnose_after_submit(self, db: Session, submission: WorkbookSubmission) -> bool:
        """Submit-time generation; a failure leaves the submission without a diagnosis"""
        try:
            await self.diagnose(db, submission)
        except DiagnosisGenerationError:
            logger.warning(f"[WORKBOOK] Submission {submission.id} saved without a diagnosis")
            return False
        return True

    async def regenerate(self, db: Session, user_id: str, submission_id: str) -> WorkbookSubmission:
        """
        Raises:
            SubmissionNotFoundError: no submitted workbook with this id for the user
            DiagnosisGenerationError: the model call failed
        """
        submission = get_submission(db, user_id, submission_id)
        if submission.status != SubmissionStatus.SUBMITTED.value:
            raise SubmissionNotFoundError(f"No submitted workbook found: {submission_id}")
        return await self.diagnose(db, submission)

    def view(self, db: Session, user_id: str, submission_id: str) -> WorkbookSubmission:
        """
        Return the submission with its diagnosis, stamping the first view.

        Raises:
            SubmissionNotFoundError: no such submission for the user
            DiagnosisNotAvailableError: nothing has been generated yet
        """
        submission = get_submission(db, user_id, submission_id)
        if not submission.diagnosis:
            raise DiagnosisNotAvailableError(f"No diagnosis available for submission: {submission_id}")
        return mark_diagnosis_viewed(db, submission)


# Singleton instance
workbook_diagnosis_service = WorkbookDiagnosisService()
