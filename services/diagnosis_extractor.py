"""
Section extraction from free-text model responses

The model is asked for "## HEADING" sections (see followup_prompts). Each
logical field is cut out between its heading and the next expected heading.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional
import enum
import logging
import re

from services.followup_prompts import DIAGNOSIS_FIELDS, heading_map

logger = logging.getLogger(__name__)


class SectionStatus(enum.Enum):
    """Outcome of looking for one heading"""
    FOUND = "found"      # heading present with text
    EMPTY = "empty"      # heading present, body blank
    MISSING = "missing"  # heading not present at all


@dataclass
class SectionResult:
    status: SectionStatus
    text: str = ""


@dataclass
class FollowupDiagnosisResponse:
    """Flat, partially structured follow-up diagnosis as extracted from the model"""
    summary: str = ""
    situation_analysis: str = ""
    strengths_analysis: str = ""
    growth_areas_analysis: str = ""
    actionable_recommendations: str = ""
    pillar_recommendations: str = ""
    followup_recommendation: str = ""
    section_status: Dict[str, SectionStatus] = field(default_factory=dict)

    @property
    def missing_sections(self):
        return [name for name, status in self.section_status.items() if status == SectionStatus.MISSING]


def _section_pattern(heading: str, next_heading: Optional[str]) -> "re.Pattern":
    end = rf"(?:##\s*{re.escape(next_heading)}|\Z)" if next_heading else r"\Z"
    return re.compile(rf"##\s*{re.escape(heading)}[ \t]*(?:\r?\n|\Z)(.*?){end}", re.IGNORECASE | re.DOTALL)


def find_section(text: str, heading: str, next_heading: Optional[str] = None) -> SectionResult:
    """
    Locate "## heading" (case-insensitive) and return what follows it up to
    "## next_heading", or to the end of text when there is no next heading or
    it is not found.
    """
    if not text:
        return SectionResult(SectionStatus.MISSING)

    match = _section_pattern(heading, next_heading).search(text)
    if not match:
        return SectionResult(SectionStatus.MISSING)

    body = match.group(1).strip()
    return SectionResult(SectionStatus.FOUND if body else SectionStatus.EMPTY, body)


def extract_section(text: str, heading: str, next_heading: Optional[str] = None) -> str:
    """String-only view of find_section; "" for both missing and empty sections"""
    return find_section(text, heading, next_heading).text


def parse_followup_diagnosis(generated_text: str, category: str) -> FollowupDiagnosisResponse:
    """Run extraction once per logical field using the category's heading map"""
    headings = heading_map(category)
    response = FollowupDiagnosisResponse()

    for name in DIAGNOSIS_FIELDS:
        if name not in headings:
            # Field not requested by this category's outline
            continue
        heading, next_heading = headings[name]
        result = find_section(generated_text, heading, next_heading)
        setattr(response, name, result.text)
        response.section_status[name] = result.status

    if response.missing_sections:
        logger.debug(f"[DIAGNOSIS] {category} response missing sections: {', '.join(response.missing_sections)}")

    return response
