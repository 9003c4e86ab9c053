"""
Follow-up diagnosis prompts

The analysis outline of each prompt is declared once as data (SECTION_OUTLINES).
The same outline renders the "## HEADING" literals into the template and drives
section extraction from the model response, so the two cannot drift apart.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

PILLAR = "pillar"
WORKBOOK = "workbook"

# Logical fields of a follow-up diagnosis response, in persisted order
DIAGNOSIS_FIELDS = (
    "summary",
    "situation_analysis",
    "strengths_analysis",
    "growth_areas_analysis",
    "actionable_recommendations",
    "pillar_recommendations",
    "followup_recommendation",
)


@dataclass(frozen=True)
class SectionSpec:
    """One requested section: which field it fills, its heading, what to ask for"""
    field: str
    heading: str
    guidance: str


_SUMMARY_GUIDANCE = (
    "Write a concise overview (1 paragraph) of where the client stands now compared "
    "with their original submission {{timeElapsed}} ago."
)

_COACHING_GUIDANCE = """Assess whether the client would benefit from direct coaching support:
- Specific areas where coaching would be most valuable
- Types of coaching interventions that would be most effective
- Whether their challenges indicate a need for more personalized guidance
- Recommended coaching focus areas based on their responses"""


SECTION_OUTLINES: Dict[str, List[SectionSpec]] = {
    PILLAR: [
        SectionSpec("summary", "SUMMARY", _SUMMARY_GUIDANCE),
        SectionSpec("situation_analysis", "PROGRESS ANALYSIS", """Provide a detailed analysis (2-3 paragraphs) of the client's progress in this specific leadership pillar, including:
- How their understanding of this pillar has evolved
- Specific actions they've taken since the original worksheet
- Challenges they've encountered in implementing practices related to this pillar
- Measurable improvements or continued struggles in this area"""),
        SectionSpec("strengths_analysis", "IMPLEMENTATION EFFECTIVENESS", """Analyze how effectively the client has implemented the recommendations for this pillar:
- Which strategies have been most effective for them
- Which approaches haven't worked as well and why
- Specific examples from their responses that demonstrate implementation
- Barriers or obstacles that have hindered their progress"""),
        SectionSpec("growth_areas_analysis", "ADJUSTED RECOMMENDATIONS", """Based on their progress and current challenges, provide 3-5 refined recommendations:
- Specific adjustments to their current approach
- New strategies tailored to their updated situation
- Resources or tools that could help them overcome current obstacles
- Clear, actionable next steps with expected outcomes"""),
        SectionSpec("actionable_recommendations", "CONTINUED GROWTH PLAN", """Outline a specific plan for continued growth in this pillar:
- Short-term actions (next 1-2 weeks)
- Medium-term development goals (1-3 months)
- How to integrate this pillar with other leadership areas
- How to measure and track ongoing progress"""),
        SectionSpec("followup_recommendation", "COACHING SUPPORT ASSESSMENT", _COACHING_GUIDANCE),
    ],
    WORKBOOK: [
        SectionSpec("summary", "SUMMARY", _SUMMARY_GUIDANCE),
        SectionSpec("situation_analysis", "IMPLEMENTATION PROGRESS ANALYSIS", """Provide a detailed analysis (2-3 paragraphs) of the client's overall implementation progress, including:
- How they've applied the Jackier Method principles in their leadership
- Key areas where they've made the most significant progress
- Persistent challenges across multiple leadership dimensions
- Overall effectiveness of their implementation strategy"""),
        SectionSpec("strengths_analysis", "CROSS-PILLAR INTEGRATION", """Analyze how effectively the client is integrating multiple leadership pillars:
- Synergies between different leadership areas they're developing
- Conflicts or tensions between different leadership approaches
- How their implementation approach balances different leadership needs
- Areas where better integration would improve their effectiveness"""),
        SectionSpec("growth_areas_analysis", "IMPLEMENTATION BARRIERS", """Identify 3-5 specific barriers to effective implementation:
- Systemic or organizational barriers they're facing
- Personal habits or patterns that hinder implementation
- Resource or support gaps affecting their progress
- Specific situations where implementation has been most challenging"""),
        SectionSpec("actionable_recommendations", "COMPREHENSIVE ADJUSTMENT PLAN", """Provide a holistic plan for improving implementation effectiveness:
- Specific adjustments to their overall implementation approach
- Strategies for better integrating different leadership pillars
- Resources or tools to overcome identified barriers
- A balanced approach addressing both strengths and challenges"""),
        SectionSpec("pillar_recommendations", "NEXT FOCUS AREAS", """Recommend 2-3 specific leadership areas for focused attention:
- Which specific leadership pillars need renewed focus
- How these areas connect to their current implementation challenges
- Specific exercises or practices for each focus area
- How to measure progress in these areas"""),
        SectionSpec("followup_recommendation", "COACHING SUPPORT ASSESSMENT", _COACHING_GUIDANCE),
    ],
}


def heading_map(category: str) -> Dict[str, Tuple[str, Optional[str]]]:
    """
    Map each logical field to its (heading, next_heading) pair for a category.
    The last section has no next heading and runs to the end of the response.
    """
    outline = SECTION_OUTLINES[category]
    mapping = {}
    for index, section in enumerate(outline):
        next_heading = outline[index + 1].heading if index + 1 < len(outline) else None
        mapping[section.field] = (section.heading, next_heading)
    return mapping


def render_outline(category: str) -> str:
    return "\n\n".join(
        f"## {section.heading}\n{section.guidance}" for section in SECTION_OUTLINES[category]
    )


PILLAR_FOLLOWUP_PROMPT = f"""
Please analyze the following responses from the follow-up worksheet for the {{{{pillarName}}}} pillar completed by {{{{clientName}}}}:
{{{{additionalContext}}}}

## FOLLOW-UP RESPONSES
{{{{formattedAnswers}}}}

## ORIGINAL PILLAR RESPONSES
{{{{originalPillarAnswers}}}}

## ORIGINAL DIAGNOSIS CONTEXT
{{{{originalDiagnosis}}}}

Based on these responses, provide a comprehensive follow-up analysis focused specifically on their progress in the {{{{pillarName}}}} pillar with the following sections:

{render_outline(PILLAR)}

Format your response with clear headings for each section exactly as shown above. Be specific, practical, and actionable in your analysis and recommendations, focusing specifically on this pillar rather than general leadership development.
"""

PILLAR_FOLLOWUP_SYSTEM_MESSAGE = (
    "You are an expert leadership coach with the Jackier Method, analyzing a client's follow-up responses for a specific leadership pillar. "
    "Your expertise is in tracking progress, identifying ongoing challenges, and providing adjusted recommendations based on implementation experience. "
    "Be thoughtful, empathetic, and insightful in your follow-up analysis. "
    "Focus on how the client has progressed in this specific pillar area since their original submission. "
    "Use evidence from both their original and follow-up responses to support your analysis. "
    "Provide specific, tailored recommendations that address their current implementation challenges. "
    "Your goal is to help the client continue their growth journey in this specific leadership pillar with practical next steps."
)

WORKBOOK_FOLLOWUP_PROMPT = f"""
Please analyze the following responses from the implementation follow-up worksheet completed by {{{{clientName}}}}:

## FOLLOW-UP RESPONSES
{{{{formattedAnswers}}}}

## ORIGINAL WORKBOOK RESPONSES
{{{{originalWorkbookAnswers}}}}

## ORIGINAL DIAGNOSIS CONTEXT
{{{{originalDiagnosis}}}}

## PREVIOUS FOLLOW-UP HISTORY
{{{{followupHistory}}}}

Based on these responses, provide a comprehensive follow-up analysis focused on their overall implementation progress with the following sections:

{render_outline(WORKBOOK)}

Format your response with clear headings for each section exactly as shown above. Be specific, practical, and actionable in your analysis and recommendations, focusing on holistic implementation rather than any single leadership pillar.
"""

WORKBOOK_FOLLOWUP_SYSTEM_MESSAGE = (
    "You are an expert leadership coach with the Jackier Method, analyzing a client's follow-up responses regarding their overall implementation progress. "
    "Your expertise is in assessing how effectively clients are applying multiple leadership principles across their work, identifying integration challenges, and providing holistic guidance. "
    "Be thoughtful, empathetic, and insightful in your follow-up analysis. "
    "Focus on how the client has progressed in implementing the complete Jackier Method framework since their original submission. "
    "Use evidence from both their original and follow-up responses to support your analysis. "
    "Provide specific, tailored recommendations that address their implementation challenges across multiple leadership dimensions. "
    "Your goal is to help the client achieve integrated leadership growth with practical next steps for comprehensive implementation."
)

PROMPTS = {
    PILLAR: (PILLAR_FOLLOWUP_SYSTEM_MESSAGE, PILLAR_FOLLOWUP_PROMPT),
    WORKBOOK: (WORKBOOK_FOLLOWUP_SYSTEM_MESSAGE, WORKBOOK_FOLLOWUP_PROMPT),
}
