"""
Diagnosis record conversion
Wraps the flat extracted sections into the persisted (extended) DiagnosisResult shape
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from services.diagnosis_extractor import FollowupDiagnosisResponse
from services.worksheet_catalog import find_pillars_in_text

DEFAULT_FOLLOWUP_ID = "followup-assessment"
DEFAULT_FOLLOWUP_TITLE = "Follow-up Assessment"


@dataclass
class StrengthRecord:
    strength: str = ""
    evidence: str = ""
    impact: str = ""
    leverage: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"strength": self.strength, "evidence": self.evidence, "impact": self.impact, "leverage": self.leverage}


@dataclass
class GrowthAreaRecord:
    area: str = ""
    evidence: str = ""
    impact: str = ""
    root_cause: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"area": self.area, "evidence": self.evidence, "impact": self.impact, "rootCause": self.root_cause}


@dataclass
class ActionableRecommendationRecord:
    action: str = ""
    implementation: str = ""
    outcome: str = ""
    measurement: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "action": self.action,
            "implementation": self.implementation,
            "outcome": self.outcome,
            "measurement": self.measurement,
        }


@dataclass
class PillarRecommendationRecord:
    id: str = ""
    title: str = ""
    reason: str = ""
    impact: str = ""
    exercise: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "title": self.title, "reason": self.reason, "impact": self.impact, "exercise": self.exercise}


@dataclass
class NextStepRecord:
    """The single follow-up recommendation every diagnosis carries"""
    id: str = DEFAULT_FOLLOWUP_ID
    title: str = DEFAULT_FOLLOWUP_TITLE
    reason: str = ""
    connection: str = ""
    focus: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "title": self.title, "reason": self.reason, "connection": self.connection, "focus": self.focus}


@dataclass
class DiagnosisResult:
    """Extended diagnosis record, persisted verbatim as JSON"""
    summary: str = ""
    strengths: List[str] = field(default_factory=list)
    challenges: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    followup_pillars: List[str] = field(default_factory=list)
    followup_worksheet: Optional[str] = DEFAULT_FOLLOWUP_ID
    situation_analysis: str = ""
    strengths_analysis: List[StrengthRecord] = field(default_factory=list)
    growth_areas_analysis: List[GrowthAreaRecord] = field(default_factory=list)
    actionable_recommendations: List[ActionableRecommendationRecord] = field(default_factory=list)
    pillar_recommendations: List[PillarRecommendationRecord] = field(default_factory=list)
    followup_recommendation: NextStepRecord = field(default_factory=NextStepRecord)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "strengths": list(self.strengths),
            "challenges": list(self.challenges),
            "recommendations": list(self.recommendations),
            "followupWorksheets": {
                "pillars": list(self.followup_pillars),
                "followup": self.followup_worksheet,
            },
            "createdAt": self.created_at.isoformat(),
            "situationAnalysis": {"fullText": self.situation_analysis},
            "strengthsAnalysis": [r.to_dict() for r in self.strengths_analysis],
            "growthAreasAnalysis": [r.to_dict() for r in self.growth_areas_analysis],
            "actionableRecommendations": [r.to_dict() for r in self.actionable_recommendations],
            "pillarRecommendations": [r.to_dict() for r in self.pillar_recommendations],
            "followupRecommendation": self.followup_recommendation.to_dict(),
        }


def _next_step(text: str) -> NextStepRecord:
    # Empty source still names a next step
    return NextStepRecord(reason=text or "")


def to_result(response: FollowupDiagnosisResponse, category: str) -> DiagnosisResult:
    """
    Build the typed record. Every nested record is constructed even when its
    source section is empty, with empty-string leaves.
    """
    strengths_text = response.strengths_analysis or ""
    growth_text = response.growth_areas_analysis or ""
    actions_text = response.actionable_recommendations or ""
    pillar_text = response.pillar_recommendations or ""

    return DiagnosisResult(
        summary=response.summary or "",
        strengths=[strengths_text],
        challenges=[growth_text],
        recommendations=[actions_text],
        followup_pillars=find_pillars_in_text(pillar_text),
        situation_analysis=response.situation_analysis or "",
        strengths_analysis=[StrengthRecord(strength=strengths_text)],
        growth_areas_analysis=[GrowthAreaRecord(area=growth_text)],
        actionable_recommendations=[ActionableRecommendationRecord(action=actions_text)],
        pillar_recommendations=[PillarRecommendationRecord(reason=pillar_text)],
        followup_recommendation=_next_step(response.followup_recommendation),
    )


def to_record(response: FollowupDiagnosisResponse, category: str) -> Dict[str, Any]:
    """JSON-ready extended DiagnosisResult for a FollowupAssessment or submission"""
    return to_result(response, category).to_dict()
