"""
Recommendation ranking
Turns trigger results into the follow-up recommendation list shown to the user,
and ranks general worksheet recommendations by relevance
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence
import logging

from services.followup_trigger_service import ReasonKind, TriggerResult
from services.worksheet_catalog import get_related_worksheets, resolve_worksheet_metadata

logger = logging.getLogger(__name__)

# resolveWorksheetMetadata collaborator: worksheet id -> {title, description, category} or None
WorksheetLookup = Callable[[str], Optional[Mapping[str, str]]]

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"


@dataclass
class FollowupRecommendation:
    """One follow-up offer; built per request, never stored"""
    worksheet_id: str
    worksheet_title: str
    worksheet_type: str
    worksheet_description: str
    original_submission_id: Optional[str]
    reason: str
    priority: str
    reason_kind: ReasonKind = ReasonKind.OTHER
    pillars: List[str] = field(default_factory=list)
    submitted_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "worksheetId": self.worksheet_id,
            "worksheetTitle": self.worksheet_title,
            "worksheetType": self.worksheet_type,
            "worksheetDescription": self.worksheet_description,
            "originalSubmissionId": self.original_submission_id,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
            "reason": self.reason,
            "reasonKind": self.reason_kind.value,
            "priority": self.priority,
            "pillars": list(self.pillars),
        }


@dataclass
class WorksheetRecommendation:
    """General (non follow-up) worksheet suggestion with a relevance score"""
    worksheet_id: str
    title: str
    description: str
    relevance_score: float
    context_description: str = ""
    relationship_type: str = "follow_up"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "worksheetId": self.worksheet_id,
            "title": self.title,
            "description": self.description,
            "relevanceScore": self.relevance_score,
            "contextDescription": self.context_description,
            "relationshipType": self.relationship_type,
        }


def infer_priority(reason: str) -> str:
    """First match wins: explicit request, low ratings, time-based, otherwise medium"""
    if "explicitly requested" in reason:
        return PRIORITY_HIGH
    if "Low ratings" in reason:
        return PRIORITY_HIGH
    if "time" in reason:
        return PRIORITY_LOW
    return PRIORITY_MEDIUM


def infer_reason_kind(reason: str) -> ReasonKind:
    if "explicitly requested" in reason:
        return ReasonKind.EXPLICIT_REQUEST
    if "Low ratings" in reason:
        return ReasonKind.LOW_RATINGS
    if "time" in reason:
        return ReasonKind.TIME_ELAPSED
    return ReasonKind.OTHER


def _submission_date(submissions: Sequence[Any], submission_id: Optional[str]) -> Optional[datetime]:
    for submission in submissions:
        if str(getattr(submission, "id", "")) == submission_id:
            return getattr(submission, "submitted_at", None) or getattr(submission, "created_at", None)
    return None


def rank(
    trigger_results: Iterable[TriggerResult],
    submissions: Sequence[Any],
    worksheet_lookup: WorksheetLookup = resolve_worksheet_metadata
) -> List[FollowupRecommendation]:
    """
    Stable filter over trigger results in the order received. The first result
    per originating submission wins; a result whose worksheet cannot be resolved
    is logged and dropped without affecting the rest.
    """
    recommendations: List[FollowupRecommendation] = []
    consumed = set()

    for result in trigger_results:
        submission_id = result.original_submission_id
        if submission_id and submission_id in consumed:
            continue
        if not result.worksheet_id:
            continue

        try:
            worksheet = worksheet_lookup(result.worksheet_id)
        except Exception as e:
            logger.warning(f"[RECOMMEND] Error loading worksheet {result.worksheet_id}: {e}")
            continue
        if not worksheet:
            logger.warning(f"[RECOMMEND] Worksheet not found: {result.worksheet_id}, skipping")
            continue

        # Older results may carry a default kind; the reason text stays authoritative
        reason_kind = result.reason_kind
        if reason_kind == ReasonKind.OTHER:
            reason_kind = infer_reason_kind(result.reason)

        recommendations.append(FollowupRecommendation(
            worksheet_id=result.worksheet_id,
            worksheet_title=worksheet.get("title", ""),
            worksheet_type=worksheet.get("category", ""),
            worksheet_description=worksheet.get("description") or "",
            original_submission_id=submission_id,
            reason=result.reason,
            priority=infer_priority(result.reason),
            reason_kind=reason_kind,
            pillars=list(result.pillars or []),
            submitted_at=_submission_date(submissions, submission_id),
        ))

        if submission_id:
            consumed.add(submission_id)

    logger.info(f"[RECOMMEND] {len(recommendations)} follow-up recommendations")
    return recommendations


def rank_by_relevance(
    candidates: Iterable[WorksheetRecommendation],
    current_worksheet_id: Optional[str] = None,
    limit: Optional[int] = None
) -> List[WorksheetRecommendation]:
    """
    Dedupe by worksheet id (first wins), sort by relevance descending, drop the
    current worksheet after sorting, then cut to limit.
    """
    seen = set()
    unique = []
    for candidate in candidates:
        if candidate.worksheet_id in seen:
            continue
        seen.add(candidate.worksheet_id)
        unique.append(candidate)

    unique.sort(key=lambda c: c.relevance_score, reverse=True)

    if current_worksheet_id:
        unique = [c for c in unique if c.worksheet_id != current_worksheet_id]

    return unique[:limit] if limit is not None else unique


def related_worksheet_candidates(
    completed_worksheet_ids: Iterable[str],
    worksheet_lookup: WorksheetLookup = resolve_worksheet_metadata
) -> List[WorksheetRecommendation]:
    """Candidate suggestions from each completed worksheet's relationships"""
    candidates = []
    for worksheet_id in completed_worksheet_ids:
        for target_id, score, context in get_related_worksheets(worksheet_id):
            worksheet = worksheet_lookup(target_id)
            if not worksheet:
                continue
            candidates.append(WorksheetRecommendation(
                worksheet_id=target_id,
                title=worksheet.get("title", ""),
                description=worksheet.get("description") or "",
                relevance_score=score,
                context_description=context,
            ))
    return candidates
