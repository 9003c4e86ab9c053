"""
Follow-up trigger engine
Decides which prior submissions deserve a follow-up worksheet and why
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence
import enum
import logging

from config import settings
from services.worksheet_catalog import PILLAR_TYPES, followup_worksheet_id

logger = logging.getLogger(__name__)

DEFAULT_FOLLOWUP_WORKSHEET = "followup-1"

REASON_EXPLICIT_REQUEST = "User explicitly requested help or follow-up"
REASON_LOW_RATINGS = "Low ratings detected in pillars: {pillars}"
REASON_TIME = "Appropriate time has passed since original submission"
REASON_HAS_FOLLOWUPS = "Submission already has follow-ups"
REASON_NONE = "No trigger conditions met"

HELP_REQUEST_FIELDS = [
    "needs_help",
    "request_coaching",
    "request_followup",
    "stuck",
    "need_assistance",
]

HELP_KEYWORDS = [
    "help me",
    "need help",
    "struggling",
    "stuck",
    "difficult",
    "challenge",
    "can't figure out",
    "assistance",
    "support",
    "coach",
    "guidance",
]


class ReasonKind(enum.Enum):
    """Structured counterpart of the human-readable reason"""
    EXPLICIT_REQUEST = "explicit_request"
    LOW_RATINGS = "low_ratings"
    TIME_ELAPSED = "time_elapsed"
    OTHER = "other"


# Higher sorts first
REASON_PRIORITY = {
    ReasonKind.EXPLICIT_REQUEST: 3,
    ReasonKind.LOW_RATINGS: 2,
    ReasonKind.TIME_ELAPSED: 1,
    ReasonKind.OTHER: 0,
}


@dataclass
class TriggerResult:
    """Follow-up offer for one originating submission"""
    should_trigger: bool
    reason: str
    reason_kind: ReasonKind = ReasonKind.OTHER
    worksheet_id: Optional[str] = None
    original_submission_id: Optional[str] = None
    pillars: List[str] = field(default_factory=list)


def _diagnosed_pillars(submission: Any) -> List[str]:
    diagnosis = getattr(submission, "diagnosis", None) or {}
    worksheets = diagnosis.get("followupWorksheets") if isinstance(diagnosis, Mapping) else None
    if isinstance(worksheets, Mapping):
        return list(worksheets.get("pillars") or [])
    return []


def _worksheet_for(pillars: Sequence[str]) -> str:
    return followup_worksheet_id(pillars[0]) if pillars else DEFAULT_FOLLOWUP_WORKSHEET


class FollowupTriggerEngine:
    """
    Default eligibility rules: explicit help request, low self-ratings, and the
    follow-up time window. Pure over already fetched submissions.
    """

    def __init__(
        self,
        days_min: Optional[int] = None,
        days_max: Optional[int] = None,
        low_rating_threshold: Optional[int] = None
    ):
        self.days_min = settings.FOLLOWUP_DAYS_MIN if days_min is None else days_min
        self.days_max = settings.FOLLOWUP_DAYS_MAX if days_max is None else days_max
        self.low_rating_threshold = settings.LOW_RATING_THRESHOLD if low_rating_threshold is None else low_rating_threshold

    # =========================================================================
    # RULES
    # =========================================================================

    def triggered_by_time(self, submission: Any, now: Optional[datetime] = None) -> bool:
        submitted = getattr(submission, "submitted_at", None) or getattr(submission, "created_at", None)
        if submitted is None:
            return False
        days = ((now or datetime.utcnow()) - submitted).days
        return self.days_min <= days <= self.days_max

    def low_rated_pillars(self, submission: Any) -> List[str]:
        """Canonical pillars whose *_rating answer is at or below the threshold"""
        answers = getattr(submission, "answers", None) or {}
        pillars: List[str] = []
        for key, value in answers.items():
            if not key.endswith("_rating"):
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if value > self.low_rating_threshold:
                continue
            pillar_key = key[:-len("_rating")]
            matching = next((pillar for pillar in PILLAR_TYPES if pillar in pillar_key), None)
            if matching and matching not in pillars:
                pillars.append(matching)
        return pillars

    def triggered_by_user_request(self, submission: Any) -> bool:
        answers = getattr(submission, "answers", None) or {}
        for name in HELP_REQUEST_FIELDS:
            value = answers.get(name)
            if value is True or value == "yes":
                return True

        for value in answers.values():
            if isinstance(value, str):
                lowered = value.lower()
                if any(keyword in lowered for keyword in HELP_KEYWORDS):
                    return True
        return False

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def determine(self, submission: Any, now: Optional[datetime] = None) -> TriggerResult:
        """First matching rule wins: request > low ratings > time window"""
        if getattr(submission, "followup", None) or getattr(submission, "pillars", None):
            return TriggerResult(should_trigger=False, reason=REASON_HAS_FOLLOWUPS)

        submission_id = str(submission.id)

        if self.triggered_by_user_request(submission):
            pillars = _diagnosed_pillars(submission)
            return TriggerResult(
                should_trigger=True,
                reason=REASON_EXPLICIT_REQUEST,
                reason_kind=ReasonKind.EXPLICIT_REQUEST,
                worksheet_id=_worksheet_for(pillars),
                original_submission_id=submission_id,
                pillars=pillars
            )

        low_rated = self.low_rated_pillars(submission)
        if low_rated:
            return TriggerResult(
                should_trigger=True,
                reason=REASON_LOW_RATINGS.format(pillars=", ".join(low_rated)),
                reason_kind=ReasonKind.LOW_RATINGS,
                worksheet_id=_worksheet_for(low_rated),
                original_submission_id=submission_id,
                pillars=low_rated
            )

        if self.triggered_by_time(submission, now):
            pillars = _diagnosed_pillars(submission)
            return TriggerResult(
                should_trigger=True,
                reason=REASON_TIME,
                reason_kind=ReasonKind.TIME_ELAPSED,
                worksheet_id=_worksheet_for(pillars),
                original_submission_id=submission_id,
                pillars=pillars
            )

        return TriggerResult(should_trigger=False, reason=REASON_NONE)

    def evaluate(self, submissions: Sequence[Any], now: Optional[datetime] = None) -> List[TriggerResult]:
        """Triggered results only, stably ordered by reason priority"""
        results = []
        for submission in submissions:
            result = self.determine(submission, now)
            if result.should_trigger:
                results.append(result)
            else:
                logger.debug(f"[TRIGGER] Submission {submission.id}: {result.reason}")

        results.sort(key=lambda r: REASON_PRIORITY[r.reason_kind], reverse=True)
        logger.info(f"[TRIGGER] {len(results)} of {len(submissions)} submissions triggered a follow-up")
        return results


# Singleton instance
followup_trigger_engine = FollowupTriggerEngine()
