"""
Follow-up context building
Collects everything the prompt needs from an original submission and the new follow-up answers
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging

from services.answer_formatter import format_answers
from services.followup_prompts import PILLAR
from services.prompt_assembler import FollowupContextData
from services.worksheet_catalog import get_pillar_title, load_worksheet

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_NAME = "Client"
NO_FOLLOWUP_HISTORY = "No previous follow-ups recorded."

# findUserById collaborator: user id -> object with a .name, or None
UserLookup = Callable[[str], Any]


def calculate_time_elapsed(since: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human-readable time since a submission ("3 days", "2 weeks", "1 year")"""
    if since is None:
        return "Unknown"

    now = now or datetime.utcnow()
    days = (now - since).days

    if days < 1:
        return "Less than a day"
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 14:
        return "1 week"
    if days < 30:
        return f"{days // 7} weeks"
    if days < 60:
        return "1 month"
    if days < 365:
        return f"{days // 30} months"
    if days < 730:
        return "1 year"
    return f"{days // 365} years"


def resolve_user_name(submission: Any, find_user_by_id: Optional[UserLookup] = None) -> str:
    """
    Owning user's display name. Falls back to the name captured on the
    submission, then a nested user object, then "Client".
    """
    user_id = getattr(submission, "user_id", None)
    if find_user_by_id is not None and user_id:
        try:
            user = find_user_by_id(user_id)
            if user is not None and getattr(user, "name", None):
                return user.name
        except Exception as e:
            logger.warning(f"[FOLLOWUP] User lookup failed for {user_id}: {e}")

    if getattr(submission, "user_name", None):
        return submission.user_name

    nested_user = getattr(submission, "user", None)
    if nested_user is not None and getattr(nested_user, "name", None):
        return nested_user.name

    return DEFAULT_CLIENT_NAME


def _history_entry(entry: Mapping[str, Any]) -> str:
    worksheet_id = entry.get("worksheetId") or "unknown"
    worksheet = load_worksheet(worksheet_id)
    title = worksheet.title if worksheet else worksheet_id
    submitted = entry.get("submittedAt") or "unknown date"
    return f"### {title} (submitted {submitted})\n{format_answers(entry.get('answers'))}"


def format_followup_history(submission: Any, exclude_worksheet_id: Optional[str] = None) -> str:
    """
    Earlier follow-up answers recorded on the original submission, oldest
    first. Entries for `exclude_worksheet_id` (the follow-up being answered
    now) are left out.
    """
    candidates = list(getattr(submission, "pillars", None) or [])
    candidates.append(getattr(submission, "followup", None))

    entries: List[Mapping[str, Any]] = [
        entry for entry in candidates
        if isinstance(entry, Mapping) and entry
        and not (exclude_worksheet_id and entry.get("worksheetId") == exclude_worksheet_id)
    ]

    if not entries:
        return NO_FOLLOWUP_HISTORY
    return "\n\n".join(_history_entry(entry) for entry in entries)


def build_followup_context(
    category: str,
    original_submission: Any,
    followup_answers: Dict[str, Any],
    pillar_id: Optional[str] = None,
    time_elapsed: Optional[str] = None,
    find_user_by_id: Optional[UserLookup] = None,
    followup_id: Optional[str] = None
) -> FollowupContextData:
    """
    Args:
        category: "pillar" or "workbook"
        original_submission: WorkbookSubmission (or any object with the same attributes)
        followup_answers: answers to the follow-up worksheet
        pillar_id: pillar the follow-up targets, pillar category only
        time_elapsed: precomputed elapsed time; derived from the submission when omitted
        find_user_by_id: optional user lookup collaborator
        followup_id: follow-up worksheet being answered; excluded from the history

    Returns:
        FollowupContextData for the prompt assembler
    """
    pillar_title = get_pillar_title(pillar_id)

    if category == PILLAR:
        worksheet_title = f"Pillar Follow-up: {pillar_title}"
        worksheet_description = f"Follow-up assessment for the {pillar_title} pillar"
    else:
        worksheet_title = "Workbook Implementation Follow-up"
        worksheet_description = "Follow-up assessment for overall workbook implementation"

    if time_elapsed is None:
        since = getattr(original_submission, "submitted_at", None) or getattr(original_submission, "created_at", None)
        time_elapsed = calculate_time_elapsed(since)

    return FollowupContextData(
        original_answers=dict(getattr(original_submission, "answers", None) or {}),
        followup_answers=dict(followup_answers or {}),
        original_diagnosis=getattr(original_submission, "diagnosis", None),
        worksheet_title=worksheet_title,
        worksheet_description=worksheet_description,
        time_elapsed=time_elapsed,
        pillar_id=pillar_id,
        pillar_title=pillar_title,
        user_name=resolve_user_name(original_submission, find_user_by_id),
        followup_history=format_followup_history(original_submission, followup_id),
    )
