"""
Workbook submission lifecycle: draft -> submitted, plus diagnosis bookkeeping
"""
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
import logging
import uuid

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import SubmissionStatus, User, WorkbookSubmission
from services.errors import SubmissionLockedError, SubmissionNotFoundError

logger = logging.getLogger(__name__)


def find_submissions_by_user(db: Session, user_id: str, limit: Optional[int] = None) -> List[WorkbookSubmission]:
    """Most recent first (submitted_at, then created_at)"""
    query = (
        db.query(WorkbookSubmission)
        .filter(WorkbookSubmission.user_id == user_id)
        .order_by(func.coalesce(WorkbookSubmission.submitted_at, WorkbookSubmission.created_at).desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def find_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_submission(db: Session, user_id: str, submission_id: str) -> WorkbookSubmission:
    """
    Raises:
        SubmissionNotFoundError: no such submission owned by this user
    """
    submission = (
        db.query(WorkbookSubmission)
        .filter(WorkbookSubmission.id == submission_id, WorkbookSubmission.user_id == user_id)
        .first()
    )
    if submission is None:
        raise SubmissionNotFoundError(f"Submission not found: {submission_id}")
    return submission


def _latest(db: Session, user_id: str, workbook_id: str) -> Optional[WorkbookSubmission]:
    return (
        db.query(WorkbookSubmission)
        .filter(WorkbookSubmission.user_id == user_id, WorkbookSubmission.workbook_id == workbook_id)
        .order_by(WorkbookSubmission.created_at.desc())
        .first()
    )


def _merge(existing: Optional[Mapping[str, Any]], answers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    # Shallow merge, later keys win. A new dict so the JSON column sees the change.
    merged = dict(existing or {})
    merged.update(answers or {})
    return merged


def _commit(db: Session, submission: WorkbookSubmission) -> WorkbookSubmission:
    try:
        db.commit()
        db.refresh(submission)
    except Exception:
        db.rollback()
        raise
    return submission


def save_draft(db: Session, user_id: str, workbook_id: str, answers: Mapping[str, Any]) -> WorkbookSubmission:
    """
    Create the draft on first save, otherwise merge the new answers into it.

    Raises:
        SubmissionLockedError: the workbook was already submitted
    """
    submission = _latest(db, user_id, workbook_id)

    if submission is not None and submission.status == SubmissionStatus.SUBMITTED.value:
        raise SubmissionLockedError(f"Workbook {workbook_id} is already submitted")

    if submission is None:
        user = find_user_by_id(db, user_id)
        submission = WorkbookSubmission(
            id=str(uuid.uuid4()),
            user_id=user_id,
            workbook_id=workbook_id,
            user_name=user.name if user else None,
            status=SubmissionStatus.DRAFT.value,
            answers={},
            pillars=[],
        )
        db.add(submission)
        logger.info(f"[WORKBOOK] Created draft {submission.id} for user={user_id}, workbook={workbook_id}")

    submission.answers = _merge(submission.answers, answers)
    return _commit(db, submission)


def submit_submission(
    db: Session,
    user_id: str,
    workbook_id: str,
    answers: Optional[Mapping[str, Any]] = None
) -> WorkbookSubmission:
    """
    Final merge and draft -> submitted. Answers are immutable afterwards.

    Raises:
        SubmissionLockedError: already submitted
        SubmissionNotFoundError: no draft and no answers to create one from
    """
    submission = _latest(db, user_id, workbook_id)

    if submission is not None and submission.status == SubmissionStatus.SUBMITTED.value:
        raise SubmissionLockedError(f"Workbook {workbook_id} is already submitted")

    if submission is None:
        if not answers:
            raise SubmissionNotFoundError(f"No draft found for workbook: {workbook_id}")
        submission = save_draft(db, user_id, workbook_id, answers)
    elif answers:
        submission.answers = _merge(submission.answers, answers)

    submission.status = SubmissionStatus.SUBMITTED.value
    submission.submitted_at = datetime.utcnow()
    logger.info(f"[WORKBOOK] Submitted {submission.id} ({len(submission.answers or {})} answers)")
    return _commit(db, submission)


def attach_diagnosis(db: Session, submission: WorkbookSubmission, diagnosis: Mapping[str, Any]) -> WorkbookSubmission:
    """Diagnosis fields may still change after submit"""
    submission.diagnosis = dict(diagnosis)
    submission.diagnosis_generated_at = datetime.utcnow()
    return _commit(db, submission)


def mark_diagnosis_viewed(db: Session, submission: WorkbookSubmission) -> WorkbookSubmission:
    if submission.diagnosis_viewed_at is None:
        submission.diagnosis_viewed_at = datetime.utcnow()
        return _commit(db, submission)
    return submission


def record_followup_answers(
    db: Session,
    submission: WorkbookSubmission,
    worksheet_id: str,
    category: str,
    answers: Mapping[str, Any]
) -> WorkbookSubmission:
    """
    Store follow-up answers on the original submission. A pillar follow-up
    replaces its earlier entry in `pillars` (or is appended), a workbook
    follow-up replaces `followup`.
    """
    entry = {
        "worksheetId": worksheet_id,
        "worksheetType": category,
        "answers": dict(answers),
        "submittedAt": datetime.utcnow().isoformat(),
    }
    if category == "pillar":
        pillars = [
            existing for existing in (submission.pillars or [])
            if not (isinstance(existing, Mapping) and existing.get("worksheetId") == worksheet_id)
        ]
        submission.pillars = pillars + [entry]
    else:
        submission.followup = entry
    return _commit(db, submission)
