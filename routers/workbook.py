"""
Workbook API endpoints
Draft save, final submit (with first-pass diagnosis) and diagnosis access
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional

from models import WorkbookSubmission
from routers.dependencies import get_current_user_id, require_db, to_http_exception
from services.submission_service import save_draft, submit_submission
from services.workbook_diagnosis import workbook_diagnosis_service

router = APIRouter(prefix="/api/workbook", tags=["workbook"])


class WorkbookSaveRequest(BaseModel):
    workbookId: str
    answers: Dict[str, Any] = Field(default_factory=dict)


class WorkbookSubmitRequest(BaseModel):
    workbookId: str
    answers: Optional[Dict[str, Any]] = None


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _submission_payload(submission: WorkbookSubmission) -> Dict[str, Any]:
    return {
        "success": True,
        "submissionId": submission.id,
        "status": submission.status,
        "submittedAt": _isoformat(submission.submitted_at),
    }


def _diagnosis_payload(submission: WorkbookSubmission) -> Dict[str, Any]:
    return {
        "success": True,
        "submissionId": submission.id,
        "diagnosis": submission.diagnosis,
        "diagnosisGeneratedAt": _isoformat(submission.diagnosis_generated_at),
        "diagnosisViewedAt": _isoformat(submission.diagnosis_viewed_at),
    }


@router.post("/save")
async def save_workbook(
    body: WorkbookSaveRequest,
    db: Session = Depends(require_db),
    user_id: str = Depends(get_current_user_id),
):
    """Save draft answers (merged into the existing draft)"""
    try:
        submission = save_draft(db, user_id, body.workbookId, body.answers)
    except Exception as e:
        raise to_http_exception(e)
    return _submission_payload(submission)


@router.post("/submit")
async def submit_workbook(
    body: WorkbookSubmitRequest,
    db: Session = Depends(require_db),
    user_id: str = Depends(get_current_user_id),
):
    """Lock the answers, then try to generate the diagnosis (its failure does not fail the submit)"""
    try:
        submission = submit_submission(db, user_id, body.workbookId, body.answers)
        diagnosed = await workbook_diagnosis_service.diagnose_after_submit(db, submission)
    except Exception as e:
        raise to_http_exception(e)
    return {**_submission_payload(submission), "diagnosisGenerated": diagnosed}


@router.get("/{submission_id}/diagnosis")
async def get_workbook_diagnosis(
    submission_id: str,
    db: Session = Depends(require_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        submission = workbook_diagnosis_service.view(db, user_id, submission_id)
    except Exception as e:
        raise to_http_exception(e)
    return _diagnosis_payload(submission)


@router.post("/{submission_id}/diagnosis")
async def regenerate_workbook_diagnosis(
    submission_id: str,
    db: Session = Depends(require_db),
    user_id: str = Depends(get_current_user_id),
):
    """Generate (or regenerate) the diagnosis of a submitted workbook"""
    try:
        submission = await workbook_diagnosis_service.regenerate(db, user_id, submission_id)
    except Exception as e:
        raise to_http_exception(e)
    return _diagnosis_payload(submission)
