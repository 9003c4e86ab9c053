"""
Follow-up API endpoints
Recommendations, follow-up submission, assessment lookup
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Any, Dict
import logging

from routers.dependencies import get_current_user_id, require_db, to_http_exception
from services.followup_service import followup_service, serialize_assessment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/followup", tags=["followup"])


class FollowupSubmitRequest(BaseModel):
    followupId: str
    originalSubmissionId: str
    answers: Dict[str, Any] = Field(default_factory=dict)


@router.get("/recommendations")
async def get_followup_recommendations(
    db: Session = Depends(require_db),
    user_id: str = Depends(get_current_user_id),
):
    """Follow-up worksheets recommended from the user's recent submissions"""
    try:
        recommendations = followup_service.get_recommendations(db, user_id)
    except Exception as e:
        raise to_http_exception(e)

    return {
        "success": True,
        "recommendations": [r.to_dict() for r in recommendations]
    }


@router.post("/submit")
async def submit_followup(
    body: FollowupSubmitRequest,
    db: Session = Depends(require_db),
    user_id: str = Depends(get_current_user_id),
):
    """Submit follow-up answers and generate the follow-up diagnosis"""
    if not body.answers:
        raise HTTPException(status_code=400, detail="Missing required fields: followupId, originalSubmissionId, or answers")

    try:
        result = await followup_service.submit_followup(
            db,
            user_id,
            followup_id=body.followupId,
            original_submission_id=body.originalSubmissionId,
            answers=body.answers
        )
    except Exception as e:
        raise to_http_exception(e)

    return {
        "success": True,
        "followupType": result.category,
        "assessment": serialize_assessment(result.assessment),
    }


@router.get("/{assessment_id}")
async def get_followup_assessment(
    assessment_id: str,
    db: Session = Depends(require_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        assessment = followup_service.get_assessment(db, user_id, assessment_id)
    except Exception as e:
        raise to_http_exception(e)
    return serialize_assessment(assessment)
