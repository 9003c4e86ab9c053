"""
Worksheet recommendation endpoint
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from config import settings
from models import SubmissionStatus
from routers.dependencies import get_current_user_id, require_db
from services.recommendation_service import rank_by_relevance, related_worksheet_candidates
from services.submission_service import find_submissions_by_user

router = APIRouter(prefix="/api/worksheets", tags=["worksheets"])


@router.get("/recommendations")
async def get_worksheet_recommendations(
    worksheetId: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(require_db),
    user_id: str = Depends(get_current_user_id),
):
    """
    Relevance-sorted suggestions. With worksheetId, only that worksheet's
    relationships; otherwise every submitted worksheet's, with the current
    worksheet excluded.
    """
    if worksheetId:
        completed = [worksheetId]
    else:
        completed = [
            s.workbook_id for s in find_submissions_by_user(db, user_id)
            if s.status == SubmissionStatus.SUBMITTED.value
        ]

    recommendations = rank_by_relevance(
        related_worksheet_candidates(completed),
        current_worksheet_id=worksheetId,
        limit=limit or settings.WORKSHEET_RECOMMENDATION_LIMIT
    )
    return {"recommendations": [r.to_dict() for r in recommendations]}
