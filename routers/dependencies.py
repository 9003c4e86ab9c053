"""
FastAPI dependencies and error translation shared by the routers
"""
from typing import Optional
import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from services.errors import (
    AssessmentNotFoundError,
    DiagnosisGenerationError,
    DiagnosisNotAvailableError,
    InvalidAnswersError,
    SubmissionLockedError,
    SubmissionNotFoundError,
    WorksheetNotFoundError,
)

logger = logging.getLogger(__name__)

# Identity is established upstream (session auth is not handled here)
USER_ID_HEADER = "X-User-Id"

DIAGNOSIS_UNAVAILABLE = "Diagnosis unavailable, please retry"


async def get_current_user_id(x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> str:
    """
    Raises:
        HTTPException: 401 if the identity header is missing
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def require_db(db: Optional[Session] = Depends(get_db)) -> Session:
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def to_http_exception(error: Exception) -> HTTPException:
    """Map a domain error to its HTTP status; anything unexpected is a 500"""
    if isinstance(error, (
        SubmissionNotFoundError, WorksheetNotFoundError, AssessmentNotFoundError, DiagnosisNotAvailableError
    )):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (SubmissionLockedError, InvalidAnswersError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, DiagnosisGenerationError):
        return HTTPException(status_code=502, detail=DIAGNOSIS_UNAVAILABLE)

    logger.error(f"Unhandled error: {type(error).__name__}: {error}")
    return HTTPException(status_code=500, detail="Internal server error")
