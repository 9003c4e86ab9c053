"""
Follow-up orchestration
Submitting a follow-up worksheet (diagnosis + assessment upsert) and surfacing follow-up recommendations
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from models import FollowupAssessment, FollowupStatus, WorkbookSubmission
from services.context_builder import build_followup_context, calculate_time_elapsed
from services.diagnosis_converter import to_record
from services.diagnosis_service import DiagnosisGenerator
from services.errors import AssessmentNotFoundError, DiagnosisGenerationError, WorksheetNotFoundError
from services.followup_prompts import PILLAR
from services.followup_trigger_service import FollowupTriggerEngine, followup_trigger_engine
from services.improvement_score import calculate_improvement_score
from services.recommendation_service import FollowupRecommendation, rank
from services.submission_service import (
    find_submissions_by_user,
    find_user_by_id,
    get_submission,
    record_followup_answers,
)
from services.worksheet_catalog import (
    extract_pillar_id,
    get_followup_type,
    load_worksheet,
    resolve_worksheet_metadata,
    validate_followup_answers,
)

logger = logging.getLogger(__name__)


@dataclass
class FollowupSubmissionResult:
    assessment: FollowupAssessment
    category: str
    pillar_id: Optional[str]
    improvement_score: int


def serialize_assessment(assessment: FollowupAssessment) -> Dict[str, Any]:
    return {
        "id": assessment.id,
        "userId": assessment.user_id,
        "workbookSubmissionId": assessment.workbook_submission_id,
        "followupId": assessment.followup_id,
        "followupType": assessment.followup_type,
        "status": assessment.status,
        "answers": assessment.answers or {},
        "diagnosis": assessment.diagnosis,
        "metadata": assessment.meta_json or {},
        "scheduledFor": assessment.scheduled_for.isoformat() if assessment.scheduled_for else None,
        "completedAt": assessment.completed_at.isoformat() if assessment.completed_at else None,
        "diagnosisGeneratedAt": assessment.diagnosis_generated_at.isoformat() if assessment.diagnosis_generated_at else None,
        "createdAt": assessment.created_at.isoformat() if assessment.created_at else None,
    }


class FollowupService:
    """Request-scoped orchestration over a SQLAlchemy session"""

    def __init__(
        self,
        generator: Optional[DiagnosisGenerator] = None,
        trigger_engine: Optional[FollowupTriggerEngine] = None
    ):
        self.generator = generator or DiagnosisGenerator()
        self.trigger_engine = trigger_engine or followup_trigger_engine

    # =========================================================================
    # ASSESSMENT PERSISTENCE
    # =========================================================================

    def _find_assessment(self, db: Session, submission_id: str, followup_id: str) -> Optional[FollowupAssessment]:
        return (
            db.query(FollowupAssessment)
            .filter(
                FollowupAssessment.workbook_submission_id == submission_id,
                FollowupAssessment.followup_id == followup_id
            )
            .first()
        )

    def upsert_assessment(
        self,
        db: Session,
        user_id: str,
        submission_id: str,
        followup_id: str,
        category: str,
        **fields: Any
    ) -> FollowupAssessment:
        """At most one assessment per (submission, follow-up worksheet)"""
        assessment = self._find_assessment(db, submission_id, followup_id)
        if assessment is None:
            assessment = FollowupAssessment(
                id=str(uuid.uuid4()),
                user_id=user_id,
                workbook_submission_id=submission_id,
                followup_id=followup_id,
                followup_type=category,
                status=FollowupStatus.PENDING.value,
                answers={},
                meta_json={},
            )
            db.add(assessment)

        for name, value in fields.items():
            setattr(assessment, name, value)

        try:
            db.commit()
        except IntegrityError:
            # Concurrent insert for the same pair: update the row that won
            db.rollback()
            logger.info(f"[FOLLOWUP] Duplicate assessment for {submission_id}/{followup_id}, updating existing")
            assessment = self._find_assessment(db, submission_id, followup_id)
            if assessment is None:
                raise
            for name, value in fields.items():
                setattr(assessment, name, value)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(assessment)
        return assessment

    def get_assessment(self, db: Session, user_id: str, assessment_id: str) -> FollowupAssessment:
        assessment = (
            db.query(FollowupAssessment)
            .filter(FollowupAssessment.id == assessment_id, FollowupAssessment.user_id == user_id)
            .first()
        )
        if assessment is None:
            raise AssessmentNotFoundError(f"Follow-up assessment not found: {assessment_id}")
        return assessment

    # =========================================================================
    # SUBMIT
    # =========================================================================

    async def submit_followup(
        self,
        db: Session,
        user_id: str,
        followup_id: str,
        original_submission_id: str,
        answers: Mapping[str, Any]
    ) -> FollowupSubmissionResult:
        """
        Validate, record and diagnose a follow-up worksheet submission.

        Raises:
            WorksheetNotFoundError: unknown follow-up worksheet
            InvalidAnswersError: answers do not fit the worksheet
            SubmissionNotFoundError: original submission missing or not owned by the user
            DiagnosisGenerationError: model call failed; the assessment stays pending
        """
        worksheet = load_worksheet(followup_id)
        if worksheet is None:
            raise WorksheetNotFoundError(f"Follow-up worksheet not found: {followup_id}")
        validate_followup_answers(worksheet, answers)

        category = get_followup_type(followup_id)
        pillar_id = extract_pillar_id(followup_id) if category == PILLAR else None
        logger.info(
            f"[FOLLOWUP] Processing {category} follow-up {followup_id}"
            f"{f' for pillar {pillar_id}' if pillar_id else ''}"
        )

        original = get_submission(db, user_id, original_submission_id)
        since = original.submitted_at or original.created_at
        time_elapsed = calculate_time_elapsed(since)

        context_data = build_followup_context(
            category,
            original,
            dict(answers),
            pillar_id=pillar_id,
            time_elapsed=time_elapsed,
            find_user_by_id=lambda uid: find_user_by_id(db, uid),
            followup_id=worksheet.id
        )

        metadata = {
            "pillarId": pillar_id,
            "timeElapsed": time_elapsed,
            "originalTitle": context_data.worksheet_title,
            "followupTitle": worksheet.title or followup_id,
        }
        assessment = self.upsert_assessment(
            db, user_id, original.id, followup_id, category,
            answers=dict(answers),
            meta_json=metadata,
        )

        try:
            response = await self.generator.generate(category, context_data)
        except DiagnosisGenerationError:
            logger.error(f"[FOLLOWUP] Diagnosis failed for assessment {assessment.id}, left pending")
            raise

        # Only a diagnosed follow-up is recorded onto the original submission
        record_category = PILLAR if category == PILLAR and pillar_id else "workbook"
        record_followup_answers(db, original, worksheet.id, record_category, answers)

        diagnosis = to_record(response, category)
        improvement_score = calculate_improvement_score(diagnosis, category)
        now = datetime.utcnow()

        assessment = self.upsert_assessment(
            db, user_id, original.id, followup_id, category,
            status=FollowupStatus.COMPLETED.value,
            diagnosis=diagnosis,
            diagnosis_generated_at=now,
            completed_at=now,
            meta_json={**metadata, "improvementScore": improvement_score},
        )
        logger.info(f"[FOLLOWUP] Assessment {assessment.id} completed (improvement score {improvement_score})")

        return FollowupSubmissionResult(
            assessment=assessment,
            category=category,
            pillar_id=pillar_id,
            improvement_score=improvement_score,
        )

    # =========================================================================
    # RECOMMENDATIONS
    # =========================================================================

    def get_recommendations(self, db: Session, user_id: str, now: Optional[datetime] = None) -> List[FollowupRecommendation]:
        """Rank follow-ups for the user's recent submissions and ensure each has a pending assessment"""
        submissions: List[WorkbookSubmission] = find_submissions_by_user(
            db, user_id, limit=settings.RECOMMENDATION_SUBMISSION_LIMIT
        )
        if not submissions:
            return []

        trigger_results = self.trigger_engine.evaluate(submissions, now)
        recommendations = rank(trigger_results, submissions, resolve_worksheet_metadata)

        for recommendation in recommendations:
            existing = self._find_assessment(db, recommendation.original_submission_id, recommendation.worksheet_id)
            if existing is not None:
                continue
            self.upsert_assessment(
                db, user_id,
                recommendation.original_submission_id,
                recommendation.worksheet_id,
                recommendation.worksheet_type or get_followup_type(recommendation.worksheet_id),
                scheduled_for=now or datetime.utcnow(),
            )
            logger.info(
                f"[FOLLOWUP] Pending assessment created for {recommendation.original_submission_id}/"
                f"{recommendation.worksheet_id}"
            )

        return recommendations


# Singleton instance
followup_service = FollowupService()
