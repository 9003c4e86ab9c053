"""
SQLAlchemy database models
"""
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from database import Base


class SubmissionStatus(enum.Enum):
    """Workbook/worksheet submission lifecycle"""
    DRAFT = "draft"
    SUBMITTED = "submitted"


class FollowupStatus(enum.Enum):
    """Follow-up assessment lifecycle"""
    PENDING = "pending"
    COMPLETED = "completed"


class User(Base):
    """Application user"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    submissions = relationship("WorkbookSubmission", back_populates="user", cascade="all, delete-orphan")


class WorkbookSubmission(Base):
    """Original workbook/worksheet submission (draft -> submitted)"""
    __tablename__ = "workbook_submissions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    workbook_id = Column(String(100), nullable=False)
    user_name = Column(String(255))  # Name captured at submission time

    status = Column(String(20), default="draft")  # draft, submitted
    answers = Column(JSON, default=dict)  # {questionId: str | number | bool | [str]}

    # Diagnosis (DiagnosisResult JSON, persisted verbatim)
    diagnosis = Column(JSON)

    # Follow-up answers recorded against this submission
    followup = Column(JSON)  # {worksheetId, worksheetType, answers, submittedAt}
    pillars = Column(JSON, default=list)  # [{worksheetId, worksheetType, answers, submittedAt}]

    # Timestamps
    submitted_at = Column(DateTime)
    diagnosis_generated_at = Column(DateTime)
    diagnosis_viewed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="submissions")
    followup_assessments = relationship("FollowupAssessment", back_populates="workbook_submission", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_workbook_submissions_user_id', 'user_id'),
        Index('ix_workbook_submissions_user_workbook', 'user_id', 'workbook_id'),
    )


class FollowupAssessment(Base):
    """Second-pass assessment tied to an original submission"""
    __tablename__ = "followup_assessments"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    workbook_submission_id = Column(String(36), ForeignKey("workbook_submissions.id", ondelete="CASCADE"), nullable=False)
    followup_id = Column(String(100), nullable=False)  # Follow-up worksheet id
    followup_type = Column(String(20), default="workbook")  # pillar, workbook

    status = Column(String(20), default="pending")  # pending, completed
    answers = Column(JSON, default=dict)
    diagnosis = Column(JSON)  # Extended DiagnosisResult
    meta_json = Column(JSON, default=dict)  # {pillarId, timeElapsed, improvementScore, originalTitle, followupTitle}

    # Timestamps
    scheduled_for = Column(DateTime)
    completed_at = Column(DateTime)
    diagnosis_generated_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    workbook_submission = relationship("WorkbookSubmission", back_populates="followup_assessments")

    __table_args__ = (
        Index('ix_followup_assessments_submission_followup', 'workbook_submission_id', 'followup_id', unique=True),
        Index('ix_followup_assessments_user_status', 'user_id', 'status'),
    )
