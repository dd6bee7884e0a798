"""
SQLAlchemy Models for Database
==============================

Persistence for the legal analysis pipeline:
- AnalysisJob: one row per case, holding status, progress and every phase
  output as JSON so an interrupted run can resume
- CaseFacts: the fact-extraction output the pipeline consumes

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, Integer, Float, DateTime, Index, JSON
from sqlalchemy.orm import declarative_base
import uuid

from ..schemas import JobStatus, AnalysisPhase

# Use JSON for cross-database compatibility (works with both PostgreSQL and SQLite)
JSONB = JSON

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


class AnalysisJob(Base):
    """Legal analysis job; mutated only by the orchestrator through JobStore"""
    __tablename__ = "legal_analysis_jobs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(64), nullable=False, unique=True)

    status = Column(String(20), default=JobStatus.PENDING.value, nullable=False)
    phase = Column(String(40), default=AnalysisPhase.QUEUED.value, nullable=False)
    progress = Column(Integer, default=0)  # 0-100
    error_message = Column(Text, nullable=True)

    # Phase outputs
    legal_issues_json = Column(JSONB, nullable=True)
    burden_of_proof_json = Column(JSONB, nullable=True)
    damages_calculation_json = Column(JSONB, nullable=True)
    conclusions_json = Column(JSONB, nullable=True)
    award_recommendation_json = Column(JSONB, nullable=True)
    citations_json = Column(JSONB, nullable=True)
    confidence_factors_json = Column(JSONB, nullable=True)

    overall_confidence = Column(Float, nullable=True)
    tokens_used = Column(Integer, default=0)
    metadata_json = Column(JSONB, default=dict)  # Note: 'metadata' is reserved by SQLAlchemy

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_legal_analysis_job_status", "status"),
    )


class CaseFacts(Base):
    """Stored fact-extraction output (LegalAnalysisInput as JSON) per case"""
    __tablename__ = "case_facts"

    case_id = Column(String(64), primary_key=True)
    input_json = Column(JSONB, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
