"""
Job Store
=========

SQLAlchemy-backed persistence for analysis jobs and stored fact-extraction
input. Every SQLAlchemy failure is re-raised as StoreError so the
orchestrator treats it as a pipeline failure.
"""

import logging
from datetime import datetime
from functools import wraps
from typing import Optional, Dict, Any

from sqlalchemy.exc import SQLAlchemyError

from .db import AnalysisJob, CaseFacts, get_db_session, init_db
from .errors import StoreError
from .schemas import (
    AnalysisPhase,
    AnalysisStatusResponse,
    JobStatus,
    LegalAnalysisInput,
)

logger = logging.getLogger(__name__)

# save_phase_output keyword -> AnalysisJob column
PHASE_OUTPUT_COLUMNS = {
    "legal_issues": "legal_issues_json",
    "burden_of_proof": "burden_of_proof_json",
    "damages_calculation": "damages_calculation_json",
    "conclusions_of_law": "conclusions_json",
    "award_recommendation": "award_recommendation_json",
    "citations_used": "citations_json",
    "confidence_factors": "confidence_factors_json",
    "overall_confidence": "overall_confidence",
    "tokens_used": "tokens_used",
}


def _store_operation(func):
    """Wrap SQLAlchemy errors in StoreError"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Store operation {func.__name__} failed: {e}")
            raise StoreError(f"{func.__name__} failed: {e}") from e
    return wrapper


def _dump(value: Any) -> Any:
    """pydantic models (and lists of them) to JSON-ready data"""
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


class JobStore:
    """
    Persistence for AnalysisJob rows (one per case).

    Returned AnalysisJob objects are detached snapshots; mutate state only
    through the store methods.
    """

    def __init__(self, create_tables: bool = True):
        if create_tables:
            init_db()

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    @_store_operation
    def get_job(self, case_id: str) -> Optional[AnalysisJob]:
        with get_db_session() as db:
            return db.query(AnalysisJob).filter(AnalysisJob.case_id == case_id).first()

    @_store_operation
    def get_or_create_job(self, case_id: str) -> AnalysisJob:
        with get_db_session() as db:
            job = db.query(AnalysisJob).filter(AnalysisJob.case_id == case_id).first()
            if job is None:
                job = AnalysisJob(
                    case_id=case_id,
                    status=JobStatus.PENDING.value,
                    phase=AnalysisPhase.QUEUED.value,
                    progress=0,
                    tokens_used=0,
                    metadata_json={},
                )
                db.add(job)
                db.flush()
                logger.info(f"Created analysis job {job.id} for case {case_id}")
            return job

    @_store_operation
    def start_job(self, case_id: str, reset: bool = False) -> AnalysisJob:
        """
        Mark the case's job as processing.

        With reset=True every persisted phase output is cleared; otherwise
        outputs are kept for resumption.
        """
        with get_db_session() as db:
            job = db.query(AnalysisJob).filter(AnalysisJob.case_id == case_id).first()
            if job is None:
                job = AnalysisJob(case_id=case_id, metadata_json={})
                db.add(job)

            job.status = JobStatus.PROCESSING.value
            job.phase = AnalysisPhase.QUEUED.value
            job.progress = 0
            job.error_message = None
            job.started_at = datetime.utcnow()
            job.completed_at = None
            job.failed_at = None

            if reset:
                for column in PHASE_OUTPUT_COLUMNS.values():
                    setattr(job, column, None)
                job.tokens_used = 0
                job.metadata_json = {}

            db.flush()
            return job

    @_store_operation
    def update_progress(self, job_id: str, phase: AnalysisPhase, progress: int) -> None:
        """Record phase and progress; progress never moves backwards within a run"""
        with get_db_session() as db:
            job = self._require(db, job_id)
            job.phase = AnalysisPhase(phase).value
            job.progress = max(job.progress or 0, min(100, int(progress)))

    @_store_operation
    def save_phase_output(self, job_id: str, metadata: Optional[Dict[str, Any]] = None, **outputs) -> None:
        """
        Persist phase outputs, e.g. save_phase_output(job_id, legal_issues=[...]).

        metadata is merged into metadata_json.
        """
        unknown = set(outputs) - set(PHASE_OUTPUT_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown phase outputs: {sorted(unknown)}")

        with get_db_session() as db:
            job = self._require(db, job_id)
            for key, value in outputs.items():
                setattr(job, PHASE_OUTPUT_COLUMNS[key], _dump(value))
            if metadata:
                job.metadata_json = {**(job.metadata_json or {}), **metadata}

    @_store_operation
    def mark_completed(self, job_id: str, overall_confidence: float, tokens_used: int) -> None:
        with get_db_session() as db:
            job = self._require(db, job_id)
            job.status = JobStatus.COMPLETED.value
            job.phase = AnalysisPhase.COMPLETED.value
            job.progress = 100
            job.overall_confidence = overall_confidence
            job.tokens_used = tokens_used
            job.completed_at = datetime.utcnow()

    @_store_operation
    def mark_failed(self, job_id: str, error: str, tokens_used: int) -> None:
        """Record failure; phase outputs already persisted are left untouched"""
        with get_db_session() as db:
            job = self._require(db, job_id)
            job.status = JobStatus.FAILED.value
            job.phase = AnalysisPhase.FAILED.value
            job.error_message = error
            job.tokens_used = tokens_used
            job.failed_at = datetime.utcnow()

    @_store_operation
    def delete_job(self, case_id: str) -> bool:
        with get_db_session() as db:
            deleted = db.query(AnalysisJob).filter(AnalysisJob.case_id == case_id).delete()
            return deleted > 0

    def get_status(self, case_id: str) -> Optional[AnalysisStatusResponse]:
        """Persisted job state for a case, or None if no job exists"""
        job = self.get_job(case_id)
        if job is None:
            return None

        return AnalysisStatusResponse(
            case_id=job.case_id,
            job_id=job.id,
            status=JobStatus(job.status),
            phase=AnalysisPhase(job.phase),
            progress=job.progress or 0,
            tokens_used=job.tokens_used or 0,
            overall_confidence=job.overall_confidence,
            error_message=job.error_message,
            started_at=job.started_at,
            completed_at=job.completed_at,
            failed_at=job.failed_at,
            legal_issues=job.legal_issues_json,
            burden_of_proof=job.burden_of_proof_json,
            damages_calculation=job.damages_calculation_json,
            conclusions_of_law=job.conclusions_json,
            award_recommendation=job.award_recommendation_json,
            citations_used=job.citations_json,
            metadata=job.metadata_json or {},
        )

    # -------------------------------------------------------------------------
    # Fact-extraction input
    # -------------------------------------------------------------------------

    @_store_operation
    def save_input(self, analysis_input: LegalAnalysisInput) -> None:
        with get_db_session() as db:
            row = db.get(CaseFacts, analysis_input.case_id)
            data = analysis_input.model_dump(mode="json")
            if row is None:
                db.add(CaseFacts(case_id=analysis_input.case_id, input_json=data))
            else:
                row.input_json = data

    @_store_operation
    def load_input(self, case_id: str) -> Optional[LegalAnalysisInput]:
        with get_db_session() as db:
            row = db.get(CaseFacts, case_id)
            if row is None:
                return None
            return LegalAnalysisInput.model_validate(row.input_json)

    @staticmethod
    def _require(db, job_id: str) -> AnalysisJob:
        job = db.get(AnalysisJob, job_id)
        if job is None:
            raise StoreError(f"Analysis job {job_id} not found")
        return job
