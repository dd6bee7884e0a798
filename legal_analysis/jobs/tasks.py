"""
Job Tasks
=========

RQ task entry points. Tasks are plain synchronous functions; the async
pipeline is driven with asyncio.run inside the worker process.
"""

import asyncio
import logging
from typing import Dict, Any, Optional

from rq import get_current_job

from ..config import get_settings
from ..llm_client import build_provider
from ..orchestrator import LegalAnalysisOrchestrator, load_legal_analysis_input
from ..retrieval import LegalContextRetriever
from ..schemas import LegalAnalysisOptions, LegalAnalysisProgress
from ..store import JobStore
from .queue import CANCEL_FLAG

logger = logging.getLogger(__name__)


def update_job_progress(progress: int, phase: str = None, message: str = None):
    """Mirror pipeline progress into the current RQ job's meta"""
    job = get_current_job()
    if job:
        job.meta["progress"] = progress
        if phase:
            job.meta["phase"] = phase
        if message:
            job.meta["message"] = message
        job.save_meta()


def _set_job_error_message(message: str) -> None:
    job = get_current_job()
    if job:
        job.meta["error_message"] = " ".join(message.split())[:200]
        job.save_meta()


def is_cancel_requested() -> bool:
    job = get_current_job()
    if job is None:
        return False
    return bool(job.get_meta(refresh=True).get(CANCEL_FLAG))


async def _run_analysis(case_id: str, force: bool):
    settings = get_settings()
    store = JobStore()
    analysis_input = load_legal_analysis_input(store, case_id)

    async def on_progress(event: LegalAnalysisProgress):
        update_job_progress(event.progress, event.phase.value, event.message)

    provider = build_provider(settings)
    orchestrator = LegalAnalysisOrchestrator(
        provider,
        store,
        settings=settings,
        on_progress=on_progress,
        context_retriever=LegalContextRetriever(),
    )
    try:
        return await orchestrator.run(
            analysis_input,
            LegalAnalysisOptions(force=force),
            cancel_check=is_cancel_requested,
        )
    finally:
        await provider.close()


def task_run_legal_analysis(case_id: str, force: bool = False) -> Dict[str, Any]:
    """
    Run the legal analysis pipeline for a case.

    Args:
        case_id: Case whose fact-extraction input has been stored
        force: Recompute every phase instead of resuming

    Returns:
        Dict with job id, status, overall confidence, tokens and error

    Raises:
        InputUnavailableError: no fact-extraction input stored for the case
    """
    logger.info(f"Legal analysis task started for case {case_id} (force={force})")
    update_job_progress(0, "queued", "Loading case facts")

    result = asyncio.run(_run_analysis(case_id, force))

    if result.error:
        _set_job_error_message(result.error)

    return {
        "case_id": result.case_id,
        "job_id": result.job_id,
        "status": result.status.value,
        "overall_confidence": result.overall_confidence,
        "tokens_used": result.tokens_used,
        "processing_time_ms": result.processing_time_ms,
        "error": result.error,
    }
