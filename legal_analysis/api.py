"""
Legal Analysis Service API
==========================

FastAPI endpoints for running and inspecting the legal analysis pipeline.

Endpoints:
- GET  /health                                  - Health check
- POST /api/v1/cases/{case_id}/legal-analysis   - Start (or resume) analysis
- GET  /api/v1/cases/{case_id}/legal-analysis   - Status and persisted outputs
- GET  /api/v1/jurisdictions                    - Supported jurisdictions

Run with:
    uvicorn legal_analysis.api:app --host 0.0.0.0 --port 8000
"""

import asyncio
import logging
import os
from datetime import datetime
from typing import List, Dict, Any

from fastapi import FastAPI, HTTPException, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings, get_llm_mode
from .errors import InputUnavailableError, StoreError
from .jobs import enqueue_job, task_run_legal_analysis
from .llm_client import InferenceProvider, build_provider
from .orchestrator import LegalAnalysisOrchestrator, load_legal_analysis_input
from .retrieval import LegalContextRetriever
from .rules import get_rules, get_supported_jurisdictions
from .schemas import (
    AnalysisStatusResponse,
    ErrorResponse,
    HealthResponse,
    JobStatus,
    LegalAnalysisInput,
    LegalAnalysisOptions,
    StartAnalysisRequest,
)
from .store import JobStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Legal Analysis Service",
    description="Issue classification, burden of proof, damages and conclusions of law for small-claims disputes",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


# CORS - get allowed origins from environment, default to localhost for development
def _parse_cors_origins(raw: str) -> List[str]:
    origins: List[str] = []
    for item in raw.split(","):
        origin = item.strip().strip('"').strip("'").rstrip("/")
        if origin:
            origins.append(origin)
    return origins

_cors_raw = os.environ.get(
    "CORS_ALLOW_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000,http://127.0.0.1:8000"
)
CORS_ALLOW_ORIGINS = _parse_cors_origins(_cors_raw)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

_context_retriever = LegalContextRetriever()


# =============================================================================
# Dependencies
# =============================================================================

def get_store() -> JobStore:
    return JobStore()


def get_provider() -> InferenceProvider:
    return build_provider(get_settings())


def get_app_settings() -> Settings:
    return get_settings()


# =============================================================================
# Errors
# =============================================================================

def _is_api_v1_request(request: Request) -> bool:
    return request.url.path.startswith("/api/v1")


def _sanitize_error_detail(detail: Any) -> Any:
    if detail is None:
        return None
    if isinstance(detail, str):
        compact = " ".join(detail.split())
        return compact[:300]
    return detail


def _error_code_for_status(status_code: int) -> str:
    return {
        400: "bad_request",
        404: "not_found",
        409: "conflict",
        422: "validation_error",
        500: "internal_error",
        503: "service_unavailable",
    }.get(status_code, "error")


def _build_error_payload(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
        }
    }


@app.exception_handler(HTTPException)
async def api_http_exception_handler(request: Request, exc: HTTPException):
    """Structured errors for /api/v1 endpoints."""
    if not _is_api_v1_request(request):
        return await http_exception_handler(request, exc)

    detail = _sanitize_error_detail(exc.detail)
    if isinstance(detail, dict):
        message = detail.get("message") or "Request failed"
        details = detail.get("details")
        code = detail.get("code") or _error_code_for_status(exc.status_code)
    elif isinstance(detail, str) and detail:
        message = detail
        details = None
        code = _error_code_for_status(exc.status_code)
    else:
        message = "Request failed"
        details = detail
        code = _error_code_for_status(exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content=_build_error_payload(code, message, details),
    )


@app.exception_handler(RequestValidationError)
async def api_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return structured validation errors without echoing inputs."""
    if not _is_api_v1_request(request):
        return await request_validation_exception_handler(request, exc)

    sanitized_errors = [
        {"loc": err.get("loc"), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=_build_error_payload("validation_error", "Invalid request", sanitized_errors),
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content=_build_error_payload("store_unavailable", "Analysis store unavailable"),
    )


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=settings.service_version,
        llm_mode=get_llm_mode(),
        timestamp=datetime.now()
    )


@app.get("/api/v1/jurisdictions", tags=["Legal Analysis"])
async def list_jurisdictions():
    """Jurisdictions with rule content"""
    return {
        "jurisdictions": [
            {"code": code, "name": get_rules(code).display_name}
            for code in get_supported_jurisdictions()
        ]
    }


def _run_inline(
    store: JobStore,
    provider: InferenceProvider,
    settings: Settings,
    analysis_input: LegalAnalysisInput,
    force: bool,
):
    orchestrator = LegalAnalysisOrchestrator(
        provider,
        store,
        settings=settings,
        context_retriever=_context_retriever,
    )

    async def _run():
        try:
            return await orchestrator.run(analysis_input, LegalAnalysisOptions(force=force))
        finally:
            await provider.close()

    return asyncio.run(_run())


@app.post(
    "/api/v1/cases/{case_id}/legal-analysis",
    response_model=AnalysisStatusResponse,
    tags=["Legal Analysis"],
    summary="Start legal analysis for a case",
    responses={
        202: {"description": "Analysis queued"},
        400: {"model": ErrorResponse, "description": "Input does not match case"},
        404: {"model": ErrorResponse, "description": "No extracted facts for case"},
        409: {"model": ErrorResponse, "description": "Analysis already running"},
    }
)
def start_legal_analysis(
    case_id: str,
    response: Response,
    request: StartAnalysisRequest = None,
    store: JobStore = Depends(get_store),
    provider: InferenceProvider = Depends(get_provider),
    settings: Settings = Depends(get_app_settings),
):
    """
    Start (or resume) the legal analysis pipeline.

    The fact-extraction input may be supplied in the body; otherwise the
    input stored for the case is used. A completed analysis is returned
    as-is unless force is set.
    """
    request = request or StartAnalysisRequest()

    if request.input is not None:
        if request.input.case_id != case_id:
            raise HTTPException(status_code=400, detail="Input case_id does not match URL")
        store.save_input(request.input)

    try:
        analysis_input = load_legal_analysis_input(store, case_id)
    except InputUnavailableError as e:
        raise HTTPException(
            status_code=404,
            detail={"code": "input_unavailable", "message": str(e)},
        )

    current = store.get_status(case_id)
    if current is not None and not request.force:
        if current.status == JobStatus.PROCESSING:
            raise HTTPException(status_code=409, detail="Legal analysis already in progress")
        if current.status == JobStatus.COMPLETED:
            return current

    if settings.run_inline:
        result = _run_inline(store, provider, settings, analysis_input, request.force)
        logger.info(f"Inline analysis for case {case_id} finished: {result.status.value}")
    else:
        store.get_or_create_job(case_id)
        queued = enqueue_job(
            task_run_legal_analysis,
            case_id,
            force=request.force,
            job_id=f"legal-analysis-{case_id}",
        )
        logger.info(f"Legal analysis for case {case_id}: job {queued['job_id']} ({queued['status']})")
        response.status_code = 202

    return store.get_status(case_id)


@app.get(
    "/api/v1/cases/{case_id}/legal-analysis",
    response_model=AnalysisStatusResponse,
    tags=["Legal Analysis"],
    responses={404: {"model": ErrorResponse, "description": "No analysis for case"}},
)
def get_legal_analysis(case_id: str, store: JobStore = Depends(get_store)):
    """Status, progress and persisted phase outputs"""
    status = store.get_status(case_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"No legal analysis for case {case_id}")
    return status
