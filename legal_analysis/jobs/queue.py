"""
Job Queue Management
====================

Redis Queue (RQ) integration for background legal analysis runs.

When Redis cannot be reached the job runs synchronously in the calling
process, so a single-process deployment works without a queue.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, Callable

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry
from rq.exceptions import NoSuchJobError
from rq.job import Job

from ..config import get_settings

logger = logging.getLogger(__name__)

# Queue names
QUEUE_DEFAULT = "default"
QUEUE_HIGH = "high"
QUEUE_LOW = "low"

# Set in job.meta by cancel_job; checked by the task at phase boundaries
CANCEL_FLAG = "cancel_requested"


def get_redis_connection() -> Redis:
    """Get Redis connection"""
    return Redis.from_url(get_settings().redis_url)


def get_queue(queue_name: str = QUEUE_DEFAULT) -> Queue:
    """Get RQ queue by name"""
    return Queue(queue_name, connection=get_redis_connection())


def enqueue_job(
    func: Callable,
    *args,
    queue_name: str = QUEUE_DEFAULT,
    job_id: str = None,
    timeout: int = 900,
    retry: int = 0,
    meta: Dict[str, Any] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Enqueue a job for async processing.

    Args:
        func: Function to execute
        *args: Positional arguments for function
        queue_name: Queue to use (default/high/low)
        job_id: Optional custom job ID
        timeout: Job timeout in seconds
        retry: Number of retries on failure
        meta: Custom metadata for job
        **kwargs: Keyword arguments for function

    Returns:
        Dict with job_id and status ("done"/"failed" with result or error
        when the job ran synchronously)
    """
    def _run_sync(reason: str) -> Dict[str, Any]:
        logger.warning(f"Running job synchronously ({reason})")
        try:
            result = func(*args, **kwargs)
            return {
                "job_id": job_id or "sync",
                "status": "done",
                "result": result,
            }
        except Exception as e:
            logger.exception(f"Synchronous job {func.__name__} failed")
            return {
                "job_id": job_id or "sync",
                "status": "failed",
                "error": str(e),
            }

    retry_policy = Retry(max=retry, interval=[10, 30, 60]) if retry > 0 else None

    try:
        queue = get_queue(queue_name)
        job = queue.enqueue(
            func,
            *args,
            job_id=job_id,
            job_timeout=timeout,
            retry=retry_policy,
            meta=meta or {},
            **kwargs
        )
    except RedisError as e:
        return _run_sync(f"RQ enqueue failed: {e}")

    logger.info(f"Enqueued {func.__name__} as job {job.id} on '{queue_name}'")
    return {
        "job_id": job.id,
        "status": job.get_status(),
        "queue": queue_name,
        "enqueued_at": datetime.utcnow().isoformat(),
    }


def get_job_status(job_id: str) -> Dict[str, Any]:
    """
    Get job status and result.

    Returns:
        Dict with status, progress, phase, result or error
    """
    try:
        job = Job.fetch(job_id, connection=get_redis_connection())
    except NoSuchJobError as e:
        return {"job_id": job_id, "status": "not_found", "error": str(e)}
    except RedisError as e:
        return {"job_id": job_id, "status": "unknown", "error": str(e)}

    result = {
        "job_id": job_id,
        "status": job.get_status(),
        "meta": job.meta,
        "enqueued_at": job.enqueued_at.isoformat() if job.enqueued_at else None,
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "ended_at": job.ended_at.isoformat() if job.ended_at else None,
        "progress": job.meta.get("progress", 0),
        "phase": job.meta.get("phase"),
    }

    if job.is_finished:
        result["result"] = job.result
    elif job.is_failed:
        result["error"] = job.meta.get("error_message") or "Unknown error"

    return result


def cancel_job(job_id: str) -> bool:
    """
    Request cancellation of a job.

    A queued job is cancelled immediately; a running analysis stops at its
    next phase boundary.
    """
    try:
        job = Job.fetch(job_id, connection=get_redis_connection())
        job.meta[CANCEL_FLAG] = True
        job.save_meta()
        if job.get_status() != "started":
            job.cancel()
        logger.info(f"Cancellation requested for job {job_id}")
        return True
    except (NoSuchJobError, RedisError) as e:
        logger.warning(f"Could not cancel job {job_id}: {e}")
        return False
