"""
Job Queue Package
=================

Background legal analysis runs with Redis Queue (RQ).
"""

from .queue import enqueue_job, get_job_status, cancel_job
from .tasks import task_run_legal_analysis

__all__ = [
    # Queue management
    "enqueue_job", "get_job_status", "cancel_job",
    # Tasks
    "task_run_legal_analysis",
]
