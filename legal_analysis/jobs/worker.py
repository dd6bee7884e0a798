"""
RQ Worker
=========

Worker process for executing legal analysis jobs.

Usage:
    python -m legal_analysis.jobs.worker --queues high default --log-level DEBUG
"""

import argparse
import logging
from typing import List, Optional

from rq import Worker

from .queue import QUEUE_DEFAULT, QUEUE_HIGH, QUEUE_LOW, get_redis_connection

logger = logging.getLogger(__name__)

DEFAULT_QUEUES = [QUEUE_HIGH, QUEUE_DEFAULT, QUEUE_LOW]


def start_worker(
    queues: Optional[List[str]] = None,
    burst: bool = False,
    logging_level: str = "INFO"
):
    """
    Start an RQ worker.

    Args:
        queues: List of queue names to listen to
        burst: Run in burst mode (exit when queues are empty)
        logging_level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, logging_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    queues = queues or DEFAULT_QUEUES
    worker = Worker(
        queues,
        connection=get_redis_connection(),
        worker_ttl=420,
        job_monitoring_interval=5,
    )

    logger.info(f"Starting worker on queues: {queues}")
    worker.work(burst=burst)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RQ worker for legal analysis jobs")
    parser.add_argument(
        "--queues", "-q",
        nargs="+",
        default=DEFAULT_QUEUES,
        help="Queues to listen to"
    )
    parser.add_argument(
        "--burst", "-b",
        action="store_true",
        help="Run in burst mode"
    )
    parser.add_argument(
        "--log-level", "-l",
        default="INFO",
        help="Logging level"
    )
    return parser


def run_worker_cli(argv: Optional[List[str]] = None):
    """CLI entry point for worker"""
    args = build_parser().parse_args(argv)
    start_worker(
        queues=args.queues,
        burst=args.burst,
        logging_level=args.log_level
    )


if __name__ == "__main__":
    run_worker_cli()
