"""
Database Package - SQLAlchemy
=============================

Job and fact-extraction persistence for the legal analysis pipeline.
"""

from .models import Base, AnalysisJob, CaseFacts
from .session import get_db_session, init_db, drop_db, get_engine, reset_engine

__all__ = [
    "Base",
    "AnalysisJob",
    "CaseFacts",
    "get_db_session",
    "init_db",
    "drop_db",
    "get_engine",
    "reset_engine",
]
