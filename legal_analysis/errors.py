"""
Shared error types for the legal analysis pipeline.

Kept in a separate module so the pipeline, the job tasks and the tests all
import the same exception classes.
"""


class InputUnavailableError(Exception):
    """Raised when the fact-extraction output for a case is missing."""

    def __init__(self, case_id: str, message: str = None):
        self.case_id = case_id
        super().__init__(
            message or f"No extracted facts available for case {case_id}; run fact extraction first"
        )


class ProviderError(Exception):
    """Inference provider call failed (network, timeout, quota, disabled)."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class JSONExtractionError(ProviderError):
    """Provider answered, but no usable JSON object could be extracted."""


class AnalysisCancelledError(Exception):
    """Cancellation requested; raised only at a phase boundary."""


class StoreError(Exception):
    """Persistence layer failed to read or write a job record."""
