"""
Error taxonomy for loading, executing and persisting test cases
"""
from typing import Optional


class CaseTrackerError(Exception):
    """Base class for all case tracker errors."""

    pass


class MalformedSourceError(CaseTrackerError):
    """Raised when a source document cannot be turned into a test case."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{message} (source: {source})"
        super().__init__(message)


class StepExecutionError(CaseTrackerError):
    """Raised when dispatching a step to the automation driver fails."""

    def __init__(self, message: str, case_id: str = "", step_index: int = 0):
        self.case_id = case_id
        self.step_index = step_index
        super().__init__(message)


class PersistenceError(CaseTrackerError):
    """Raised when a record document cannot be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class SessionBusyError(CaseTrackerError):
    """Raised when a driver session is already owned by another test case."""

    def __init__(self, owner: str, requested: str):
        self.owner = owner
        self.requested = requested
        super().__init__(
            f"Driver session is owned by case '{owner}', cannot run '{requested}'"
        )


class RetryNotAllowedError(CaseTrackerError):
    """Raised when an in-place retry is requested but the policy forbids it."""

    pass
