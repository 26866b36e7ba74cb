"""
Exceptions for the inscriber module.
"""
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import JobStatus


class ErrorCategory(str, Enum):
    """
    Classification of errors raised while executing or waiting.

    INVALID_SIGNATURE advances the executor to its next strategy,
    TRANSIENT lets the polling waiter spend another attempt.
    """
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    TRANSIENT = "TRANSIENT"
    CANCELLED = "CANCELLED"
    FATAL = "FATAL"


class InscriberError(Exception):
    """Base exception for inscriber errors."""
    pass


class TransactionBytesError(InscriberError, ValueError):
    """Raised when transaction bytes are not valid base64 or Buffer JSON."""
    pass


class KeyResolutionError(InscriberError):
    """Raised when the operator key type cannot be resolved or the key cannot be parsed."""
    pass


class TransactionExecutionError(InscriberError):
    """Raised when a transaction cannot be executed on the ledger."""

    def __init__(self, message: str, label: Optional[str] = None, status: Optional[str] = None):
        self.label = label
        self.status = status
        super().__init__(message)


class RebuildError(TransactionExecutionError):
    """Raised when the transfer rebuild fallback cannot be completed."""
    pass


class ExecutionStrategiesExhaustedError(TransactionExecutionError):
    """Raised when every execution strategy and the rebuild fallback failed."""

    def __init__(self, message: str, failures: Optional[List[str]] = None):
        self.failures = list(failures or [])
        super().__init__(message)


class InscriberAPIError(InscriberError):
    """Raised when the inscription API returns an error response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class InscriberConnectionError(InscriberError):
    """Raised when the inscription API cannot be reached."""
    pass


class InscriptionFailedError(InscriberError):
    """Raised when the inscription job reports status "failed"."""

    def __init__(self, message: str, job: Optional["JobStatus"] = None):
        self.job = job
        super().__init__(message)


class WaitBudgetExhaustedError(InscriberError):
    """Raised when polling used up its attempts without a terminal status."""

    def __init__(self, message: str, job: Optional["JobStatus"] = None):
        self.job = job
        super().__init__(message)


class InscriptionTimeoutError(InscriberError):
    """Raised when the event stream stays silent past the inactivity timeout."""
    pass


class InscriptionCancelledError(InscriberError):
    """Raised when the caller cancels a wait."""
    pass


class EventStreamError(InscriberError):
    """Raised for event stream transport or application errors."""
    pass


class NoEventStreamServersError(EventStreamError):
    """Raised when discovery returns no event stream servers."""
    pass
