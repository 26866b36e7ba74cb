"""
Error classification for execution strategies and wait loops.

Ledger and HTTP errors mostly surface as text, so the default classifier
matches known substrings. Typed checks run first so a backend that raises
structured errors can be classified without relying on message wording.
"""
import logging
from typing import Iterable, Iterator, Optional, Tuple

import requests

from .exceptions import ErrorCategory, InscriptionCancelledError

logger = logging.getLogger(__name__)

INVALID_SIGNATURE_MARKER = "INVALID_SIGNATURE"

TRANSIENT_KEYWORDS: Tuple[str, ...] = (
    "timeout",
    "timed out",
    "temporarily unavailable",
    "connection reset",
    "broken pipe",
    "eof",
)


def _exception_chain(error: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


class ErrorClassifier:
    """
    Maps exceptions onto an ErrorCategory.

    Subclass and override `classify_execution_error` / `classify_wait_error`
    to use typed status codes where the ledger backend exposes them.
    """

    def __init__(
        self,
        invalid_signature_marker: str = INVALID_SIGNATURE_MARKER,
        transient_keywords: Iterable[str] = TRANSIENT_KEYWORDS,
    ):
        self.invalid_signature_marker = invalid_signature_marker.upper()
        self.transient_keywords = tuple(k.lower() for k in transient_keywords)

    def classify_execution_error(self, error: BaseException) -> ErrorCategory:
        """
        Classify an error raised while submitting a transaction.

        Returns:
            INVALID_SIGNATURE if the ledger rejected the signature, FATAL otherwise
        """
        status = getattr(error, "status", None)
        if isinstance(status, str) and status.upper() == self.invalid_signature_marker:
            return ErrorCategory.INVALID_SIGNATURE
        if self.invalid_signature_marker in str(error).upper():
            return ErrorCategory.INVALID_SIGNATURE
        return ErrorCategory.FATAL

    def classify_wait_error(self, error: BaseException) -> ErrorCategory:
        """
        Classify an error raised while fetching job status.

        Cancellation is never retryable. A requests timeout anywhere in the
        cause chain is TRANSIENT; everything else goes by message text.
        """
        for link in _exception_chain(error):
            if isinstance(link, InscriptionCancelledError):
                return ErrorCategory.CANCELLED
        for link in _exception_chain(error):
            if isinstance(link, requests.Timeout):
                return ErrorCategory.TRANSIENT

        lower = str(error).lower()
        if any(keyword in lower for keyword in self.transient_keywords):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.FATAL

    def is_invalid_signature(self, error: BaseException) -> bool:
        return self.classify_execution_error(error) is ErrorCategory.INVALID_SIGNATURE

    def is_retryable_wait_error(self, error: BaseException) -> bool:
        return self.classify_wait_error(error) is ErrorCategory.TRANSIENT


default_classifier = ErrorClassifier()
