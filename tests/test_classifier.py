"""
Tests for error classification.
"""
import pytest
import requests

from standards_sdk.inscriber.classifier import ErrorClassifier, default_classifier
from standards_sdk.inscriber.exceptions import (
    ErrorCategory,
    InscriberConnectionError,
    InscriptionCancelledError,
    TransactionExecutionError,
)


class TestExecutionErrors:
    """Tests for classify_execution_error"""

    @pytest.mark.parametrize("message", [
        "exceptional precheck status INVALID_SIGNATURE",
        "receipt status invalid_signature",
        "Invalid_Signature received",
    ])
    def test_invalid_signature_matched_case_insensitively(self, message):
        assert default_classifier.classify_execution_error(RuntimeError(message)) is ErrorCategory.INVALID_SIGNATURE

    def test_typed_status_attribute(self):
        error = TransactionExecutionError("rejected", status="INVALID_SIGNATURE")
        assert default_classifier.is_invalid_signature(error)

    def test_other_errors_are_fatal(self):
        assert default_classifier.classify_execution_error(RuntimeError("INSUFFICIENT_PAYER_BALANCE")) is ErrorCategory.FATAL
        assert not default_classifier.is_invalid_signature(RuntimeError("boom"))

    def test_custom_marker(self):
        classifier = ErrorClassifier(invalid_signature_marker="bad_sig")
        assert classifier.is_invalid_signature(RuntimeError("BAD_SIG"))
        assert not classifier.is_invalid_signature(RuntimeError("INVALID_SIGNATURE"))


class TestWaitErrors:
    """Tests for classify_wait_error"""

    @pytest.mark.parametrize("message", [
        "read timeout",
        "operation timed out",
        "service temporarily unavailable",
        "connection reset by peer",
        "broken pipe",
        "unexpected EOF",
    ])
    def test_transient_keywords(self, message):
        assert default_classifier.is_retryable_wait_error(RuntimeError(message))

    def test_requests_timeout_in_cause_chain(self):
        """A wrapped timeout is transient even when the message says nothing about it"""
        try:
            try:
                raise requests.exceptions.ConnectTimeout("x")
            except requests.exceptions.ConnectTimeout as e:
                raise InscriberConnectionError("request failed") from e
        except InscriberConnectionError as wrapped:
            assert default_classifier.classify_wait_error(wrapped) is ErrorCategory.TRANSIENT

    def test_cancellation_wins_over_timeout_text(self):
        error = InscriptionCancelledError("timeout while waiting")
        assert default_classifier.classify_wait_error(error) is ErrorCategory.CANCELLED
        assert not default_classifier.is_retryable_wait_error(error)

    def test_cancellation_in_cause_chain(self):
        try:
            try:
                raise InscriptionCancelledError("wait cancelled")
            except InscriptionCancelledError as e:
                raise RuntimeError("timeout") from e
        except RuntimeError as wrapped:
            assert default_classifier.classify_wait_error(wrapped) is ErrorCategory.CANCELLED

    def test_everything_else_is_fatal(self):
        assert default_classifier.classify_wait_error(ValueError("bad request")) is ErrorCategory.FATAL

    def test_self_referencing_chain_terminates(self):
        error = RuntimeError("loop")
        error.__context__ = error
        assert default_classifier.classify_wait_error(error) is ErrorCategory.FATAL
