"""
PollingWaiter - tracks an inscription job by polling the REST API.
"""
import logging
import threading
from typing import Callable, Optional

from ._rate_limited_log import rate_limited_log
from .classifier import ErrorClassifier, default_classifier
from .exceptions import (
    InscriptionCancelledError,
    InscriptionFailedError,
    WaitBudgetExhaustedError,
)
from .models import JobStatus, WaitOptions

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_MESSAGE = "inscription failed"

JobFetcher = Callable[[str], JobStatus]


def sleep_or_cancel(interval: float, cancel_event: Optional[threading.Event]) -> None:
    """
    Sleep for `interval` seconds unless the cancel event fires first.

    Raises:
        InscriptionCancelledError: If the event is set before or during the sleep
    """
    event = cancel_event if cancel_event is not None else threading.Event()
    if event.wait(max(interval, 0)):
        raise InscriptionCancelledError("wait cancelled")


class PollingWaiter:
    """
    Polls job status until it completes, fails or the attempt budget runs out.

    Args:
        fetch: Returns the current JobStatus for a job ID
        classifier: Decides which fetch errors are worth another attempt
        options: Default attempt budget and interval
    """

    def __init__(
        self,
        fetch: JobFetcher,
        classifier: Optional[ErrorClassifier] = None,
        options: Optional[WaitOptions] = None,
    ):
        self.fetch = fetch
        self.classifier = classifier or default_classifier
        self.options = options or WaitOptions()

    def wait_for_job(
        self,
        job_id: str,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> JobStatus:
        """
        Wait for a job to reach a terminal state.

        Args:
            job_id: Job or transaction identifier
            max_attempts: Maximum number of fetches (default from options)
            interval: Seconds to sleep between fetches (default from options)
            cancel_event: Set by the caller to abort the wait

        Returns:
            The completed JobStatus

        Raises:
            InscriptionFailedError: If the job reports status "failed"
            InscriptionCancelledError: If cancel_event is set
            WaitBudgetExhaustedError: If max_attempts fetches pass without a terminal state
            Exception: Any non-transient fetch error, unchanged
        """
        if max_attempts is None or max_attempts <= 0:
            max_attempts = self.options.max_attempts
        if interval is None or interval <= 0:
            interval = self.options.interval

        latest = JobStatus()
        last_error: Optional[BaseException] = None

        for attempt in range(max_attempts):
            if cancel_event is not None and cancel_event.is_set():
                raise InscriptionCancelledError("wait cancelled")

            try:
                job = self.fetch(job_id)
            except Exception as e:
                if not self.classifier.is_retryable_wait_error(e):
                    raise
                last_error = e
                rate_limited_log(
                    f"Transient error polling inscription {job_id}: {e}",
                    level="warning",
                    logger_instance=logger,
                )
            else:
                latest = job
                last_error = None
                if job.is_failed:
                    if not job.error:
                        job = job.model_copy(update={"error": DEFAULT_FAILURE_MESSAGE})
                    raise InscriptionFailedError(job.error, job=job)
                if job.is_completed:
                    if not job.completed:
                        job = job.model_copy(update={"completed": True})
                    logger.info(f"Inscription {job_id} completed after {attempt + 1} polls")
                    return job
                logger.debug(f"Inscription {job_id} status {job.status or '<empty>'} ({attempt + 1}/{max_attempts})")

            if attempt < max_attempts - 1:
                sleep_or_cancel(interval, cancel_event)

        error = WaitBudgetExhaustedError(
            f"inscription did not complete within {max_attempts} attempts", job=latest
        )
        if last_error is not None:
            raise error from last_error
        raise error
