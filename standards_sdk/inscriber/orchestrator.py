"""
CompletionOrchestrator - picks the event stream or polling to track a job.
"""
import logging
import threading
from typing import Optional, Union

from .models import ConnectionMode, JobStatus, ProgressCallback, WaitOptions
from .polling import PollingWaiter
from .stream import EventStreamWaiter

logger = logging.getLogger(__name__)


class CompletionOrchestrator:
    """
    Waits for inscription completion using the configured connection mode.

    In websocket and auto modes the event stream is tried first; any
    failure there (including a timeout) falls back to polling with the
    same attempt budget. In http mode only polling is used.
    """

    def __init__(
        self,
        polling_waiter: PollingWaiter,
        stream_waiter: Optional[EventStreamWaiter] = None,
        connection_mode: Union[ConnectionMode, str] = ConnectionMode.WEBSOCKET,
    ):
        self.polling_waiter = polling_waiter
        self.stream_waiter = stream_waiter
        self.connection_mode = ConnectionMode(connection_mode)

    def wait_for_completion(
        self,
        job_id: str,
        options: Optional[WaitOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        connection_mode: Optional[Union[ConnectionMode, str]] = None,
    ) -> JobStatus:
        """
        Wait for a job to complete.

        Args:
            job_id: Job or transaction identifier
            options: Polling budget (also used for the fallback)
            progress_callback: Progress notifications from the event stream
            cancel_event: Set by the caller to abort the wait
            connection_mode: Overrides the orchestrator's mode for this call

        Returns:
            The completed JobStatus
        """
        mode = ConnectionMode(connection_mode) if connection_mode is not None else self.connection_mode
        options = options or self.polling_waiter.options

        if mode in (ConnectionMode.WEBSOCKET, ConnectionMode.AUTO) and self.stream_waiter is not None:
            try:
                return self.stream_waiter.wait_for_job(
                    job_id, progress_callback=progress_callback, cancel_event=cancel_event
                )
            except Exception as e:
                logger.warning(f"Event stream wait for {job_id} failed, falling back to polling: {e}")

        return self.polling_waiter.wait_for_job(
            job_id,
            max_attempts=options.max_attempts,
            interval=options.interval,
            cancel_event=cancel_event,
        )
