"""
Event stream tracking for inscription jobs.

This module provides an abstraction over the push channel used by the
inscription service (socket.io in production) and a waiter that resolves a
job from its progress and completion events.
"""
import logging
import queue
import threading
import time
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from ._deps import ensure_socketio_installed
from .exceptions import (
    EventStreamError,
    InscriptionCancelledError,
    InscriptionTimeoutError,
    NoEventStreamServersError,
)
from .models import (
    JobStatus,
    ProgressCallback,
    RegistrationProgressData,
    RegistrationStage,
    WebSocketServersResponse,
)
from .parser import normalize_transaction_id, parse_event, parse_float, parse_string

logger = logging.getLogger(__name__)

EVENT_ERROR = "error"
EVENT_INSCRIPTION_ERROR = "inscription-error"
EVENT_PROGRESS = "inscription-progress"
EVENT_COMPLETE = "inscription-complete"

STREAM_EVENTS: Tuple[str, ...] = (EVENT_ERROR, EVENT_INSCRIPTION_ERROR, EVENT_PROGRESS, EVENT_COMPLETE)

CORRELATION_KEYS: Tuple[str, ...] = ("jobId", "tx_id", "transactionId")

DEFAULT_INACTIVITY_TIMEOUT = 30.0


class EventSource(ABC):
    """
    Abstract push channel delivering named events.

    Handlers are registered before `connect` and may be invoked from a
    transport thread.
    """

    @abstractmethod
    def on(self, event: str, handler: Callable[..., None]) -> None:
        pass

    @abstractmethod
    def connect(self, url: str, api_key: str) -> None:
        """
        Open the connection.

        Args:
            url: Event stream server URL
            api_key: API key, sent as the apiKey query parameter and x-api-key header

        Raises:
            EventStreamError: If the connection cannot be established
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        pass


class SocketIOEventSource(EventSource):
    """EventSource backed by python-socketio."""

    def __init__(self, transports: Sequence[str] = ("websocket",), wait_timeout: float = 10.0):
        ensure_socketio_installed()
        import socketio

        self.transports = list(transports)
        self.wait_timeout = wait_timeout
        self._client = socketio.Client(reconnection=False)

    def on(self, event: str, handler: Callable[..., None]) -> None:
        self._client.on(event, handler)
        if event == EVENT_ERROR:
            # socket.io reports handshake failures on its own reserved event
            self._client.on("connect_error", handler)

    def connect(self, url: str, api_key: str) -> None:
        query = urllib.parse.urlencode({"apiKey": api_key})
        separator = "&" if "?" in url else "?"
        try:
            self._client.connect(
                f"{url}{separator}{query}",
                headers={"x-api-key": api_key},
                transports=self.transports,
                wait_timeout=self.wait_timeout,
            )
        except Exception as e:
            raise EventStreamError(f"failed to connect to event stream: {e}") from e

    def disconnect(self) -> None:
        self._client.disconnect()


def select_server(response: WebSocketServersResponse) -> str:
    """
    Pick an event stream server from a discovery response.

    Preference: the recommended URL, then the first active server, then
    the first server with any URL.

    Raises:
        NoEventStreamServersError: If the response names no usable server
    """
    recommended = (response.recommended or "").strip()
    if recommended:
        return recommended

    for server in response.servers:
        if server.status.strip().lower() == "active" and server.url.strip():
            return server.url.strip()

    for server in response.servers:
        if server.url.strip():
            return server.url.strip()

    raise NoEventStreamServersError("no websocket servers available")


def matches_inscription_event(normalized_target: str, payload: Any) -> bool:
    """Return True if the payload belongs to the target job; an empty target matches all."""
    if not normalized_target:
        return True
    if not isinstance(payload, Mapping):
        return False
    for key in CORRELATION_KEYS:
        value = normalize_transaction_id(parse_string(payload.get(key)))
        if value and value == normalized_target:
            return True
    return False


class WaitSession:
    """
    State for a single stream wait.

    All event handlers feed `inbound`; the deadline only moves when
    `touch` is called.
    """

    def __init__(
        self,
        target_id: str,
        inactivity_timeout: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.target_id = normalize_transaction_id(target_id)
        self.inactivity_timeout = inactivity_timeout
        self.inbound: "queue.Queue[Tuple[str, Any]]" = queue.Queue()
        self._clock = clock
        self.deadline = clock() + inactivity_timeout

    def handler(self, category: str) -> Callable[..., None]:
        def handle(*args: Any) -> None:
            self.inbound.put((category, args[0] if args else None))
        return handle

    def touch(self) -> None:
        self.deadline = self._clock() + self.inactivity_timeout

    def remaining(self) -> float:
        return self.deadline - self._clock()

    def expired(self) -> bool:
        return self.remaining() <= 0


class EventStreamWaiter:
    """
    Waits for a job over the event stream.

    Args:
        api_key: Inscription API key
        discover: Returns the discovery response when no URL is configured
        url: Explicit event stream URL (skips discovery)
        source_factory: Creates a fresh EventSource per wait
        inactivity_timeout: Seconds without a matching event before giving up
        poll_interval: Upper bound on each queue wait, so cancellation is noticed promptly
        clock: Monotonic clock used for the inactivity deadline
    """

    def __init__(
        self,
        api_key: str,
        discover: Optional[Callable[[], WebSocketServersResponse]] = None,
        url: Optional[str] = None,
        source_factory: Callable[[], EventSource] = SocketIOEventSource,
        inactivity_timeout: Optional[float] = None,
        poll_interval: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api_key = api_key
        self.discover = discover
        self.url = (url or "").strip()
        self.source_factory = source_factory
        if inactivity_timeout is None or inactivity_timeout <= 0:
            inactivity_timeout = DEFAULT_INACTIVITY_TIMEOUT
        self.inactivity_timeout = inactivity_timeout
        self.poll_interval = poll_interval
        self.clock = clock

    def resolve_url(self) -> str:
        if self.url:
            return self.url
        if self.discover is None:
            raise NoEventStreamServersError("no event stream URL configured and no discovery endpoint")
        return select_server(self.discover())

    def wait_for_job(
        self,
        job_id: str,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> JobStatus:
        """
        Wait for a completion signal for `job_id`.

        Args:
            job_id: Job or transaction identifier to correlate events against
            progress_callback: Called for every matching progress event
            cancel_event: Set by the caller to abort the wait

        Returns:
            The completed JobStatus

        Raises:
            InscriptionCancelledError: If cancel_event is set
            InscriptionTimeoutError: If no matching event arrives within the inactivity timeout
            EventStreamError: On transport or inscription error events
            NoEventStreamServersError: If no server can be resolved
        """
        url = self.resolve_url()
        session = WaitSession(job_id, self.inactivity_timeout, self.clock)
        source = self.source_factory()
        for category in STREAM_EVENTS:
            source.on(category, session.handler(category))

        logger.debug(f"Waiting for inscription {session.target_id or '<any>'} via {url}")
        try:
            source.connect(url, self.api_key)
            # inactivity is measured from the completed handshake
            session.touch()
            return self._run(session, progress_callback, cancel_event)
        finally:
            try:
                source.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting event stream: {e}")

    def _run(
        self,
        session: WaitSession,
        progress_callback: Optional[ProgressCallback],
        cancel_event: Optional[threading.Event],
    ) -> JobStatus:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise InscriptionCancelledError("wait cancelled")

            remaining = session.remaining()
            if remaining <= 0:
                raise InscriptionTimeoutError("websocket inscription timeout")

            try:
                category, payload = session.inbound.get(timeout=min(remaining, self.poll_interval))
            except queue.Empty:
                continue

            if category == EVENT_ERROR:
                raise EventStreamError(parse_string(payload) or str(payload or "") or "event stream error")

            if category == EVENT_INSCRIPTION_ERROR:
                message = ""
                if isinstance(payload, Mapping):
                    message = parse_string(payload.get("error")).strip()
                raise EventStreamError(message or "websocket inscription error")

            if not isinstance(payload, Mapping) or not matches_inscription_event(session.target_id, payload):
                logger.debug(f"Discarding {category} event for another job")
                continue

            session.touch()

            if category == EVENT_PROGRESS:
                progress = parse_float(payload.get("progress"))
                if progress_callback is not None:
                    progress_callback(RegistrationProgressData(
                        stage=RegistrationStage.CONFIRMING,
                        message="Processing inscription",
                        progress_percent=progress,
                        details=dict(payload),
                    ))
                status = parse_string(payload.get("status")).lower()
                if status == "completed" or progress >= 100:
                    return self._completed(payload)
            elif category == EVENT_COMPLETE:
                return self._completed(payload)

    def _completed(self, payload: Mapping) -> JobStatus:
        job = parse_event(payload)
        update = {"completed": True}
        if not job.status.strip():
            update["status"] = "completed"
        return job.model_copy(update=update)
