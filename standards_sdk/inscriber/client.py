"""
InscriberClient - REST client for the inscription service.
"""
import logging
import os
import threading
import urllib.parse
from typing import Any, Callable, Dict, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..shared.network import NETWORK_MAINNET, NETWORK_TESTNET
from ..shared.operator import LedgerConfig
from .classifier import ErrorClassifier, default_classifier
from .codec import normalize_transaction_bytes
from .exceptions import InscriberAPIError, InscriberConnectionError, InscriberError
from .executor import TransactionExecutor
from .models import (
    ConnectionMode,
    InscriptionResult,
    JobStatus,
    ProgressCallback,
    StartInscriptionRequest,
    WaitOptions,
    WebSocketServersResponse,
)
from .orchestrator import CompletionOrchestrator
from .parser import normalize_transaction_id, parse_job
from .polling import PollingWaiter
from .stream import EventSource, EventStreamWaiter, SocketIOEventSource

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://v2-api.tier.bot/api"


def _is_insecure_allowed() -> bool:
    return os.environ.get("INSCRIBER_INSECURE_HTTP", "").lower() in ("1", "true", "yes")


def validate_base_url(base_url: str) -> str:
    """
    Require https for API base URLs.

    Plain http is accepted for localhost, or anywhere when
    INSCRIBER_INSECURE_HTTP is set.

    Returns:
        The stripped URL
    """
    base_url = base_url.strip()
    parsed = urllib.parse.urlparse(base_url)
    is_local = (parsed.hostname or "") in ("localhost", "127.0.0.1")
    if parsed.scheme != "https" and not (parsed.scheme == "http" and (is_local or _is_insecure_allowed())):
        raise ValueError(f"base_url must use https:// for security (got: {parsed.scheme}://)")
    return base_url


def retrying_session(retry_count: int) -> requests.Session:
    """Session that retries GETs on 5xx responses with exponential backoff."""
    session = requests.Session()
    retries = Retry(
        total=retry_count,
        backoff_factor=0.5,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    return session


class InscriberClient:
    """
    Client for the inscription REST API.

    Starts inscription jobs, retrieves their status, executes the returned
    transactions and waits for the jobs to complete.
    """

    def __init__(
        self,
        api_key: str,
        network: str = NETWORK_MAINNET,
        base_url: Optional[str] = None,
        connection_mode: Union[ConnectionMode, str] = ConnectionMode.WEBSOCKET,
        websocket_url: Optional[str] = None,
        websocket_inactivity_timeout: Optional[float] = None,
        wait_options: Optional[WaitOptions] = None,
        executor: Optional[TransactionExecutor] = None,
        event_source_factory: Callable[[], EventSource] = SocketIOEventSource,
        classifier: Optional[ErrorClassifier] = None,
        session: Optional[requests.Session] = None,
        retry_count: int = 3,
        timeout: Optional[int] = None,
    ):
        """
        Initialize the InscriberClient.

        Args:
            api_key: Inscription service API key
            network: "mainnet" or "testnet"
            base_url: API base URL (default: INSCRIBER_BASE_URL or the public service)
            connection_mode: How completion is tracked (http, websocket or auto)
            websocket_url: Explicit event stream URL (skips server discovery)
            websocket_inactivity_timeout: Seconds of stream silence before falling back
            wait_options: Default polling budget
            executor: Transaction executor (default: a Hiero-backed executor per call)
            event_source_factory: Creates an EventSource per stream wait
            classifier: Error classifier shared by polling and execution
            session: Optional pre-configured requests session
            retry_count: Number of retries for 5xx responses
            timeout: Request timeout in seconds (default: INSCRIBER_API_TIMEOUT or 60)

        Raises:
            ValueError: If the API key, network, connection mode or base URL is invalid
        """
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValueError("API key is required")

        network = (network or NETWORK_MAINNET).strip().lower()
        if network not in (NETWORK_MAINNET, NETWORK_TESTNET):
            raise ValueError("network must be mainnet or testnet")

        try:
            connection_mode = ConnectionMode(connection_mode or ConnectionMode.WEBSOCKET)
        except ValueError:
            raise ValueError("connection mode must be http, websocket, or auto")

        base_url = validate_base_url(base_url or os.environ.get("INSCRIBER_BASE_URL") or DEFAULT_BASE_URL)

        self.api_key = api_key
        self.network = network
        self.base_url = base_url.rstrip("/")
        self.connection_mode = connection_mode
        self.websocket_url = (websocket_url or "").strip()
        self.websocket_inactivity_timeout = websocket_inactivity_timeout
        self.wait_options = wait_options or WaitOptions()
        self.event_source_factory = event_source_factory
        self.classifier = classifier or default_classifier
        self.executor = executor
        self.timeout = timeout or int(os.environ.get("INSCRIBER_API_TIMEOUT", "60"))

        self.session = session if session is not None else retrying_session(retry_count)

    def transaction_executor(self) -> TransactionExecutor:
        if self.executor is not None:
            return self.executor
        from .hiero_backend import HieroLedgerBackend
        return TransactionExecutor(HieroLedgerBackend(), classifier=self.classifier)

    def start_inscription(self, request: StartInscriptionRequest) -> JobStatus:
        """
        Start an inscription job.

        Args:
            request: File reference, holder account and inscription options

        Returns:
            JobStatus including the unexecuted transaction bytes

        Raises:
            ValueError: If the request is missing required fields
            TransactionBytesError: If the response carries malformed transaction bytes
            InscriberAPIError: If the API rejects the request
            InscriberConnectionError: If the API cannot be reached
        """
        if not request.holder_id.strip():
            raise ValueError("holderId is required")
        if request.file.type not in ("url", "base64"):
            raise ValueError("file.type must be url or base64")

        raw = self._post_json("/inscriptions/start-inscription", self._start_body(request))
        if not isinstance(raw, dict):
            raise InscriberAPIError("start-inscription response must be a JSON object")

        # parse_job tolerates bad bytes; a job we are about to execute must not
        transaction_bytes = normalize_transaction_bytes(raw.get("transactionBytes"))
        job = parse_job(raw)
        logger.info(f"Started inscription job {job.id or job.tx_id or '<unknown>'}")
        return job.model_copy(update={"transaction_bytes": transaction_bytes})

    def retrieve_inscription(self, tx_id: str) -> JobStatus:
        """
        Fetch the current state of an inscription job.

        Args:
            tx_id: Transaction ID in either "0.0.1@123.456" or mirror form

        Returns:
            JobStatus; tx_id defaults to the normalized ID when the API omits it
        """
        normalized_id = normalize_transaction_id(tx_id)
        if not normalized_id:
            raise ValueError("transaction ID is required")

        query = urllib.parse.urlencode({"id": normalized_id})
        job = parse_job(self._get_json(f"/inscriptions/retrieve-inscription?{query}"))
        if not job.tx_id:
            job = job.model_copy(update={"tx_id": normalized_id})
        return job

    def list_websocket_servers(self) -> WebSocketServersResponse:
        raw = self._get_json("/inscriptions/websocket-servers")
        return WebSocketServersResponse.model_validate(raw if isinstance(raw, dict) else {})

    def polling_waiter(self) -> PollingWaiter:
        return PollingWaiter(self.retrieve_inscription, classifier=self.classifier, options=self.wait_options)

    def stream_waiter(self) -> EventStreamWaiter:
        return EventStreamWaiter(
            self.api_key,
            discover=self.list_websocket_servers,
            url=self.websocket_url,
            source_factory=self.event_source_factory,
            inactivity_timeout=self.websocket_inactivity_timeout,
        )

    def orchestrator(self) -> CompletionOrchestrator:
        return CompletionOrchestrator(
            self.polling_waiter(),
            stream_waiter=self.stream_waiter(),
            connection_mode=self.connection_mode,
        )

    def resolve_websocket_url(self) -> str:
        return self.stream_waiter().resolve_url()

    def wait_for_inscription(
        self,
        tx_id: str,
        options: Optional[WaitOptions] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> JobStatus:
        """Poll until the job completes; see PollingWaiter.wait_for_job."""
        options = options or self.wait_options
        return self.polling_waiter().wait_for_job(
            tx_id,
            max_attempts=options.max_attempts,
            interval=options.interval,
            cancel_event=cancel_event,
        )

    def wait_for_completion(
        self,
        tx_id: str,
        options: Optional[WaitOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        connection_mode: Optional[Union[ConnectionMode, str]] = None,
    ) -> JobStatus:
        """Wait using the event stream and/or polling, per the connection mode."""
        return self.orchestrator().wait_for_completion(
            tx_id,
            options=options or self.wait_options,
            progress_callback=progress_callback,
            cancel_event=cancel_event,
            connection_mode=connection_mode,
        )

    def inscribe_and_execute(
        self,
        request: StartInscriptionRequest,
        ledger_config: LedgerConfig,
        wait_for_completion: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> InscriptionResult:
        """
        Start an inscription, execute its transaction and optionally wait.

        Args:
            request: Start-inscription request
            ledger_config: Operator account and key that pay for the transaction
            wait_for_completion: Wait for the job to finish before returning
            cancel_event: Set by the caller to abort the wait

        Returns:
            InscriptionResult with the job and executed transaction IDs

        Raises:
            InscriberError: If the job returns no transaction bytes, or any step fails
        """
        job = self.start_inscription(request)
        if not job.transaction_bytes.strip():
            raise InscriberError("inscription start did not include transaction bytes")

        transaction_id = self.transaction_executor().execute_transaction(
            ledger_config.network,
            ledger_config.account_id,
            ledger_config.private_key,
            job.transaction_bytes,
        )

        result = InscriptionResult(
            job_id=normalize_transaction_id(job.tx_id),
            transaction_id=normalize_transaction_id(transaction_id),
            topic_id=job.topic_id,
            status=job.status,
            completed=False,
        )
        if not wait_for_completion:
            return result

        waited = self.wait_for_completion(transaction_id, cancel_event=cancel_event)
        return result.model_copy(update={
            "topic_id": waited.topic_id,
            "status": waited.status,
            "completed": waited.completed,
        })

    def _start_body(self, request: StartInscriptionRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "holderId": request.holder_id,
            "mode": request.mode.value,
            "network": self.network,
        }
        if request.metadata:
            body["metadata"] = request.metadata
        if request.tags:
            body["tags"] = request.tags
        if request.chunk_size and request.chunk_size > 0:
            body["chunkSize"] = request.chunk_size
        if request.only_json_collection:
            body["onlyJSONCollection"] = 1
        for key, value in (
            ("creator", request.creator),
            ("description", request.description),
            ("fileStandard", request.file_standard),
            ("jsonFileURL", request.json_file_url),
        ):
            if value and value.strip():
                body[key] = value
        if request.metadata_object:
            body["metadataObject"] = request.metadata_object

        if request.file.type == "url":
            body["fileURL"] = request.file.url
        else:
            body["fileBase64"] = request.file.base64
            body["fileName"] = request.file.file_name
            if request.file.mime_type:
                body["fileMimeType"] = request.file.mime_type
        return body

    def _resolve_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        if endpoint.startswith("/"):
            return self.base_url + endpoint
        return f"{self.base_url}/{endpoint}"

    def _get_json(self, endpoint: str) -> Any:
        return self._request("GET", endpoint)

    def _post_json(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        return self._request("POST", endpoint, payload)

    def _request(self, method: str, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"x-api-key": self.api_key, "Accept": "application/json"}
        try:
            response = self.session.request(
                method,
                self._resolve_url(endpoint),
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Inscriber API {method} {endpoint.split('?')[0]} failed: {e}")
            raise InscriberConnectionError(f"inscriber API {method} {endpoint} failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise InscriberAPIError(
                f"inscriber API {method} {endpoint} failed with status "
                f"{response.status_code}: {response.text.strip()}",
                response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise InscriberAPIError(f"failed to decode inscriber API response: {e}") from e
