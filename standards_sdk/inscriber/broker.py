"""
Inscription through the registry broker.

The broker inscribes content on the caller's behalf and is paid with API
credits, so no ledger transaction is executed locally. Job completion is
tracked by polling the broker's job endpoint.
"""
import dataclasses
import logging
import math
import os
import threading
from typing import Any, Dict, Optional

import requests

from .classifier import ErrorClassifier, default_classifier
from .client import retrying_session, validate_base_url
from .exceptions import InscriberAPIError, InscriberConnectionError
from .input_conversion import to_file_input
from .models import (
    BrokerInscriptionResult,
    BrokerJobResponse,
    BrokerQuoteRequest,
    BrokerQuoteResponse,
    InscriptionInput,
    InscriptionMode,
    JobStatus,
    RegistryBrokerOptions,
    WaitOptions,
)
from .polling import PollingWaiter

logger = logging.getLogger(__name__)

DEFAULT_BROKER_URL = "https://hol.org/registry/api/v1"
DEFAULT_BROKER_TIMEOUT = 120.0
DEFAULT_BROKER_POLL_INTERVAL = 2.0
BROKER_FAILURE_MESSAGE = "registry broker inscription failed"


class RegistryBrokerClient:
    """
    Client for the registry broker's content inscription endpoints.

    Args:
        api_key: Broker or ledger API key
        base_url: Broker API base URL (default: REGISTRY_BROKER_URL or the public broker)
        poll_interval: Seconds between job polls
        classifier: Decides which polling errors are worth another attempt
        session: Optional pre-configured requests session
        retry_count: Number of retries for 5xx responses
        timeout: Request timeout in seconds

    Raises:
        ValueError: If the API key is empty or the base URL is not https
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        poll_interval: float = DEFAULT_BROKER_POLL_INTERVAL,
        classifier: Optional[ErrorClassifier] = None,
        session: Optional[requests.Session] = None,
        retry_count: int = 3,
        timeout: int = 60,
    ):
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValueError("registry broker API key is required")

        base_url = (base_url or "").strip() or os.environ.get("REGISTRY_BROKER_URL") or DEFAULT_BROKER_URL
        self.base_url = validate_base_url(base_url).rstrip("/")
        self.api_key = api_key
        self.poll_interval = poll_interval if poll_interval > 0 else DEFAULT_BROKER_POLL_INTERVAL
        self.classifier = classifier or default_classifier
        self.timeout = timeout
        self.session = session if session is not None else retrying_session(retry_count)

    def create_quote(self, request: BrokerQuoteRequest) -> BrokerQuoteResponse:
        raw = self._request("POST", "/inscribe/content/quote", request.to_body())
        return BrokerQuoteResponse.model_validate(raw)

    def create_job(self, request: BrokerQuoteRequest) -> BrokerJobResponse:
        raw = self._request("POST", "/inscribe/content", request.to_body())
        job = BrokerJobResponse.model_validate(raw)
        logger.info(f"Created registry broker job {job.resolved_id or '<unknown>'}")
        return job

    def get_job(self, job_id: str) -> BrokerJobResponse:
        job_id = (job_id or "").strip()
        if not job_id:
            raise ValueError("job ID is required")
        return BrokerJobResponse.model_validate(self._request("GET", f"/inscribe/content/{job_id}"))

    def wait_for_job(
        self,
        job_id: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BrokerJobResponse:
        """
        Poll a broker job until it completes.

        The timeout is spent as a polling budget of
        ceil(timeout / poll_interval) fetches.

        Returns:
            The last job response, with status "completed"

        Raises:
            InscriptionFailedError: If the job reports status "failed"
            WaitBudgetExhaustedError: If the job does not complete in time
            InscriptionCancelledError: If cancel_event is set
        """
        if timeout is None or timeout <= 0:
            timeout = DEFAULT_BROKER_TIMEOUT
        latest: Dict[str, BrokerJobResponse] = {}

        def fetch(target: str) -> JobStatus:
            job = self.get_job(target)
            latest["job"] = job
            error = job.error
            if job.status.lower() == "failed" and not error:
                error = BROKER_FAILURE_MESSAGE
            return JobStatus(id=job.resolved_id or target, status=job.status, topic_id=job.topic_id, error=error)

        max_attempts = max(1, math.ceil(timeout / self.poll_interval))
        waiter = PollingWaiter(
            fetch,
            classifier=self.classifier,
            options=WaitOptions(max_attempts=max_attempts, interval=self.poll_interval),
        )
        waiter.wait_for_job(job_id, cancel_event=cancel_event)
        return latest["job"]

    def inscribe_and_wait(
        self,
        request: BrokerQuoteRequest,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BrokerInscriptionResult:
        """
        Create a broker job and wait for it to complete.

        Raises:
            InscriberAPIError: If the broker returns no job ID
        """
        job = self.create_job(request)
        job_id = job.resolved_id
        if not job_id:
            raise InscriberAPIError("registry broker response missing job ID")

        final = self.wait_for_job(job_id, timeout=timeout, cancel_event=cancel_event)
        return BrokerInscriptionResult.from_job(final, job_id, confirmed=final.status.lower() == "completed")

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"x-api-key": self.api_key, "Accept": "application/json"}
        try:
            response = self.session.request(
                method,
                self.base_url + path,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Registry broker {method} {path} failed: {e}")
            raise InscriberConnectionError(f"registry broker {method} {path} failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise InscriberAPIError(
                f"registry broker {method} {path} failed with status "
                f"{response.status_code}: {response.text.strip()}",
                response.status_code,
            )

        try:
            raw = response.json()
        except ValueError as e:
            raise InscriberAPIError(f"failed to decode registry broker response: {e}") from e
        if not isinstance(raw, dict):
            raise InscriberAPIError("registry broker response must be a JSON object")
        return raw


def build_broker_quote_request(source: InscriptionInput, options: RegistryBrokerOptions) -> BrokerQuoteRequest:
    """
    Convert an inscription input into a broker request body.

    Raises:
        ValueError: If the input is incomplete or the file cannot be read
    """
    file_input = to_file_input(source)
    return BrokerQuoteRequest(
        input_type=file_input.type,
        mode=options.mode or InscriptionMode.FILE,
        url=file_input.url,
        base64=file_input.base64,
        file_name=file_input.file_name,
        mime_type=file_input.mime_type,
        metadata=options.metadata or None,
        tags=options.tags or None,
        file_standard=options.file_standard.strip() or None,
        chunk_size=options.chunk_size if options.chunk_size and options.chunk_size > 0 else None,
    )


def resolve_broker_client(
    options: RegistryBrokerOptions,
    client: Optional[RegistryBrokerClient] = None,
) -> RegistryBrokerClient:
    """
    Return `client`, or build one from the options' key, URL and poll interval.

    Raises:
        ValueError: If neither ledger_api_key nor api_key is set
    """
    if client is not None:
        return client
    api_key = options.ledger_api_key.strip() or options.api_key.strip()
    if not api_key:
        raise ValueError("either ledger_api_key or api_key is required for registry broker inscription")
    return RegistryBrokerClient(api_key, base_url=options.base_url, poll_interval=options.poll_interval)


def inscribe_via_registry_broker(
    source: InscriptionInput,
    options: Optional[RegistryBrokerOptions] = None,
    client: Optional[RegistryBrokerClient] = None,
) -> BrokerInscriptionResult:
    """
    Inscribe content through the registry broker.

    Args:
        source: URL, file or buffer to inscribe
        options: Broker options; with wait_for_confirmation off the created
            job is returned unconfirmed
        client: Pre-built broker client (default: built from options)

    Returns:
        BrokerInscriptionResult; confirmed only once the job has completed
    """
    options = options or RegistryBrokerOptions()
    request = build_broker_quote_request(source, options)
    client = resolve_broker_client(options, client)

    if not options.wait_for_confirmation:
        job = client.create_job(request)
        return BrokerInscriptionResult.from_job(job, job.resolved_id, confirmed=False)

    return client.inscribe_and_wait(request, timeout=options.wait_timeout, cancel_event=options.cancel_event)


def get_registry_broker_quote(
    source: InscriptionInput,
    options: Optional[RegistryBrokerOptions] = None,
    client: Optional[RegistryBrokerClient] = None,
) -> BrokerQuoteResponse:
    """Price an inscription on the registry broker without creating a job."""
    options = options or RegistryBrokerOptions()
    request = build_broker_quote_request(source, options)
    return resolve_broker_client(options, client).create_quote(request)


def inscribe_skill_via_registry_broker(
    source: InscriptionInput,
    options: Optional[RegistryBrokerOptions] = None,
    skill_name: str = "",
    skill_version: str = "",
    client: Optional[RegistryBrokerClient] = None,
) -> BrokerInscriptionResult:
    """
    Inscribe a skill bundle through the registry broker.

    Uses bulk-files mode unless the options name another mode, and tags the
    metadata with kind "skill" plus the skill name and version when given.
    """
    options = options or RegistryBrokerOptions()
    metadata = dict(options.metadata or {})
    if skill_name.strip():
        metadata["skillName"] = skill_name.strip()
    if skill_version.strip():
        metadata["skillVersion"] = skill_version.strip()
    metadata["kind"] = "skill"

    skill_options = dataclasses.replace(options, mode=options.mode or InscriptionMode.BULK_FILES, metadata=metadata)
    return inscribe_via_registry_broker(source, skill_options, client)
