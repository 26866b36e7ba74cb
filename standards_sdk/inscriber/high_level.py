"""
High-level inscription helpers.

These wrap InscriberClient for the common case: build the request from a
URL, file or buffer, execute the returned transaction with the operator's
key and optionally wait for the job to finish.
"""
import dataclasses
import logging
import threading
from typing import Callable, Optional

from ..mirror import MirrorNodeClient
from ..shared.network import NETWORK_MAINNET
from ..shared.operator import LedgerConfig
from .client import InscriberClient
from .cost import parse_job_quote, safe_cost_summary
from .exceptions import InscriberError
from .input_conversion import build_start_inscription_request
from .ledger import LedgerBackend
from .models import (
    ConnectionMode,
    InscriptionInput,
    InscriptionMode,
    InscriptionOptions,
    InscriptionResponse,
    InscriptionResult,
    JobStatus,
    ProgressCallback,
    WaitOptions,
)
from .parser import normalize_transaction_id

logger = logging.getLogger(__name__)

CONFIRMATION_MAX_ATTEMPTS = 450
CONFIRMATION_INTERVAL = 4.0


def normalize_inscription_options(
    options: Optional[InscriptionOptions],
    ledger_config: Optional[LedgerConfig] = None,
) -> InscriptionOptions:
    """Fill in mode, connection mode and network defaults."""
    options = options or InscriptionOptions()

    connection_mode = options.connection_mode
    if connection_mode is None:
        if options.websocket is None or options.websocket:
            connection_mode = ConnectionMode.WEBSOCKET
        else:
            connection_mode = ConnectionMode.HTTP

    network = options.network or (ledger_config.network if ledger_config else "") or NETWORK_MAINNET

    return dataclasses.replace(
        options,
        mode=options.mode or InscriptionMode.FILE,
        connection_mode=ConnectionMode(connection_mode),
        network=network,
    )


def resolve_inscriber_client(
    options: InscriptionOptions,
    client: Optional[InscriberClient] = None,
) -> InscriberClient:
    """
    Return `client` if given, otherwise build one from the options.

    Raises:
        ValueError: If no client is given and options carry no API key
    """
    if client is not None:
        return client
    if not options.api_key.strip():
        raise ValueError("an API key is required to create an inscriber client")
    return InscriberClient(
        options.api_key,
        network=options.network,
        base_url=options.base_url,
        connection_mode=options.connection_mode or ConnectionMode.WEBSOCKET,
    )


def _wait_with_connection(
    client: InscriberClient,
    transaction_id: str,
    options: InscriptionOptions,
) -> JobStatus:
    max_attempts = options.wait_max_attempts if options.wait_max_attempts > 0 else CONFIRMATION_MAX_ATTEMPTS
    interval = options.wait_interval if options.wait_interval > 0 else CONFIRMATION_INTERVAL
    return client.wait_for_completion(
        transaction_id,
        options=WaitOptions(max_attempts=max_attempts, interval=interval),
        progress_callback=options.progress_callback,
        cancel_event=options.cancel_event,
        connection_mode=options.connection_mode,
    )


def inscribe(
    source: InscriptionInput,
    ledger_config: LedgerConfig,
    options: Optional[InscriptionOptions] = None,
    client: Optional[InscriberClient] = None,
    mirror_factory: Optional[Callable[[str], MirrorNodeClient]] = None,
) -> InscriptionResponse:
    """
    Inscribe content and, unless disabled, wait for confirmation.

    Args:
        source: URL, file or buffer to inscribe
        ledger_config: Operator account and key that pay for the inscription
        options: Inscription options (quote_only returns a quote instead)
        client: Existing client (default: built from options.api_key)
        mirror_factory: Mirror client factory for the cost summary

    Returns:
        InscriptionResponse with the result, the final job state when waited
        for, and a cost summary when the mirror node has the transaction

    Raises:
        ValueError: If the input or options are invalid
        InscriberError: If starting, executing or waiting fails
    """
    options = normalize_inscription_options(options, ledger_config)
    if options.quote_only:
        return generate_quote(source, ledger_config, options, client)

    client = resolve_inscriber_client(options, client)
    request = build_start_inscription_request(source, ledger_config.account_id, options.network, options)

    job = client.start_inscription(request)
    if not job.transaction_bytes.strip():
        raise InscriberError("inscription start did not return transaction bytes")

    executed_id = client.transaction_executor().execute_transaction(
        ledger_config.network,
        ledger_config.account_id,
        ledger_config.private_key,
        job.transaction_bytes,
    )

    result = InscriptionResult(
        job_id=normalize_transaction_id(job.tx_id),
        transaction_id=normalize_transaction_id(executed_id),
        topic_id=job.topic_id,
        status=job.status,
        completed=False,
    )

    if not options.wait_for_confirmation:
        return InscriptionResponse(
            confirmed=False,
            result=result,
            cost_summary=safe_cost_summary(executed_id, options.network, mirror_factory),
        )

    waited = _wait_with_connection(client, executed_id, options)
    result = result.model_copy(update={
        "topic_id": waited.topic_id,
        "status": waited.status,
        "completed": waited.completed,
    })

    return InscriptionResponse(
        confirmed=waited.is_completed,
        result=result,
        inscription=waited,
        cost_summary=safe_cost_summary(executed_id, options.network, mirror_factory),
    )


def generate_quote(
    source: InscriptionInput,
    ledger_config: LedgerConfig,
    options: Optional[InscriptionOptions] = None,
    client: Optional[InscriberClient] = None,
    ledger: Optional[LedgerBackend] = None,
) -> InscriptionResponse:
    """
    Start an inscription job and report its cost without executing it.

    Args:
        ledger: Backend used to read transfer amounts from the transaction
            bytes when the job carries no totalCost (default: the client's
            executor backend; without the [hedera] extra the
            default fee is quoted)
    """
    options = normalize_inscription_options(options, ledger_config)
    client = resolve_inscriber_client(options, client)
    request = build_start_inscription_request(source, ledger_config.account_id, options.network, options)

    job = client.start_inscription(request)
    if ledger is None:
        try:
            ledger = client.transaction_executor().ledger
        except ImportError as e:
            logger.debug(f"No ledger backend for quote pricing: {e}")

    return InscriptionResponse(confirmed=False, quote=True, result=parse_job_quote(job, ledger))


def retrieve_inscription(
    transaction_id: str,
    api_key: str,
    network: str = NETWORK_MAINNET,
    base_url: Optional[str] = None,
) -> JobStatus:
    """Fetch a job's state with a one-off client."""
    client = InscriberClient(api_key, network=network or NETWORK_MAINNET, base_url=base_url)
    return client.retrieve_inscription(transaction_id)


def wait_for_inscription_confirmation(
    client: InscriberClient,
    transaction_id: str,
    max_attempts: int = CONFIRMATION_MAX_ATTEMPTS,
    interval: float = CONFIRMATION_INTERVAL,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> JobStatus:
    """
    Wait for an inscription using the client's connection mode.

    Raises:
        ValueError: If client is None
    """
    if client is None:
        raise ValueError("client is required")
    options = InscriptionOptions(
        connection_mode=client.connection_mode,
        wait_max_attempts=max_attempts,
        wait_interval=interval,
        progress_callback=progress_callback,
        cancel_event=cancel_event,
    )
    return _wait_with_connection(client, transaction_id, options)
