"""
Inscriber module for the standards SDK.

Starts inscription jobs, executes the transactions they return and tracks
the jobs to completion over the event stream or by polling.

Note: ledger execution and event stream tracking need optional extras:
    pip install standards-sdk[hedera,websocket]
"""
from .broker import (
    RegistryBrokerClient,
    get_registry_broker_quote,
    inscribe_skill_via_registry_broker,
    inscribe_via_registry_broker,
)
from .classifier import ErrorClassifier, default_classifier
from .client import InscriberClient
from .codec import (
    decode_transaction_bytes,
    encode_transaction_bytes,
    normalize_transaction_bytes,
    to_buffer_object,
)
from .exceptions import (
    ErrorCategory,
    EventStreamError,
    ExecutionStrategiesExhaustedError,
    InscriberAPIError,
    InscriberConnectionError,
    InscriberError,
    InscriptionCancelledError,
    InscriptionFailedError,
    InscriptionTimeoutError,
    KeyResolutionError,
    NoEventStreamServersError,
    RebuildError,
    TransactionBytesError,
    TransactionExecutionError,
    WaitBudgetExhaustedError,
)
from .executor import TransactionExecutor
from .high_level import (
    generate_quote,
    inscribe,
    retrieve_inscription,
    wait_for_inscription_confirmation,
)
from .keys import KeyTypeResolver
from .ledger import EXECUTION_ATTEMPTS, ExecutionAttempt, LedgerBackend, RebuildContext, TransactionEnvelope
from .models import (
    BrokerInscriptionResult,
    BrokerQuoteResponse,
    ConnectionMode,
    InscriptionInput,
    InscriptionInputType,
    InscriptionMode,
    InscriptionOptions,
    InscriptionResponse,
    InscriptionResult,
    JobStatus,
    RegistrationProgressData,
    RegistryBrokerOptions,
    StartInscriptionRequest,
    WaitOptions,
)
from .orchestrator import CompletionOrchestrator
from .parser import normalize_transaction_id, parse_event, parse_job
from .polling import PollingWaiter
from .stream import EventSource, EventStreamWaiter, SocketIOEventSource

__all__ = [
    "RegistryBrokerClient", "get_registry_broker_quote",
    "inscribe_skill_via_registry_broker", "inscribe_via_registry_broker",
    "ErrorClassifier", "default_classifier", "InscriberClient",
    "decode_transaction_bytes", "encode_transaction_bytes",
    "normalize_transaction_bytes", "to_buffer_object",
    "ErrorCategory", "EventStreamError", "ExecutionStrategiesExhaustedError",
    "InscriberAPIError", "InscriberConnectionError", "InscriberError",
    "InscriptionCancelledError", "InscriptionFailedError", "InscriptionTimeoutError",
    "KeyResolutionError", "NoEventStreamServersError", "RebuildError",
    "TransactionBytesError", "TransactionExecutionError", "WaitBudgetExhaustedError",
    "TransactionExecutor", "generate_quote", "inscribe", "retrieve_inscription",
    "wait_for_inscription_confirmation", "KeyTypeResolver",
    "EXECUTION_ATTEMPTS", "ExecutionAttempt", "LedgerBackend", "RebuildContext",
    "TransactionEnvelope", "ConnectionMode", "InscriptionInput", "InscriptionInputType",
    "InscriptionMode", "InscriptionOptions", "InscriptionResponse", "InscriptionResult",
    "BrokerInscriptionResult", "BrokerQuoteResponse", "RegistryBrokerOptions",
    "JobStatus", "RegistrationProgressData", "StartInscriptionRequest", "WaitOptions",
    "CompletionOrchestrator", "normalize_transaction_id", "parse_event", "parse_job",
    "PollingWaiter", "EventSource", "EventStreamWaiter", "SocketIOEventSource",
]
