"""
Data models for the inscriber module.
"""
import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConnectionMode(str, Enum):
    """How completion is tracked after a transaction is executed"""
    HTTP = "http"
    WEBSOCKET = "websocket"
    AUTO = "auto"


class InscriptionMode(str, Enum):
    FILE = "file"
    UPLOAD = "upload"
    HASHINAL = "hashinal"
    HASHINAL_COLLECTION = "hashinal-collection"
    BULK_FILES = "bulk-files"


class RegistrationStage(str, Enum):
    PREPARING = "preparing"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    VERIFYING = "verifying"
    COMPLETED = "completed"


@dataclass
class RegistrationProgressData:
    """Progress notification delivered to a progress callback"""
    stage: RegistrationStage
    message: str
    progress_percent: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)


ProgressCallback = Callable[[RegistrationProgressData], None]


class JobStatus(BaseModel):
    """
    Normalized inscription job state.

    Built fresh from every REST response or stream event; never mutated.
    """
    model_config = ConfigDict(frozen=True)

    id: str = ""
    status: str = ""
    completed: bool = False
    transaction_id: str = ""
    tx_id: str = ""
    topic_id: str = ""
    error: str = ""
    total_cost: int = 0
    total_messages: int = 0
    transaction_bytes: str = Field(default="", repr=False)

    @property
    def is_failed(self) -> bool:
        return self.status.lower() == "failed"

    @property
    def is_completed(self) -> bool:
        return self.completed or self.status.lower() == "completed"


@dataclass(frozen=True)
class WaitOptions:
    """Polling budget shared by the polling waiter and the stream fallback"""
    max_attempts: int = 60
    interval: float = 2.0


class WebSocketServer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = ""
    status: str = ""


class WebSocketServersResponse(BaseModel):
    """Response of GET /inscriptions/websocket-servers"""
    model_config = ConfigDict(extra="ignore")

    servers: List[WebSocketServer] = Field(default_factory=list)
    recommended: Optional[str] = None


class FileInput(BaseModel):
    """File reference sent to start-inscription"""
    type: str
    url: Optional[str] = None
    base64: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


class StartInscriptionRequest(BaseModel):
    """Body fields for POST /inscriptions/start-inscription"""
    file: FileInput
    holder_id: str
    mode: InscriptionMode = InscriptionMode.FILE
    network: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    creator: Optional[str] = None
    description: Optional[str] = None
    file_standard: Optional[str] = None
    chunk_size: Optional[int] = None
    only_json_collection: bool = False
    json_file_url: Optional[str] = None
    metadata_object: Optional[Dict[str, Any]] = None


class InscriptionResult(BaseModel):
    job_id: str
    transaction_id: str
    topic_id: str = ""
    status: str = ""
    completed: bool = False


class QuoteTransfer(BaseModel):
    to: str
    amount: str
    description: str


class QuoteResult(BaseModel):
    total_cost_hbar: str
    valid_until: str
    transfers: List[QuoteTransfer] = Field(default_factory=list)


class InscriptionCostSummary(BaseModel):
    total_cost_hbar: str
    transfers: List[QuoteTransfer] = Field(default_factory=list)
    valid_until: Optional[str] = None


class InscriptionResponse(BaseModel):
    """Result of the high-level inscribe / generate_quote calls"""
    confirmed: bool = False
    quote: bool = False
    result: Union[InscriptionResult, QuoteResult]
    inscription: Optional[JobStatus] = None
    cost_summary: Optional[InscriptionCostSummary] = None


class InscriptionInputType(str, Enum):
    URL = "url"
    FILE = "file"
    BUFFER = "buffer"


@dataclass
class InscriptionInput:
    """Content to inscribe: a URL, a local file path or an in-memory buffer"""
    type: InscriptionInputType
    url: str = ""
    path: str = ""
    buffer: bytes = field(default=b"", repr=False)
    file_name: str = ""
    mime_type: str = ""


@dataclass
class InscriptionOptions:
    """
    Options for the high-level inscribe and quote helpers.

    `connection_mode` wins over the legacy `websocket` flag; with neither
    set the event stream is used.
    """
    mode: InscriptionMode = InscriptionMode.FILE
    websocket: Optional[bool] = None
    connection_mode: Optional[ConnectionMode] = None
    wait_for_confirmation: bool = True
    wait_max_attempts: int = 450
    wait_interval: float = 4.0
    api_key: str = field(default="", repr=False)
    base_url: Optional[str] = None
    tags: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None
    json_file_url: str = ""
    file_standard: str = ""
    chunk_size: Optional[int] = None
    network: str = ""
    quote_only: bool = False
    progress_callback: Optional[ProgressCallback] = None
    cancel_event: Optional[threading.Event] = None


class BrokerQuoteRequest(BaseModel):
    """Body for the registry broker quote and job endpoints"""
    model_config = ConfigDict(populate_by_name=True)

    input_type: str = Field(alias="inputType")
    mode: InscriptionMode = InscriptionMode.FILE
    url: Optional[str] = None
    base64: Optional[str] = Field(None, repr=False)
    file_name: Optional[str] = Field(None, alias="fileName")
    mime_type: Optional[str] = Field(None, alias="mimeType")
    metadata: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    file_standard: Optional[str] = Field(None, alias="fileStandard")
    chunk_size: Optional[int] = Field(None, alias="chunkSize")

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _lenient_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _lenient_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0.0
    return float(value)


def _lenient_int(value: Any) -> int:
    return int(_lenient_float(value))


class BrokerQuoteResponse(BaseModel):
    """Response of POST /inscribe/content/quote"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    quote_id: str = Field("", alias="quoteId")
    content_hash: str = Field("", alias="contentHash")
    size_bytes: int = Field(0, alias="sizeBytes")
    total_cost_hbar: float = Field(0.0, alias="totalCostHbar")
    credits: float = 0.0
    usd_cents: int = Field(0, alias="usdCents")
    expires_at: str = Field("", alias="expiresAt")
    mode: str = ""

    @field_validator("quote_id", "content_hash", "expires_at", "mode", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _lenient_str(value)

    @field_validator("total_cost_hbar", "credits", mode="before")
    @classmethod
    def _floats(cls, value: Any) -> float:
        return _lenient_float(value)

    @field_validator("size_bytes", "usd_cents", mode="before")
    @classmethod
    def _ints(cls, value: Any) -> int:
        return _lenient_int(value)


class BrokerJobResponse(BaseModel):
    """Registry broker job as returned by create and get"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    job_id: str = Field("", alias="jobId")
    id: str = ""
    status: str = ""
    hrl: str = ""
    topic_id: str = Field("", alias="topicId")
    network: str = ""
    credits: float = 0.0
    quote_credits: float = Field(0.0, alias="quoteCredits")
    usd_cents: int = Field(0, alias="usdCents")
    quote_usd_cents: int = Field(0, alias="quoteUsdCents")
    size_bytes: int = Field(0, alias="sizeBytes")
    error: str = ""
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")

    @field_validator(
        "job_id", "id", "status", "hrl", "topic_id", "network", "error", "created_at", "updated_at",
        mode="before",
    )
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _lenient_str(value)

    @field_validator("credits", "quote_credits", mode="before")
    @classmethod
    def _floats(cls, value: Any) -> float:
        return _lenient_float(value)

    @field_validator("usd_cents", "quote_usd_cents", "size_bytes", mode="before")
    @classmethod
    def _ints(cls, value: Any) -> int:
        return _lenient_int(value)

    @property
    def resolved_id(self) -> str:
        return self.job_id.strip() or self.id.strip()


class BrokerInscriptionResult(BaseModel):
    confirmed: bool = False
    job_id: str = ""
    status: str = ""
    hrl: str = ""
    topic_id: str = ""
    network: str = ""
    error: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_job(cls, job: BrokerJobResponse, job_id: str, confirmed: bool) -> "BrokerInscriptionResult":
        return cls(
            confirmed=confirmed,
            job_id=job_id,
            status=job.status,
            hrl=job.hrl,
            topic_id=job.topic_id,
            network=job.network,
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


@dataclass
class RegistryBrokerOptions:
    """
    Options for inscribing through the registry broker.

    `ledger_api_key` wins over `api_key`. Timeouts and intervals are seconds.
    An unset mode means "file" for plain inscriptions and "bulk-files" for skills.
    """
    base_url: str = ""
    ledger_api_key: str = field(default="", repr=False)
    api_key: str = field(default="", repr=False)
    mode: Optional[InscriptionMode] = None
    metadata: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    file_standard: str = ""
    chunk_size: Optional[int] = None
    wait_for_confirmation: bool = True
    wait_timeout: float = 120.0
    poll_interval: float = 2.0
    cancel_event: Optional[threading.Event] = None
