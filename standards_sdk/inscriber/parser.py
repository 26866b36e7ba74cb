"""
Normalization of job payloads from the REST API and the event stream.

Both parsers are total: unknown, missing or wrongly typed fields are
dropped and the corresponding JobStatus field keeps its default.
"""
import logging
import math
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .codec import normalize_transaction_bytes
from .exceptions import TransactionBytesError
from .models import JobStatus

logger = logging.getLogger(__name__)


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class _JobPayload(BaseModel):
    """Lenient schema for retrieve-inscription / start-inscription bodies"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    status: Optional[str] = None
    completed: Optional[bool] = None
    tx_id: Optional[str] = None
    topic_id: Optional[str] = None
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    error: Optional[str] = None
    total_cost: Optional[float] = Field(None, alias="totalCost")
    total_messages: Optional[float] = Field(None, alias="totalMessages")
    transaction_bytes: Any = Field(None, alias="transactionBytes")

    @field_validator("id", "status", "tx_id", "topic_id", "transaction_id", "error", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> Optional[str]:
        return _string_or_none(value)

    @field_validator("total_cost", "total_messages", mode="before")
    @classmethod
    def _drop_non_numbers(cls, value: Any) -> Optional[float]:
        return _number_or_none(value)

    @field_validator("completed", mode="before")
    @classmethod
    def _strict_bool(cls, value: Any) -> Optional[bool]:
        return value if isinstance(value, bool) else None


class _EventPayload(BaseModel):
    """Lenient schema for inscription-progress / inscription-complete events"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    status: Optional[str] = None
    tx_id: Optional[str] = None
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    topic_id_camel: Optional[str] = Field(None, alias="topicId")
    topic_id: Optional[str] = None
    error: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        return parse_string(value) or None


def parse_string(value: Any) -> str:
    """Render scalar event values as strings; anything else is empty."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return ""


def parse_float(value: Any) -> float:
    """Parse a progress percentage; unparseable values are 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def parse_job(raw: Any) -> JobStatus:
    """
    Map a REST job payload onto a JobStatus.

    Args:
        raw: Decoded JSON body (anything other than a mapping yields an empty status)

    Returns:
        JobStatus; `completed` is set when the payload flag is true or the
        status is "completed"
    """
    if not isinstance(raw, Mapping):
        return JobStatus()

    payload = _JobPayload.model_validate(dict(raw))

    try:
        transaction_bytes = normalize_transaction_bytes(payload.transaction_bytes)
    except TransactionBytesError as e:
        logger.debug(f"Ignoring malformed transactionBytes in job payload: {e}")
        transaction_bytes = ""

    status = payload.status or ""
    return JobStatus(
        id=payload.id or "",
        status=status,
        completed=bool(payload.completed) or status.lower() == "completed",
        transaction_id=payload.transaction_id or "",
        tx_id=payload.tx_id or "",
        topic_id=payload.topic_id or "",
        error=payload.error or "",
        total_cost=int(payload.total_cost or 0),
        total_messages=int(payload.total_messages or 0),
        transaction_bytes=transaction_bytes,
    )


def parse_event(payload: Any) -> JobStatus:
    """
    Map an event stream payload onto a JobStatus.

    topicId and topic_id are both accepted; the first non-empty one wins.
    """
    if not isinstance(payload, Mapping):
        return JobStatus()

    event = _EventPayload.model_validate(dict(payload))
    status = event.status or ""
    topic_id = (event.topic_id_camel or "").strip() or (event.topic_id or "").strip()
    return JobStatus(
        id=event.id or "",
        status=status,
        completed=status.lower() == "completed",
        tx_id=event.tx_id or "",
        transaction_id=event.transaction_id or "",
        topic_id=topic_id,
        error=event.error or "",
    )


def normalize_transaction_id(tx_id: str) -> str:
    """
    Convert "0.0.123@1700000000.000000001" to mirror form "0.0.123-1700000000-000000001".

    IDs without exactly one "@" are returned trimmed but otherwise unchanged.
    """
    trimmed = (tx_id or "").strip()
    if "@" not in trimmed:
        return trimmed
    parts = trimmed.split("@")
    if len(parts) != 2:
        return trimmed
    return parts[0] + "-" + parts[1].replace(".", "-")
