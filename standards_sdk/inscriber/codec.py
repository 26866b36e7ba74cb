"""
Transaction byte encodings.

The inscription API returns unexecuted transactions either as a base64
string or as a serialized Node.js Buffer: {"type": "Buffer", "data": [...]}.
"""
import base64
import binascii
from typing import Any, Dict, List

from .exceptions import TransactionBytesError

BUFFER_TYPE = "Buffer"


def decode_transaction_bytes(value: Any) -> bytes:
    """
    Decode a transactionBytes field to raw bytes.

    Args:
        value: base64 string or {"type": "Buffer", "data": [int, ...]}

    Returns:
        Raw transaction bytes

    Raises:
        TransactionBytesError: If the value is not valid base64 or a Buffer object
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return base64.b64decode(value.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise TransactionBytesError(f"transaction bytes must be base64: {e}") from e
    if isinstance(value, dict):
        return _buffer_to_bytes(value)
    raise TransactionBytesError(f"unsupported transactionBytes type {type(value).__name__}")


def normalize_transaction_bytes(value: Any) -> str:
    """
    Normalize a transactionBytes field to a base64 string.

    None maps to an empty string; strings pass through untouched.

    Raises:
        TransactionBytesError: For Buffer objects with a bad shape or other types
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return encode_transaction_bytes(_buffer_to_bytes(value))
    raise TransactionBytesError(f"unsupported transactionBytes type {type(value).__name__}")


def encode_transaction_bytes(raw: bytes) -> str:
    """Encode raw transaction bytes as standard base64."""
    return base64.b64encode(raw).decode("ascii")


def to_buffer_object(raw: bytes) -> Dict[str, Any]:
    """Encode raw transaction bytes in the Node.js Buffer JSON shape."""
    return {"type": BUFFER_TYPE, "data": list(raw)}


def _buffer_to_bytes(value: Dict[str, Any]) -> bytes:
    type_value = value.get("type")
    if type_value != BUFFER_TYPE:
        raise TransactionBytesError(f"unsupported transactionBytes object type {type_value!r}")

    items = value.get("data")
    if not isinstance(items, list):
        raise TransactionBytesError("transactionBytes Buffer object missing data array")

    out: List[int] = []
    for item in items:
        # bool is an int subclass; JSON true/false is not a byte
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise TransactionBytesError(
                f"transactionBytes data includes non-numeric value {type(item).__name__}"
            )
        if isinstance(item, float) and not item.is_integer():
            raise TransactionBytesError(f"transactionBytes data includes non-integer value {item}")
        number = int(item)
        if number < 0 or number > 255:
            raise TransactionBytesError(f"transactionBytes data value {number} out of byte range")
        out.append(number)
    return bytes(out)
