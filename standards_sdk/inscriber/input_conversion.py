"""
Conversion of high-level inscription inputs into start-inscription requests.
"""
import base64
import logging
import os
from typing import Any, Dict, Optional

from .models import (
    FileInput,
    InscriptionInput,
    InscriptionInputType,
    InscriptionMode,
    InscriptionOptions,
    StartInscriptionRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: Dict[str, str] = {
    ".txt": "text/plain",
    ".json": "application/json",
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".ts": "application/typescript",
    ".tsx": "text/tsx",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".wasm": "application/wasm",
}

HASHINAL_REQUIRED_METADATA = ("name", "creator", "description", "type")


def guess_mime_type(file_name: str) -> str:
    _, extension = os.path.splitext((file_name or "").strip())
    return MIME_TYPES.get(extension.lower(), DEFAULT_MIME_TYPE)


def _metadata_string(metadata: Optional[Dict[str, Any]], key: str) -> str:
    if not metadata:
        return ""
    value = metadata.get(key)
    return value.strip() if isinstance(value, str) else ""


def to_file_input(source: InscriptionInput) -> FileInput:
    try:
        input_type = InscriptionInputType(source.type)
    except ValueError:
        raise ValueError("input.type must be one of: url, file, buffer") from None

    if input_type is InscriptionInputType.URL:
        url = source.url.strip()
        if not url:
            raise ValueError("input.url is required for url input type")
        return FileInput(type="url", url=url)

    if input_type is InscriptionInputType.FILE:
        path = source.path.strip()
        if not path:
            raise ValueError("input.path is required for file input type")
        try:
            with open(path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise ValueError(f"failed to read file {path}: {e}") from e
        file_name = os.path.basename(path)
        return FileInput(
            type="base64",
            base64=base64.b64encode(content).decode("ascii"),
            file_name=file_name,
            mime_type=guess_mime_type(file_name),
        )

    if not source.buffer:
        raise ValueError("input.buffer is required for buffer input type")
    file_name = source.file_name.strip()
    if not file_name:
        raise ValueError("input.file_name is required for buffer input type")
    return FileInput(
        type="base64",
        base64=base64.b64encode(source.buffer).decode("ascii"),
        file_name=file_name,
        mime_type=source.mime_type.strip() or guess_mime_type(file_name),
    )


def build_start_inscription_request(
    source: InscriptionInput,
    account_id: str,
    network: str,
    options: InscriptionOptions,
) -> StartInscriptionRequest:
    """
    Build a start-inscription request for the holder account.

    Args:
        source: URL, file or buffer input
        account_id: Holder account
        network: Network the inscription is created on
        options: Mode, metadata, tags and chunking options

    Returns:
        StartInscriptionRequest ready for InscriberClient.start_inscription

    Raises:
        ValueError: If the holder or input is missing, or hashinal metadata is incomplete
    """
    holder_id = (account_id or "").strip()
    if not holder_id:
        raise ValueError("holder ID is required")

    file_input = to_file_input(source)

    mode = InscriptionMode(options.mode or InscriptionMode.FILE)
    metadata = options.metadata
    creator = _metadata_string(metadata, "creator")
    description = _metadata_string(metadata, "description")

    if mode is InscriptionMode.HASHINAL:
        if metadata is None:
            raise ValueError("hashinal mode requires metadataObject")
        for key in HASHINAL_REQUIRED_METADATA:
            if not _metadata_string(metadata, key):
                raise ValueError(f"hashinal mode requires metadataObject.{key}")

    logger.debug(f"Built {mode.value} inscription request for {holder_id} ({file_input.type} input)")
    return StartInscriptionRequest(
        file=file_input,
        holder_id=holder_id,
        mode=mode,
        network=network,
        metadata=metadata,
        tags=options.tags,
        creator=creator or None,
        description=description or None,
        file_standard=options.file_standard.strip() or None,
        chunk_size=options.chunk_size,
        json_file_url=options.json_file_url.strip() or None,
        metadata_object=metadata,
    )
