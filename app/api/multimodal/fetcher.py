"""Byte retrieval for attachment locations.

Supported location formats:
    - `http://` / `https://` URLs (remote blob storage), fetched with `httpx`.
    - `data:` URLs, decoded inline.
    - `file://` URLs with an empty or `localhost` host.
    - Plain paths such as `/uploads/report.pdf` or `uploads/report.pdf`, resolved
      beneath the configured upload base directory.

Validation behavior:
    - Local paths must stay inside `upload_base_dir` after canonicalization.
    - Payloads larger than `max_file_size_bytes` are rejected, for data URLs
      before decoding.

Error handling strategy:
    Every failure is raised as `FetchError` with a short message; the extraction
    orchestrator turns it into a failed record.
"""

import asyncio
import base64
import binascii
import logging
import os
from urllib.parse import unquote, urlparse

import httpx

from app.core.errors import FetchError
from app.core.settings import DEFAULT_SETTINGS, PipelineSettings


logger = logging.getLogger(__name__)


def is_remote_location(location: str) -> bool:
    """Return whether `location` can be fetched independently over HTTP(S)."""
    return location.startswith(("http://", "https://"))


async def fetch_bytes(location: str, settings: PipelineSettings | None = None) -> bytes:
    """Load the full byte content of an attachment location.

    Args:
        location: Remote URL, data URL, file URL, or upload-relative path.
        settings: Size/timeout/base-directory configuration.

    Returns:
        Raw file bytes.

    Raises:
        FetchError: On HTTP errors, transport errors, missing files, paths
            outside the upload directory, or oversized payloads.
    """
    settings = settings or DEFAULT_SETTINGS

    if not location:
        raise FetchError("Missing file location")

    if is_remote_location(location):
        data = await _fetch_remote(location, settings)
    elif location.startswith("data:"):
        data = _decode_data_url(location, settings)
    else:
        path = resolve_local_path(location, settings)
        if os.path.getsize(path) > settings.max_file_size_bytes:
            raise FetchError("File exceeds max size limit")
        data = await asyncio.to_thread(_read_file, path)

    if len(data) > settings.max_file_size_bytes:
        raise FetchError("File exceeds max size limit")

    return data


# ============================================================
# REMOTE
# ============================================================

async def _fetch_remote(url: str, settings: PipelineSettings) -> bytes:
    logger.info("Fetching attachment from remote URL: %s", url)
    limit = settings.max_file_size_bytes
    try:
        async with httpx.AsyncClient(
            timeout=settings.fetch_timeout_seconds,
            follow_redirects=True,
        ) as client:
            async with client.stream("GET", url) as response:
                if response.is_error:
                    raise FetchError(
                        f"Failed to fetch file: {response.status_code} {response.reason_phrase}"
                    )

                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > limit:
                    raise FetchError("File exceeds max size limit")

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > limit:
                        raise FetchError("File exceeds max size limit")
                    chunks.append(chunk)
    except httpx.TimeoutException as exc:
        raise FetchError("Failed to fetch file: request timed out") from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Failed to fetch file: {exc.__class__.__name__}") from exc

    return b"".join(chunks)


# ============================================================
# DATA URL
# ============================================================

def _decode_data_url(data_url: str, settings: PipelineSettings) -> bytes:
    """Decode a base64 data URL after an approximate size pre-check."""
    try:
        header, encoded = data_url.split(",", 1)
    except ValueError as exc:
        raise FetchError("Malformed data URL") from exc

    if ";base64" not in header:
        return unquote(encoded).encode("utf-8")

    padding = 0
    if encoded.endswith("=="):
        padding = 2
    elif encoded.endswith("="):
        padding = 1
    approx_decoded_size = (len(encoded) * 3) // 4 - padding
    if approx_decoded_size > settings.max_file_size_bytes:
        raise FetchError("File exceeds max size limit")

    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise FetchError("Malformed data URL") from exc


# ============================================================
# LOCAL
# ============================================================

def resolve_local_path(location: str, settings: PipelineSettings | None = None) -> str:
    """Map a local-style location onto a canonical path inside the upload dir.

    Edge cases:
        - Leading slashes are treated as upload-root relative, not filesystem
          absolute.
        - A leading segment equal to the upload directory name is dropped, so
          `/uploads/a.pdf` and `a.pdf` name the same file.
        - `file://` URLs with a remote host are rejected.
    """
    settings = settings or DEFAULT_SETTINGS
    base_dir = os.path.realpath(settings.upload_base_dir)

    candidate = location
    if location.startswith("file://"):
        parsed = urlparse(location)
        if parsed.netloc not in ("", "localhost"):
            raise FetchError("Remote file URLs are not supported")
        candidate = unquote(parsed.path or "")

    relative = candidate.lstrip("/\\")
    # `/uploads/x.pdf` names the upload root itself, not a nested `uploads/` dir.
    head, sep, rest = relative.replace("\\", "/").partition("/")
    if sep and head == os.path.basename(base_dir):
        relative = rest
    if not relative:
        raise FetchError("Invalid file path")

    normalized = os.path.realpath(os.path.join(base_dir, relative))

    if not _is_inside(normalized, base_dir):
        raise FetchError("Access denied: path is outside allowed directory")

    if not os.path.isfile(normalized):
        raise FetchError(f"File not found: {candidate}")

    return normalized


def _is_inside(path: str, base_dir: str) -> bool:
    try:
        return os.path.commonpath([path, base_dir]) == base_dir
    except ValueError:
        return False


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()
