"""Runtime settings for attachment extraction and identity caching.

Architectural role:
    Centralizes the numeric and path knobs consumed by the multimodal pipeline
    (`app.api.multimodal`, `app.image.resolver`) and the request coordinator
    (`app.core.engine`).

Configuration model:
    Field defaults are read from environment variables at import time, after
    `load_dotenv()`. Tests and adapters may build their own instance and pass it
    explicitly instead of mutating the environment.

Relevant environment variables:
    - `FILE_INPUT_BASE_DIR`
    - `MAX_FILE_SIZE_MB`
    - `EXTRACTION_CONCURRENCY`
    - `FETCH_TIMEOUT_SECONDS`
    - `FILE_TIMEOUT_SECONDS`
    - `BATCH_TIMEOUT_SECONDS`
    - `VISION_TIMEOUT_SECONDS`
    - `OCR_TIMEOUT_SECONDS`
    - `IDENTITY_CACHE_TTL_SECONDS`
    - `ALLOWED_USER_IDS`

Timeout layout:
    Vision and OCR stage budgets add up to less than the per-file budget, which
    is itself below the batch budget, so the metadata-only image description can
    still complete before an outer deadline fires.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


PROJECT_ROOT = os.path.dirname(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
)


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class PipelineSettings:
    """Extraction, timeout, and identity-cache configuration."""

    upload_base_dir: str = os.path.realpath(
        os.getenv("FILE_INPUT_BASE_DIR", os.path.join(PROJECT_ROOT, "uploads"))
    )
    max_file_size_bytes: int = int(float(os.getenv("MAX_FILE_SIZE_MB", "10")) * 1024 * 1024)
    extraction_concurrency: int = int(os.getenv("EXTRACTION_CONCURRENCY", "4"))
    fetch_timeout_seconds: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "5"))
    file_timeout_seconds: float = float(os.getenv("FILE_TIMEOUT_SECONDS", "8"))
    batch_timeout_seconds: float = float(os.getenv("BATCH_TIMEOUT_SECONDS", "9"))
    vision_timeout_seconds: float = float(os.getenv("VISION_TIMEOUT_SECONDS", "5"))
    ocr_timeout_seconds: float = float(os.getenv("OCR_TIMEOUT_SECONDS", "2.5"))
    identity_cache_ttl_seconds: float = float(os.getenv("IDENTITY_CACHE_TTL_SECONDS", "300"))
    allowed_user_ids: tuple[str, ...] = field(
        default_factory=lambda: _split_csv(os.getenv("ALLOWED_USER_IDS", ""))
    )


# Sensitive request/response diagnostics are opt-in.
DEBUG = os.getenv("DEBUG") == "true"

DEFAULT_SETTINGS = PipelineSettings()
