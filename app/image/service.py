"""Capability-provider registry for image understanding.

Role in pipeline:
    - Declares the narrow `VisionProvider` / `OcrProvider` interfaces consumed by
      `app.image.resolver`.
    - Holds the process-wide provider instances, registered once at startup by
      the API adapters via `register_default_providers()`.

Availability model:
    A missing provider (never registered, or `is_available()` is False) is a
    normal condition meaning "skip this stage". It is never an import error.

Determinism:
    Registration is deterministic for a fixed environment; provider outputs are
    externally non-deterministic.
"""

import logging
from typing import Protocol

from app.image.client import OpenAIVisionClient
from app.image.ocr import OcrResult, TesseractOcrClient


logger = logging.getLogger(__name__)


class VisionProvider(Protocol):
    """Describes an image referenced by URL or data URL."""

    def is_available(self) -> bool:
        ...

    def describe(self, image_url: str, prompt: str) -> str:
        ...


class OcrProvider(Protocol):
    """Recognizes printed text in raw image bytes."""

    def is_available(self) -> bool:
        ...

    def recognize(self, image_bytes: bytes) -> OcrResult:
        ...


_VISION_PROVIDER: VisionProvider | None = None
_OCR_PROVIDER: OcrProvider | None = None


def set_vision_provider(provider: VisionProvider | None) -> None:
    """Override or clear the vision provider used by the image resolver."""
    global _VISION_PROVIDER
    _VISION_PROVIDER = provider


def set_ocr_provider(provider: OcrProvider | None) -> None:
    """Override or clear the OCR provider used by the image resolver."""
    global _OCR_PROVIDER
    _OCR_PROVIDER = provider


def get_vision_provider() -> VisionProvider | None:
    return _VISION_PROVIDER


def get_ocr_provider() -> OcrProvider | None:
    return _OCR_PROVIDER


def register_default_providers() -> None:
    """Register the built-in vision and OCR providers.

    Both are always registered; their `is_available()` checks decide at
    resolution time whether a stage runs.
    """
    vision = OpenAIVisionClient()
    ocr = TesseractOcrClient()
    set_vision_provider(vision)
    set_ocr_provider(ocr)
    logger.info(
        "Image providers registered: vision=%s (available=%s), ocr=tesseract",
        vision.provider,
        vision.is_available(),
    )
