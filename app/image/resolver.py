"""Image content resolution via a three-stage fallback cascade.

Stage order:
    1. Vision description (only when a vision provider is registered and has a
       credential). Remote images are passed by URL; local images are inlined as
       base64 data URLs.
    2. OCR (only when an OCR provider is registered and its engine responds).
       Empty OCR output still completes the cascade with an advisory message.
    3. Metadata-only description built from name, extension, and size. Always
       succeeds.

Timeout model:
    Each of the first two stages runs under its own `asyncio.wait_for` budget. A
    timeout is handled exactly like any other stage failure: log and fall
    through. Nothing raised inside a stage escapes `resolve()`.

Fetch behavior:
    Image bytes are loaded lazily and at most once per resolution; the result
    (or the fetch error) is shared by the vision and OCR stages.
"""

import asyncio
import base64
import logging
import os
from typing import Awaitable, Callable

from app.api.multimodal.attachments import (
    OCR_NO_TEXT_FOUND,
    AttachmentKind,
    AttachmentReference,
    ExtractedContent,
    ExtractionMetadata,
    count_words,
)
from app.api.multimodal.fetcher import fetch_bytes, is_remote_location
from app.core.settings import DEFAULT_SETTINGS, PipelineSettings
from app.image import service
from app.image.service import OcrProvider, VisionProvider


logger = logging.getLogger(__name__)

VISION_API_SUCCESS = "vision_api_success"
OCR_SUCCESS = "ocr_success"
BASIC_INFO_ONLY = "basic_info_only"

VISION_PROMPT = (
    "Please analyze this image in detail. Describe what you see, including objects, "
    "text (if any), colors, context, and any relevant information. If this appears "
    "to be a medical, technical, or specialized item, please provide relevant details "
    "about its purpose and characteristics."
)

OCR_NO_TEXT_MESSAGE = (
    "This image does not appear to contain readable text. The image has been uploaded "
    "successfully, but no text content was detected through OCR analysis."
)

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


class _ImageSource:
    """Lazy, fetch-once access to the bytes behind an attachment."""

    def __init__(self, loader: Callable[[], Awaitable[bytes]]):
        self._loader = loader
        self._data: bytes | None = None
        self._error: Exception | None = None

    async def data(self) -> bytes:
        if self._data is not None:
            return self._data
        if self._error is not None:
            raise self._error
        try:
            self._data = await self._loader()
        except Exception as exc:
            self._error = exc
            raise
        return self._data


class ImageContentResolver:
    """Vision -> OCR -> basic-info cascade for one image attachment.

    Args:
        vision: Vision provider, or `None` to skip the vision stage.
        ocr: OCR provider, or `None` to skip the OCR stage.
        settings: Stage timeouts and fetch configuration.
    """

    def __init__(
        self,
        vision: VisionProvider | None = None,
        ocr: OcrProvider | None = None,
        settings: PipelineSettings | None = None,
    ):
        self.vision = vision
        self.ocr = ocr
        self.settings = settings or DEFAULT_SETTINGS

    async def resolve(self, reference: AttachmentReference) -> ExtractedContent:
        """Return extracted content for `reference`; never raises."""
        source = _ImageSource(lambda: fetch_bytes(reference.location, self.settings))

        if self.vision is not None and self.vision.is_available():
            result = await self._run_stage(
                "vision",
                reference,
                self._attempt_vision(reference, source),
                self.settings.vision_timeout_seconds,
            )
            if result is not None:
                return result
        else:
            logger.info("Vision stage skipped for %s: no vision credential", reference.display_name)

        if self.ocr is not None and self.ocr.is_available():
            result = await self._run_stage(
                "ocr",
                reference,
                self._attempt_ocr(reference, source),
                self.settings.ocr_timeout_seconds,
            )
            if result is not None:
                return result
        else:
            logger.info("OCR stage skipped for %s: no OCR engine", reference.display_name)

        logger.info("Using basic image info fallback for %s", reference.display_name)
        return basic_image_description(reference)

    async def _run_stage(self, name, reference, attempt, timeout):
        try:
            return await asyncio.wait_for(attempt, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Image %s stage timed out after %.1fs for %s",
                name,
                timeout,
                reference.display_name,
            )
        except Exception as exc:
            logger.warning("Image %s stage failed for %s: %s", name, reference.display_name, exc)
        return None

    async def _attempt_vision(self, reference, source) -> ExtractedContent:
        if is_remote_location(reference.location):
            image_url = reference.location
        else:
            data = await source.data()
            encoded = base64.b64encode(data).decode("ascii")
            image_url = f"data:{guess_image_mime(reference)};base64,{encoded}"

        description = await asyncio.to_thread(self.vision.describe, image_url, VISION_PROMPT)
        description = (description or "").strip()
        if not description:
            raise RuntimeError("Empty response from Vision API")

        return ExtractedContent.succeeded(
            reference,
            description,
            ExtractionMetadata(
                kind=AttachmentKind.IMAGE.value,
                word_count=count_words(description),
                processing_method=VISION_API_SUCCESS,
                original_size_bytes=reference.size_bytes,
            ),
        )

    async def _attempt_ocr(self, reference, source) -> ExtractedContent:
        data = await source.data()
        result = await asyncio.to_thread(self.ocr.recognize, data)
        extracted = (result.text or "").strip()
        confidence = round(result.confidence)

        if not extracted:
            return ExtractedContent.succeeded(
                reference,
                OCR_NO_TEXT_MESSAGE,
                ExtractionMetadata(
                    kind=AttachmentKind.IMAGE.value,
                    confidence=confidence,
                    processing_method=OCR_NO_TEXT_FOUND,
                    original_size_bytes=reference.size_bytes,
                ),
            )

        return ExtractedContent.succeeded(
            reference,
            f"Text extracted from image:\n\n{extracted}",
            ExtractionMetadata(
                kind=AttachmentKind.IMAGE.value,
                word_count=count_words(extracted),
                confidence=confidence,
                processing_method=OCR_SUCCESS,
                original_size_bytes=reference.size_bytes,
            ),
        )


def _file_name(reference: AttachmentReference) -> str:
    if reference.display_name:
        return reference.display_name
    tail = reference.location.split("?", 1)[0].rstrip("/").split("/")[-1]
    return tail or "image"


def guess_image_mime(reference: AttachmentReference) -> str:
    """MIME type for inlined images, from extension then declared type."""
    _, ext = os.path.splitext(_file_name(reference).lower())
    if ext in IMAGE_MIME_TYPES:
        return IMAGE_MIME_TYPES[ext]
    if reference.content_type.startswith("image/"):
        return reference.content_type
    return "image/jpeg"


def basic_image_description(reference: AttachmentReference) -> ExtractedContent:
    """Metadata-only description; the cascade's terminal stage."""
    file_name = _file_name(reference)
    _, ext = os.path.splitext(file_name)
    extension = ext.lstrip(".").upper() or "IMAGE"

    size_part = ""
    if reference.size_bytes:
        size_part = f", {round(reference.size_bytes / 1024)}KB"

    text = (
        f'I can see that you\'ve uploaded an image file named "{file_name}" '
        f"({extension} format{size_part}). While I cannot analyze the visual content "
        "of the image at the moment, I'm ready to help if you can describe what's in "
        "the image or let me know what specific information you're looking for."
    )

    return ExtractedContent.succeeded(
        reference,
        text,
        ExtractionMetadata(
            kind=AttachmentKind.IMAGE.value,
            processing_method=BASIC_INFO_ONLY,
            original_size_bytes=reference.size_bytes,
        ),
    )


async def extract_image(
    reference: AttachmentReference,
    settings: PipelineSettings | None = None,
) -> ExtractedContent:
    """Resolve an image with the process-wide registered providers."""
    resolver = ImageContentResolver(
        vision=service.get_vision_provider(),
        ocr=service.get_ocr_provider(),
        settings=settings,
    )
    return await resolver.resolve(reference)
