"""Format-specific text extractors for document attachments.

Processing lifecycle (every extractor):
1. Fetch attachment bytes via `fetcher.fetch_bytes`.
2. Parse the format in a worker thread (parsers are blocking).
3. Return a successful `ExtractedContent` with trimmed text and metadata.

Error handling strategy:
- Fetch failures propagate as `FetchError`.
- Parser failures raise `ParseError`, except for legacy DOC files, which degrade
  to a successful record carrying a fixed advisory message.

Determinism considerations:
- Parser output may vary across pdfplumber/python-docx versions.
"""

import asyncio
import io
import logging

import docx
import pdfplumber

from app.api.multimodal.attachments import (
    AttachmentKind,
    AttachmentReference,
    ExtractedContent,
    ExtractionMetadata,
    count_words,
)
from app.api.multimodal.fetcher import fetch_bytes
from app.core.errors import ParseError
from app.core.settings import PipelineSettings


logger = logging.getLogger(__name__)

LEGACY_DOC_EMPTY_MESSAGE = (
    "Could not extract text from legacy DOC format. Please convert to DOCX."
)
LEGACY_DOC_FAILURE_MESSAGE = (
    "Unable to extract text from legacy DOC format. Please convert to DOCX or PDF."
)


# ============================================================
# PDF
# ============================================================

def _parse_pdf(data: bytes) -> tuple[str, int]:
    """Extract text from each PDF page and concatenate with newlines."""
    text = []

    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            text.append(page.extract_text() or "")
        page_count = len(pdf.pages)

    return "\n".join(text), page_count


async def extract_pdf(
    reference: AttachmentReference,
    settings: PipelineSettings | None = None,
) -> ExtractedContent:
    data = await fetch_bytes(reference.location, settings)

    try:
        raw_text, page_count = await asyncio.to_thread(_parse_pdf, data)
    except Exception as exc:
        logger.warning("PDF parsing failed for %s: %s", reference.display_name, exc)
        raise ParseError("Failed to extract text from PDF") from exc

    text = raw_text.strip()
    if not text:
        raise ParseError("No extractable text found in PDF")

    return ExtractedContent.succeeded(
        reference,
        text,
        ExtractionMetadata(
            kind=AttachmentKind.PDF.value,
            page_count=page_count,
            word_count=count_words(text),
        ),
    )


# ============================================================
# DOCX
# ============================================================

def _parse_docx(data: bytes) -> str:
    """Extract paragraph text from a DOCX document."""
    document = docx.Document(io.BytesIO(data))
    return "\n".join(p.text for p in document.paragraphs)


async def extract_docx(
    reference: AttachmentReference,
    settings: PipelineSettings | None = None,
) -> ExtractedContent:
    data = await fetch_bytes(reference.location, settings)

    try:
        raw_text = await asyncio.to_thread(_parse_docx, data)
    except Exception as exc:
        logger.warning("DOCX parsing failed for %s: %s", reference.display_name, exc)
        raise ParseError("Failed to extract text from DOCX") from exc

    text = raw_text.strip()
    if not text:
        raise ParseError("No extractable text found in DOCX")

    return ExtractedContent.succeeded(
        reference,
        text,
        ExtractionMetadata(kind=AttachmentKind.DOCX.value, word_count=count_words(text)),
    )


# ============================================================
# LEGACY DOC
# ============================================================

async def extract_legacy_doc(
    reference: AttachmentReference,
    settings: PipelineSettings | None = None,
) -> ExtractedContent:
    """Best-effort legacy DOC extraction.

    Many `application/msword` uploads are really DOCX files with a legacy MIME
    label, so the DOCX parser is tried first. Genuine binary DOC files fail that
    parse; the result is then a successful record with an advisory asking for a
    converted upload, so the rest of the batch is unaffected.
    """
    data = await fetch_bytes(reference.location, settings)

    try:
        raw_text = await asyncio.to_thread(_parse_docx, data)
    except Exception as exc:
        logger.warning("Legacy DOC parsing failed for %s: %s", reference.display_name, exc)
        return ExtractedContent.succeeded(
            reference,
            LEGACY_DOC_FAILURE_MESSAGE,
            ExtractionMetadata(kind=AttachmentKind.LEGACY_DOC.value, error=str(exc) or exc.__class__.__name__),
        )

    text = raw_text.strip()
    if not text:
        return ExtractedContent.succeeded(
            reference,
            LEGACY_DOC_EMPTY_MESSAGE,
            ExtractionMetadata(kind=AttachmentKind.LEGACY_DOC.value),
        )

    return ExtractedContent.succeeded(
        reference,
        text,
        ExtractionMetadata(kind=AttachmentKind.LEGACY_DOC.value, word_count=count_words(text)),
    )


# ============================================================
# TEXT
# ============================================================

async def extract_text(
    reference: AttachmentReference,
    settings: PipelineSettings | None = None,
) -> ExtractedContent:
    """Decode UTF-8 text; undecodable bytes are replaced, empty files allowed."""
    data = await fetch_bytes(reference.location, settings)
    text = data.decode("utf-8", errors="replace").strip()

    return ExtractedContent.succeeded(
        reference,
        text,
        ExtractionMetadata(kind=AttachmentKind.TEXT.value, word_count=count_words(text)),
    )
