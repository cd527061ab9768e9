"""Attachment and extraction-record data contracts.

Architectural role:
    Defines the immutable attachment reference supplied by callers, the closed set
    of attachment kinds understood by the dispatcher, and the per-file extraction
    record consumed by the context assembler and the HTTP adapter.

Invariants (enforced in `ExtractedContent.__post_init__`):
    - A failed record has empty text and a non-empty `error_reason`.
    - A successful record has non-empty text, except for the image case where
      OCR found no readable text (`processing_method == "ocr_no_text_found"`).

Wire format:
    `to_payload()` methods produce the camelCase JSON shapes used by
    `/api/extract-content`. Absent optional values are omitted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


OCR_NO_TEXT_FOUND = "ocr_no_text_found"


class AttachmentKind(str, Enum):
    """Closed set of attachment variants the dispatcher can route."""

    PDF = "pdf"
    DOCX = "docx"
    LEGACY_DOC = "doc"
    TEXT = "txt"
    IMAGE = "image"


@dataclass(frozen=True)
class AttachmentReference:
    """Caller-supplied pointer to an uploaded file. Never mutated."""

    display_name: str
    location: str
    content_type: str
    size_bytes: int | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "AttachmentReference":
        """Build a reference from the `{name, url, type, size}` wire shape."""
        size = payload.get("size")
        return cls(
            display_name=str(payload.get("name") or ""),
            location=str(payload.get("url") or ""),
            content_type=str(payload.get("type") or ""),
            size_bytes=int(size) if size is not None else None,
        )


@dataclass(frozen=True)
class ExtractionMetadata:
    """Structural facts gathered while extracting one attachment."""

    kind: str
    page_count: int | None = None
    word_count: int | None = None
    confidence: int | None = None
    processing_method: str | None = None
    original_size_bytes: int | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        fields = {
            "kind": self.kind,
            "pageCount": self.page_count,
            "wordCount": self.word_count,
            "confidence": self.confidence,
            "processingMethod": self.processing_method,
            "originalSizeBytes": self.original_size_bytes,
            "error": self.error,
        }
        return {key: value for key, value in fields.items() if value is not None}


@dataclass(frozen=True)
class ExtractedContent:
    """Outcome of extracting one attachment."""

    source_file: AttachmentReference
    text: str
    success: bool
    error_reason: str | None = None
    metadata: ExtractionMetadata | None = None

    def __post_init__(self):
        if not self.success:
            if self.text:
                raise ValueError("Failed extraction must not carry text")
            if not self.error_reason:
                raise ValueError("Failed extraction requires an error reason")
            return

        if not self.text.strip():
            method = self.metadata.processing_method if self.metadata else None
            kind = self.metadata.kind if self.metadata else None
            # Empty plain-text files are a legitimate successful extraction.
            if method != OCR_NO_TEXT_FOUND and kind != AttachmentKind.TEXT.value:
                raise ValueError("Successful extraction requires text")

    @classmethod
    def succeeded(
        cls,
        source_file: AttachmentReference,
        text: str,
        metadata: ExtractionMetadata | None = None,
    ) -> "ExtractedContent":
        return cls(source_file=source_file, text=text, success=True, metadata=metadata)

    @classmethod
    def failed(
        cls,
        source_file: AttachmentReference,
        error_reason: str,
    ) -> "ExtractedContent":
        return cls(source_file=source_file, text="", success=False, error_reason=error_reason)

    @property
    def has_usable_text(self) -> bool:
        """Whether the record should feed the generation context."""
        return self.success and bool(self.text.strip())

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fileName": self.source_file.display_name,
            "fileType": self.source_file.content_type,
            "fileSize": self.source_file.size_bytes,
            "content": self.text,
            "success": self.success,
        }
        if self.metadata is not None:
            payload["metadata"] = self.metadata.to_payload()
        if self.error_reason:
            payload["error"] = self.error_reason
        return payload


def count_words(text: str) -> int:
    """Whitespace-split word count; empty text counts zero."""
    return len(text.split())
