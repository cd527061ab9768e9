"""Content-type dispatch to format extractors.

The declared content type is normalized (lower-cased, parameters such as
`; charset=utf-8` dropped) and mapped to one `AttachmentKind`. Each kind has
exactly one extractor, so dispatch is total over the supported set and anything
else fails with `UnsupportedFormatError`.
"""

from typing import Awaitable, Callable

from app.api.multimodal import document_extractors
from app.api.multimodal.attachments import AttachmentKind, AttachmentReference, ExtractedContent
from app.core.errors import UnsupportedFormatError
from app.core.settings import PipelineSettings
from app.image import resolver


Extractor = Callable[[AttachmentReference, PipelineSettings | None], Awaitable[ExtractedContent]]


CONTENT_TYPE_KINDS = {
    "application/pdf": AttachmentKind.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": AttachmentKind.DOCX,
    "application/msword": AttachmentKind.LEGACY_DOC,
    "text/plain": AttachmentKind.TEXT,
    "text/markdown": AttachmentKind.TEXT,
    "text/csv": AttachmentKind.TEXT,
    "image/jpeg": AttachmentKind.IMAGE,
    "image/png": AttachmentKind.IMAGE,
    "image/webp": AttachmentKind.IMAGE,
    "image/gif": AttachmentKind.IMAGE,
}

EXTRACTORS: dict[AttachmentKind, Extractor] = {
    AttachmentKind.PDF: document_extractors.extract_pdf,
    AttachmentKind.DOCX: document_extractors.extract_docx,
    AttachmentKind.LEGACY_DOC: document_extractors.extract_legacy_doc,
    AttachmentKind.TEXT: document_extractors.extract_text,
    AttachmentKind.IMAGE: resolver.extract_image,
}


def normalize_content_type(content_type: str) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def resolve_kind(content_type: str) -> AttachmentKind:
    """Map a declared content type to its attachment kind.

    Raises:
        UnsupportedFormatError: For types without an extractor; the error
            carries the type exactly as declared.
    """
    kind = CONTENT_TYPE_KINDS.get(normalize_content_type(content_type))
    if kind is None:
        raise UnsupportedFormatError(content_type)
    return kind


def get_extractor(kind: AttachmentKind) -> Extractor:
    return EXTRACTORS[kind]


async def extract_content(
    reference: AttachmentReference,
    settings: PipelineSettings | None = None,
) -> ExtractedContent:
    """Route one attachment to its extractor and return the extractor's result."""
    kind = resolve_kind(reference.content_type)
    extractor = get_extractor(kind)
    return await extractor(reference, settings)
