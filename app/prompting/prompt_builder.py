"""Context assembly for the generation call.

This module is intentionally narrow: it only orders and formats already
extracted inputs into the message list sent to the model. Extraction, mode
resolution, and model invocation happen outside this module.

Design constraints:
    - Deterministic construction for identical inputs.
    - Fixed ordering of context components.
    - No hidden side effects (no I/O, no global state mutation).

Context component order:
    1) Base system instructions (`SYSTEM_MESSAGE`), exactly once
    2) Mode directive (system), only for non-standard modes
    3) File-context block (one user message), only when a file has usable text
    4) Conversation history, verbatim and in original order

Context-window safety:
    Each file's text is capped at `MAX_FILE_CONTEXT_CHARS` with an explicit
    truncation marker. History is not trimmed here.
"""

from dataclasses import dataclass

from app.api.multimodal.attachments import ExtractedContent
from app.llm.modes import Mode, parse_mode
from app.llm.provider_config import SYSTEM_MESSAGE


MAX_FILE_CONTEXT_CHARS = 10_000
TRUNCATION_MARKER = "\n\n[Content truncated: file exceeds 10,000 characters]"
FILE_CONTEXT_HEADER = "Here are the uploaded files and their contents:\n\n"


@dataclass(frozen=True)
class ConversationTurn:
    """One externally persisted chat turn. Read only."""

    role: str
    text: str
    timestamp: str | None = None


@dataclass(frozen=True)
class ContextMessage:
    """One entry of the assembled generation context."""

    role: str
    text: str


# =========================================================
# MODE DIRECTIVES
# =========================================================
# Appended as a second system message. `standard` has no directive.

MODE_DIRECTIVES = {
    Mode.RESEARCH: (
        "Research mode is active.\n"
        "Cover the topic broadly and consider multiple perspectives.\n"
        "Prefer the most current information available and say when facts may be outdated.\n"
        "Distinguish established facts from open questions.\n"
    ),
    Mode.ANALYSIS: (
        "Analysis mode is active.\n"
        "Compare the relevant options, data points, or documents side by side.\n"
        "Weigh strengths, weaknesses, and trade-offs explicitly.\n"
        "Finish with a clear, justified recommendation.\n"
    ),
}


def truncate_file_text(text: str) -> str:
    """Cap `text` at `MAX_FILE_CONTEXT_CHARS`, appending the marker when cut."""
    if len(text) <= MAX_FILE_CONTEXT_CHARS:
        return text
    return text[:MAX_FILE_CONTEXT_CHARS] + TRUNCATION_MARKER


def describe_metadata(item: ExtractedContent) -> str:
    """Derive the `(KIND, n words, n pages)` label annotation for one file."""
    metadata = item.metadata
    if metadata is None:
        return ""

    parts = [metadata.kind.upper()]
    if metadata.word_count:
        parts.append(f"{metadata.word_count} words")
    if metadata.page_count:
        parts.append(f"{metadata.page_count} pages")
    return f"({', '.join(parts)})"


def build_file_context(extracted: list[ExtractedContent]) -> str | None:
    """Build the single file-context message text.

    Returns:
        Message text, or `None` when no record has usable text.

    Edge cases:
        - Failed records and records with only whitespace are skipped.
        - Each file's content is truncated independently.
    """
    blocks = []

    for item in extracted:
        if not item.has_usable_text:
            continue

        annotation = describe_metadata(item)
        label = f"=== FILE: {item.source_file.display_name}"
        if annotation:
            label += f" {annotation}"
        label += " ==="

        blocks.append(f"{label}\n{truncate_file_text(item.text.strip())}")

    if not blocks:
        return None

    return FILE_CONTEXT_HEADER + "\n\n".join(blocks)


def build_context(
    history: list[ConversationTurn],
    extracted: list[ExtractedContent] | None = None,
    mode=Mode.STANDARD,
) -> list[ContextMessage]:
    """Assemble the ordered message list for the generation call.

    Args:
        history: Conversation turns supplied by the caller.
        extracted: Extraction records for this request's attachments.
        mode: Request mode (any value; unknown -> standard).

    Returns:
        Messages starting with exactly one base system entry.
    """
    messages = [ContextMessage(role="system", text=SYSTEM_MESSAGE)]

    directive = MODE_DIRECTIVES.get(parse_mode(mode))
    if directive:
        messages.append(ContextMessage(role="system", text=directive))

    file_context = build_file_context(extracted or [])
    if file_context:
        messages.append(ContextMessage(role="user", text=file_context))

    messages.extend(ContextMessage(role=turn.role, text=turn.text) for turn in history)
    return messages
