from app.api.multimodal.attachments import ExtractedContent, ExtractionMetadata
from app.llm.modes import Mode
from app.llm.provider_config import SYSTEM_MESSAGE
from app.prompting.prompt_builder import (
    FILE_CONTEXT_HEADER,
    MAX_FILE_CONTEXT_CHARS,
    MODE_DIRECTIVES,
    TRUNCATION_MARKER,
    ConversationTurn,
    build_context,
    build_file_context,
    truncate_file_text,
)


HISTORY = [
    ConversationTurn(role="user", text="What does the report say?"),
    ConversationTurn(role="assistant", text="Which report?"),
    ConversationTurn(role="user", text="The attached one."),
]


def _record(make_reference, name="report.pdf", text="Revenue grew 12%.", **metadata):
    return ExtractedContent.succeeded(
        make_reference(name=name, content_type="application/pdf"),
        text,
        ExtractionMetadata(kind="pdf", **metadata),
    )


def test_standard_mode_has_single_system_entry_and_verbatim_history():
    messages = build_context(HISTORY, [], Mode.STANDARD)

    assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[0].text == SYSTEM_MESSAGE
    assert [m.text for m in messages[1:]] == [turn.text for turn in HISTORY]


def test_research_mode_adds_directive_after_base_instructions():
    messages = build_context(HISTORY, None, "research")

    assert messages[0].text == SYSTEM_MESSAGE
    assert messages[1].role == "system"
    assert messages[1].text == MODE_DIRECTIVES[Mode.RESEARCH]
    assert sum(1 for m in messages if m.text == SYSTEM_MESSAGE) == 1


def test_unknown_mode_behaves_like_standard():
    assert build_context(HISTORY, [], "turbo") == build_context(HISTORY, [], Mode.STANDARD)


def test_file_context_precedes_history(make_reference):
    extracted = [_record(make_reference, word_count=3, page_count=1)]

    messages = build_context(HISTORY, extracted, Mode.ANALYSIS)

    assert [m.role for m in messages[:3]] == ["system", "system", "user"]
    file_message = messages[2].text
    assert file_message.startswith(FILE_CONTEXT_HEADER)
    assert "=== FILE: report.pdf (PDF, 3 words, 1 pages) ===\nRevenue grew 12%." in file_message
    assert [m.text for m in messages[3:]] == [turn.text for turn in HISTORY]


def test_no_file_message_without_usable_text(make_reference):
    extracted = [
        ExtractedContent.failed(make_reference(name="clip.mp4", content_type="video/mp4"), "Unsupported file type: video/mp4"),
        ExtractedContent.succeeded(make_reference(name="empty.txt"), "", ExtractionMetadata(kind="txt")),
    ]

    assert build_file_context(extracted) is None
    assert len(build_context(HISTORY, extracted)) == 1 + len(HISTORY)


def test_only_usable_files_are_listed(make_reference):
    extracted = [
        _record(make_reference, name="a.pdf", text="Alpha"),
        ExtractedContent.failed(make_reference(name="b.pdf"), "Failed to extract text from PDF"),
        _record(make_reference, name="c.pdf", text="Gamma"),
    ]

    text = build_file_context(extracted)

    assert "a.pdf" in text and "c.pdf" in text
    assert "b.pdf" not in text
    assert text.index("Alpha") < text.index("Gamma")


def test_long_file_text_is_truncated_with_marker(make_reference):
    long_text = "x" * (MAX_FILE_CONTEXT_CHARS + 500)

    truncated = truncate_file_text(long_text)
    text = build_file_context([_record(make_reference, text=long_text)])

    assert truncated == "x" * MAX_FILE_CONTEXT_CHARS + TRUNCATION_MARKER
    assert text.endswith(TRUNCATION_MARKER)
    assert "x" * (MAX_FILE_CONTEXT_CHARS + 1) not in text


def test_short_text_is_not_truncated():
    assert truncate_file_text("short") == "short"
