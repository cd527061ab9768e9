import docx
import pytest

from app.api.multimodal import document_extractors
from app.api.multimodal.document_extractors import (
    LEGACY_DOC_EMPTY_MESSAGE,
    LEGACY_DOC_FAILURE_MESSAGE,
    extract_docx,
    extract_legacy_doc,
    extract_pdf,
    extract_text,
)
from app.core.errors import ParseError
from conftest import run


DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _write_docx(path, paragraphs):
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    document.save(str(path))


def test_pdf_text_and_metadata(monkeypatch, upload_dir, settings, make_reference):
    (upload_dir / "report.pdf").write_bytes(b"%PDF-1.4 stub")
    monkeypatch.setattr(
        document_extractors,
        "_parse_pdf",
        lambda data: ("  Quarterly revenue grew.\nCosts fell.  ", 2),
    )

    record = run(extract_pdf(make_reference("report.pdf", "/report.pdf", "application/pdf"), settings))

    assert record.success is True
    assert record.text == "Quarterly revenue grew.\nCosts fell."
    assert record.metadata.kind == "pdf"
    assert record.metadata.page_count == 2
    assert record.metadata.word_count == 5


def test_pdf_parse_failure_raises(upload_dir, settings, make_reference):
    (upload_dir / "broken.pdf").write_bytes(b"this is not a pdf")

    with pytest.raises(ParseError, match="Failed to extract text from PDF"):
        run(extract_pdf(make_reference("broken.pdf", "/broken.pdf", "application/pdf"), settings))


def test_pdf_without_text_raises(monkeypatch, upload_dir, settings, make_reference):
    (upload_dir / "scan.pdf").write_bytes(b"%PDF-1.4 stub")
    monkeypatch.setattr(document_extractors, "_parse_pdf", lambda data: ("\n\n", 3))

    with pytest.raises(ParseError, match="No extractable text"):
        run(extract_pdf(make_reference("scan.pdf", "/scan.pdf", "application/pdf"), settings))


def test_docx_paragraphs_are_joined(upload_dir, settings, make_reference):
    _write_docx(upload_dir / "memo.docx", ["First paragraph.", "Second paragraph."])

    record = run(extract_docx(make_reference("memo.docx", "/memo.docx", DOCX_TYPE), settings))

    assert record.text == "First paragraph.\nSecond paragraph."
    assert record.metadata.kind == "docx"
    assert record.metadata.word_count == 4


def test_empty_docx_raises(upload_dir, settings, make_reference):
    _write_docx(upload_dir / "empty.docx", [])

    with pytest.raises(ParseError):
        run(extract_docx(make_reference("empty.docx", "/empty.docx", DOCX_TYPE), settings))


def test_legacy_doc_binary_degrades_to_advisory(upload_dir, settings, make_reference):
    (upload_dir / "old.doc").write_bytes(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1binary word")

    record = run(extract_legacy_doc(make_reference("old.doc", "/old.doc", "application/msword"), settings))

    assert record.success is True
    assert record.text == LEGACY_DOC_FAILURE_MESSAGE
    assert record.metadata.kind == "doc"
    assert record.metadata.error


def test_legacy_doc_label_on_docx_content_extracts_text(upload_dir, settings, make_reference):
    _write_docx(upload_dir / "mislabelled.doc", ["Actually a DOCX."])

    record = run(
        extract_legacy_doc(make_reference("mislabelled.doc", "/mislabelled.doc", "application/msword"), settings)
    )

    assert record.text == "Actually a DOCX."


def test_legacy_doc_without_text_uses_empty_advisory(upload_dir, settings, make_reference):
    _write_docx(upload_dir / "blank.doc", [])

    record = run(extract_legacy_doc(make_reference("blank.doc", "/blank.doc", "application/msword"), settings))

    assert record.text == LEGACY_DOC_EMPTY_MESSAGE


def test_plain_text_replaces_invalid_bytes(upload_dir, settings, make_reference):
    (upload_dir / "notes.txt").write_bytes(b"caf\xe9 notes\n")

    record = run(extract_text(make_reference(), settings))

    assert record.text == "caf\ufffd notes"
    assert record.metadata.word_count == 2


def test_empty_text_file_is_a_success(upload_dir, settings, make_reference):
    (upload_dir / "notes.txt").write_bytes(b"")

    record = run(extract_text(make_reference(), settings))

    assert record.success is True
    assert record.text == ""
    assert record.has_usable_text is False
