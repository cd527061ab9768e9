import base64

from app.api.multimodal.attachments import OCR_NO_TEXT_FOUND
from app.image import service
from app.image.resolver import (
    BASIC_INFO_ONLY,
    OCR_NO_TEXT_MESSAGE,
    OCR_SUCCESS,
    VISION_API_SUCCESS,
    ImageContentResolver,
    extract_image,
    guess_image_mime,
)
from conftest import FakeOcr, FakeVision, run


PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-payload"


def _image(make_reference, name="photo.png", location="/photo.png", size=2048):
    return make_reference(name=name, location=location, content_type="image/png", size=size)


def test_vision_success_passes_remote_url_directly(settings, make_reference):
    vision = FakeVision()
    ocr = FakeOcr(text="should not run")
    reference = _image(make_reference, location="https://blob.example/photo.png")

    record = run(ImageContentResolver(vision, ocr, settings).resolve(reference))

    assert record.success is True
    assert record.text == "A red bicycle leaning against a wall."
    assert record.metadata.processing_method == VISION_API_SUCCESS
    assert record.metadata.original_size_bytes == 2048
    assert vision.calls == ["https://blob.example/photo.png"]
    assert ocr.calls == 0


def test_vision_inlines_local_images_as_data_urls(upload_dir, settings, make_reference):
    (upload_dir / "photo.png").write_bytes(PNG_BYTES)
    vision = FakeVision()

    run(ImageContentResolver(vision, None, settings).resolve(_image(make_reference)))

    expected = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
    assert vision.calls == [expected]


def test_no_vision_credential_and_empty_ocr_reports_no_text(upload_dir, settings, make_reference):
    (upload_dir / "photo.png").write_bytes(PNG_BYTES)
    vision = FakeVision(available=False)
    ocr = FakeOcr(text="   ", confidence=12.4)

    record = run(ImageContentResolver(vision, ocr, settings).resolve(_image(make_reference)))

    assert record.success is True
    assert record.text == OCR_NO_TEXT_MESSAGE
    assert record.metadata.processing_method == OCR_NO_TEXT_FOUND
    assert record.metadata.confidence == 12
    assert vision.calls == []


def test_vision_failure_falls_through_to_ocr(upload_dir, settings, make_reference):
    (upload_dir / "photo.png").write_bytes(PNG_BYTES)
    vision = FakeVision(error=RuntimeError("Vision request failed with status 500"))
    ocr = FakeOcr(text="INVOICE 42", confidence=87.6)

    record = run(ImageContentResolver(vision, ocr, settings).resolve(_image(make_reference)))

    assert record.text == "Text extracted from image:\n\nINVOICE 42"
    assert record.metadata.processing_method == OCR_SUCCESS
    assert record.metadata.confidence == 88
    assert record.metadata.word_count == 2


def test_vision_timeout_falls_through_to_ocr(upload_dir, settings, make_reference):
    (upload_dir / "photo.png").write_bytes(PNG_BYTES)
    vision = FakeVision(delay=1.0)
    ocr = FakeOcr(text="STOP", confidence=90)

    record = run(ImageContentResolver(vision, ocr, settings).resolve(_image(make_reference)))

    assert record.metadata.processing_method == OCR_SUCCESS


def test_ocr_timeout_falls_through_to_basic_info(upload_dir, settings, make_reference):
    (upload_dir / "photo.png").write_bytes(PNG_BYTES)
    ocr = FakeOcr(text="late", delay=1.0)

    record = run(ImageContentResolver(None, ocr, settings).resolve(_image(make_reference)))

    assert record.metadata.processing_method == BASIC_INFO_ONLY


def test_basic_info_when_no_providers(settings, make_reference):
    record = run(ImageContentResolver(None, None, settings).resolve(_image(make_reference)))

    assert record.success is True
    assert record.metadata.processing_method == BASIC_INFO_ONLY
    assert '"photo.png"' in record.text
    assert "PNG format, 2KB" in record.text


def test_fetch_failure_is_fetched_once_and_falls_back(settings, make_reference):
    vision = FakeVision()
    ocr = FakeOcr(text="unused")

    record = run(ImageContentResolver(vision, ocr, settings).resolve(_image(make_reference, location="/gone.png")))

    assert record.metadata.processing_method == BASIC_INFO_ONLY
    assert vision.calls == []
    assert ocr.calls == 0


def test_extract_image_uses_registered_providers(settings, make_reference):
    service.set_vision_provider(FakeVision(description="A chart of monthly sales."))

    record = run(extract_image(_image(make_reference, location="https://blob.example/chart.png"), settings))

    assert record.text == "A chart of monthly sales."


def test_guess_image_mime_prefers_extension(make_reference):
    assert guess_image_mime(make_reference(name="x.JPG", content_type="image/png")) == "image/jpeg"
    assert guess_image_mime(make_reference(name="x", content_type="image/webp")) == "image/webp"
