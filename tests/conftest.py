import asyncio
import time

import pytest

from app.api.multimodal.attachments import AttachmentReference
from app.core import identity
from app.core.settings import PipelineSettings
from app.image import service as image_service
from app.image.ocr import OcrResult
from app.llm import service as llm_service
from app.llm.client import GenerationResult


class FakeVision:
    def __init__(self, description="A red bicycle leaning against a wall.", available=True, delay=0.0, error=None):
        self.description = description
        self.available = available
        self.delay = delay
        self.error = error
        self.calls = []

    def is_available(self):
        return self.available

    def describe(self, image_url, prompt):
        self.calls.append(image_url)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.description


class FakeOcr:
    def __init__(self, text="", confidence=0.0, available=True, delay=0.0):
        self.text = text
        self.confidence = confidence
        self.available = available
        self.delay = delay
        self.calls = 0

    def is_available(self):
        return self.available

    def recognize(self, image_bytes):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return OcrResult(text=self.text, confidence=self.confidence)


class FakeGenerator:
    def __init__(self, text="Here is a summary.", configured=True, tokens_used=42, error=None):
        self.text = text
        self.configured = configured
        self.tokens_used = tokens_used
        self.error = error
        self.calls = []

    def is_configured(self):
        return self.configured

    async def generate(self, messages, config):
        self.calls.append((messages, config))
        if self.error is not None:
            raise self.error
        return GenerationResult(text=self.text, tokens_used=self.tokens_used, model=config.model)


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def settings(upload_dir):
    return PipelineSettings(
        upload_base_dir=str(upload_dir),
        max_file_size_bytes=1024 * 1024,
        extraction_concurrency=4,
        fetch_timeout_seconds=1,
        file_timeout_seconds=2,
        batch_timeout_seconds=3,
        vision_timeout_seconds=0.5,
        ocr_timeout_seconds=0.5,
        identity_cache_ttl_seconds=60,
        allowed_user_ids=(),
    )


@pytest.fixture
def make_reference():
    def _make(name="notes.txt", location="/notes.txt", content_type="text/plain", size=None):
        return AttachmentReference(
            display_name=name,
            location=location,
            content_type=content_type,
            size_bytes=size,
        )

    return _make


@pytest.fixture(autouse=True)
def isolated_registries():
    """Keep process-wide providers and caches from leaking between tests."""
    previous_generator = llm_service.get_generation_provider()
    previous_directory = identity.get_account_directory()

    image_service.set_vision_provider(None)
    image_service.set_ocr_provider(None)
    identity.set_account_directory(identity.StaticAccountDirectory())

    yield

    image_service.set_vision_provider(None)
    image_service.set_ocr_provider(None)
    llm_service.set_generation_provider(previous_generator)
    identity.set_account_directory(previous_directory)


def run(coro):
    return asyncio.run(coro)
