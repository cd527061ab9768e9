"""
HTTP API adapter for attachment-aware chat.

Architectural role:
- Expose the extraction and chat contracts over JSON.
- Resolve the session user and enforce adapter-level input validation.
- Delegate extraction to `app.api.multimodal.file_input_manager` and chat to
  `app.core.engine.process_chat`.
- Map pipeline errors to HTTP status codes.

Endpoint responsibilities:
- `GET /health`: liveness probe.
- `POST /api/extract-content`: extract text from a batch of attachments.
- `POST /api/chat`: generate an answer from history, attachments, and mode.

Session handling:
- The user id comes from the `X-User-Id` header, falling back to the `userId`
  cookie. Session validation itself belongs to the fronting auth layer.

Error handling strategy:
- `PipelineError` subclasses map to their `status_code` with `{"error": message}`.
- Unexpected failures return HTTP 500 with a generic message; `details` is only
  included when `DEBUG == "true"`.

Side effects:
- Registers default vision/OCR providers at startup.
- Loads environment variables at import time via `load_dotenv()`.
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.api.multimodal.attachments import AttachmentReference
from app.api.multimodal.file_input_manager import extract_batch
from app.core import engine
from app.core.errors import PipelineError, ValidationError
from app.core.settings import DEBUG
from app.image.service import register_default_providers


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    register_default_providers()
    yield


app = FastAPI(title="Attachment Chat API", lifespan=lifespan)


# ============================================================
# Request Schemas
# ============================================================

class FileReference(BaseModel):
    """Wire shape of one uploaded attachment."""
    name: str = ""
    url: str = ""
    type: str = ""
    size: int | None = None

    def to_reference(self) -> AttachmentReference:
        return AttachmentReference.from_payload(self.model_dump())


class ExtractRequest(BaseModel):
    files: list[FileReference] = Field(default_factory=list)


class ChatRequest(BaseModel):
    """
    Chat payload.

    Note:
    - `messages` stays loosely typed so that malformed entries surface as a
      pipeline `ValidationError` (HTTP 400) with a concise message.
    - `mode` accepts any JSON value; unknown or non-string values resolve to
      standard mode.
    """
    messages: list | None = None
    files: list[FileReference] = Field(default_factory=list)
    mode: Any = None


# ============================================================
# Helpers
# ============================================================

def get_session_user(request: Request) -> str | None:
    """Return the session user id from header or cookie."""
    user_id = request.headers.get("x-user-id") or request.cookies.get("userId")
    if user_id:
        user_id = user_id.strip()
    return user_id or None


def _error_response(status_code: int, message: str, exc: Exception | None = None) -> JSONResponse:
    content = {"error": message}
    if DEBUG and exc is not None:
        content["details"] = str(exc)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(PipelineError)
async def _pipeline_error_handler(request: Request, exc: PipelineError):
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    return _error_response(400, "Invalid request body", exc)


# ============================================================
# Health
# ============================================================

@app.get("/health")
def health_check():
    return {"status": "ok"}


# ============================================================
# Extraction
# ============================================================

@app.post("/api/extract-content")
async def extract_content(payload: ExtractRequest, request: Request):
    """
    Extract text from every referenced attachment.

    Input validation behavior:
    - Missing session -> HTTP 401.
    - Empty `files` -> HTTP 400.

    Response formatting:
    - `{success, filesProcessed, extractedContents: [...]}` with one record per
      input file, in input order.
    """
    await engine.authenticate(get_session_user(request))

    if not payload.files:
        raise ValidationError("No files provided")

    references = [item.to_reference() for item in payload.files]
    logger.info("Received %d files to process", len(references))

    try:
        extracted = await extract_batch(references)
    except Exception as exc:
        logger.exception("File extraction request failed")
        return _error_response(500, "Failed to process files", exc)

    return {
        "success": True,
        "filesProcessed": len(extracted),
        "extractedContents": [item.to_payload() for item in extracted],
    }


# ============================================================
# Chat
# ============================================================

@app.post("/api/chat")
async def chat(payload: ChatRequest, request: Request):
    """
    Generate a chat answer grounded in the attached files.

    Input validation behavior:
    - Empty/invalid `messages` -> HTTP 400 (no generation call).
    - Missing session or unknown account -> HTTP 401.
    - Missing generation credential or upstream failure -> HTTP 500 with message.
    """
    user_id = get_session_user(request)

    if DEBUG:
        logger.debug("Incoming chat payload: %s", payload.model_dump())

    try:
        result = await engine.process_chat(
            payload.messages,
            attachments=[item.to_reference() for item in payload.files],
            mode=payload.mode,
            user_id=user_id,
        )
    except PipelineError:
        raise
    except Exception as exc:
        logger.exception("Chat request failed")
        return _error_response(500, "Internal server error", exc)

    return result.to_payload()
