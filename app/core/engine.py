"""Core request orchestration for attachment-aware chat.

Architectural role:
    Provides the chat pipeline used by the HTTP and CLI adapters to turn one chat
    request (history + attachments + mode) into a generated answer with
    diagnostics.

Control-flow model:
    1. Validate conversation turns.
    2. Fail fast when the generation credential is missing.
    3. Concurrently resolve the account (through the identity cache) and extract
       attachment text.
    4. Assemble the ordered generation context and resolve mode parameters.
    5. Invoke the generation capability and package the result.

Interaction surface:
    - Identity: `app.core.identity.resolve_account`.
    - Extraction: `app.api.multimodal.file_input_manager.extract_batch`.
    - Prompting: `app.prompting.prompt_builder.build_context`.
    - LLM: `app.llm.service` generation provider + `app.llm.modes`.

Error handling strategy:
    Request-level failures raise typed `PipelineError`s for the adapter to map.
    Attachment-level failures never raise here: they are already folded into
    extraction records, and an extraction crash degrades the whole batch.

Side effects:
    - Populates the identity cache.
    - Emits stage timing and outcome logs.

Determinism:
    Validation, ordering, and context assembly are deterministic. Extraction
    timing, provider output, and latency figures are not.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from app.api.multimodal.attachments import AttachmentReference, ExtractedContent
from app.api.multimodal.file_input_manager import degraded_batch, extract_batch
from app.core.errors import (
    AuthenticationError,
    ConfigurationError,
    PipelineError,
    UpstreamGenerationError,
    ValidationError,
)
from app.core.identity import Account, AccountDirectory, IdentityCache, resolve_account
from app.core.settings import PipelineSettings
from app.llm.modes import parse_mode, resolve_mode_config
from app.llm.service import GenerationProvider, get_generation_provider
from app.prompting.prompt_builder import ConversationTurn, build_context


logger = logging.getLogger(__name__)

HISTORY_ROLES = ("user", "assistant")


@dataclass(frozen=True)
class StageTimings:
    """Stage latencies in milliseconds."""

    total_time: float
    auth_time: float
    message_time: float
    openai_time: float

    def to_payload(self) -> dict[str, float]:
        return {
            "totalTime": round(self.total_time, 1),
            "authTime": round(self.auth_time, 1),
            "messageTime": round(self.message_time, 1),
            "openaiTime": round(self.openai_time, 1),
        }


@dataclass(frozen=True)
class ChatResult:
    content: str
    files_processed: int
    successful_extractions: int
    mode: str
    performance: StageTimings
    tokens_used: int | None = None
    extracted: tuple[ExtractedContent, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "content": self.content,
            "filesProcessed": self.files_processed,
            "successfulExtractions": self.successful_extractions,
            "mode": self.mode,
            "performance": self.performance.to_payload(),
        }
        if self.tokens_used is not None:
            payload["tokensUsed"] = self.tokens_used
        return payload


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def parse_turns(messages: Any) -> list[ConversationTurn]:
    """Validate raw `{role, content}` messages into conversation turns.

    Raises:
        ValidationError: Missing/empty list, non-object entries, roles other
            than user/assistant, or non-string content.
    """
    if not isinstance(messages, list) or not messages:
        raise ValidationError("Messages array is required")

    turns = []
    for position, message in enumerate(messages):
        if isinstance(message, ConversationTurn):
            role, content, timestamp = message.role, message.text, message.timestamp
        elif isinstance(message, dict):
            role = message.get("role")
            content = message.get("content")
            timestamp = message.get("timestamp")
        else:
            raise ValidationError(f"Invalid message at position {position}")

        if role not in HISTORY_ROLES:
            raise ValidationError(f"Invalid role at position {position}")
        if not isinstance(content, str):
            raise ValidationError(f"Invalid content at position {position}")

        turns.append(ConversationTurn(role=role, text=content, timestamp=timestamp))

    return turns


async def authenticate(
    user_id: str | None,
    directory: AccountDirectory | None = None,
    cache: IdentityCache | None = None,
) -> Account:
    """Resolve the session user to an account or raise `AuthenticationError`."""
    if not user_id:
        raise AuthenticationError("Unauthorized")

    account = await resolve_account(user_id, directory=directory, cache=cache)
    if account is None:
        raise AuthenticationError("Account not found")
    return account


async def _extract_or_degrade(
    references: list[AttachmentReference],
    settings: PipelineSettings | None,
) -> list[ExtractedContent]:
    """Run batch extraction; any crash degrades the batch instead of the request."""
    if not references:
        return []
    try:
        return await extract_batch(references, settings)
    except Exception:
        logger.exception("File content extraction failed; continuing without file context")
        return degraded_batch(references)


async def process_chat(
    messages: Any,
    attachments: list[AttachmentReference] | None = None,
    mode: Any = None,
    user_id: str | None = None,
    *,
    generator: GenerationProvider | None = None,
    directory: AccountDirectory | None = None,
    identity_cache: IdentityCache | None = None,
    settings: PipelineSettings | None = None,
) -> ChatResult:
    """Run one chat request end to end.

    Args:
        messages: Raw conversation turns (`[{role, content}]`).
        attachments: Attachment references for this turn.
        mode: Request mode; absent/unknown resolves to standard.
        user_id: Session user id supplied by the adapter.
        generator: Generation capability override (defaults to registry).
        directory: Account directory override.
        identity_cache: Identity cache override.
        settings: Pipeline settings override.

    Returns:
        `ChatResult` with content, extraction counters, and stage timings.

    Raises:
        ValidationError: Empty or malformed messages (before any other work).
        ConfigurationError: Generation credential missing (before extraction).
        AuthenticationError: Missing session or unknown account.
        UpstreamGenerationError: Generation failed or returned empty text.

    Important behavior:
        - Extraction runs concurrently with the account lookup and is cancelled
          if authentication fails.
        - `successful_extractions` counts records with non-empty usable text.
    """
    started = time.perf_counter()

    turns = parse_turns(messages)
    references = list(attachments or [])
    generator = generator or get_generation_provider()
    resolved_mode = parse_mode(mode)

    if not generator.is_configured():
        logger.error("Generation credential missing; refusing chat request")
        raise ConfigurationError("Configuration error: missing generation API key")

    logger.info("Chat request: messages=%d files=%d mode=%s", len(turns), len(references), resolved_mode.value)

    message_started = time.perf_counter()
    extraction_task = asyncio.create_task(_extract_or_degrade(references, settings))

    auth_started = time.perf_counter()
    try:
        await authenticate(user_id, directory=directory, cache=identity_cache)
    except BaseException:
        extraction_task.cancel()
        raise
    auth_time = _elapsed_ms(auth_started)

    extracted = await extraction_task
    successful = sum(1 for item in extracted if item.has_usable_text)
    if references:
        logger.info("Extracted usable content from %d/%d files", successful, len(references))

    context = build_context(turns, extracted, resolved_mode)
    config = resolve_mode_config(resolved_mode)
    message_time = _elapsed_ms(message_started)

    logger.info("Sending %d messages to model=%s", len(context), config.model)

    generation_started = time.perf_counter()
    try:
        result = await generator.generate(context, config)
    except PipelineError:
        raise
    except Exception as exc:
        logger.exception("LLM generation failed")
        raise UpstreamGenerationError(str(exc) or "Generation failed") from exc
    openai_time = _elapsed_ms(generation_started)

    content = (result.text or "").strip() if result is not None else ""
    if not content:
        raise UpstreamGenerationError("Empty response from AI")

    timings = StageTimings(
        total_time=_elapsed_ms(started),
        auth_time=auth_time,
        message_time=message_time,
        openai_time=openai_time,
    )
    logger.info(
        "Chat response generated: chars=%d total=%.0fms openai=%.0fms",
        len(content),
        timings.total_time,
        timings.openai_time,
    )

    return ChatResult(
        content=content,
        files_processed=len(extracted),
        successful_extractions=successful,
        mode=resolved_mode.value,
        performance=timings,
        tokens_used=result.tokens_used,
        extracted=tuple(extracted),
    )
