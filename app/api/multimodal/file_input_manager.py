"""
Batch extraction of attachment text for API adapters and the chat coordinator.

Architectural role:
- Turn a batch of attachment references into one extraction record per file.
- Bound per-file concurrency and per-file / per-batch latency.
- Provide adapter-level preprocessing only (no endpoint registration).

Processing lifecycle:
1. Schedule one task per attachment behind a shared semaphore.
2. Each task dispatches by content type (`dispatcher.extract_content`) under a
   per-file timeout.
3. Per-file failures are converted to failed records carrying a readable reason.
4. Results are collected in input order.
5. The whole batch runs under an outer timeout; when it fires, in-flight tasks
   are cancelled and every file receives the same generic failure record.

Output contract:
- N references in -> N records out, same order, no silent drops.

Error handling strategy:
- Nothing raised by an individual file escapes `extract_batch`.
- Outcome counters are logged for observability only.

Determinism considerations:
- Record order is deterministic; extractor output and timing are not.
"""

import asyncio
import logging
import time

from app.api.multimodal.attachments import AttachmentReference, ExtractedContent
from app.api.multimodal.dispatcher import extract_content
from app.core.errors import ExtractionTimeoutError, PipelineError
from app.core.settings import DEFAULT_SETTINGS, PipelineSettings


logger = logging.getLogger(__name__)

GENERIC_FAILURE_REASON = "Failed to extract content from this file"


# ============================================================
# PUBLIC ENTRYPOINT
# ============================================================

async def extract_batch(
    references: list[AttachmentReference],
    settings: PipelineSettings | None = None,
) -> list[ExtractedContent]:
    """
    Extract every attachment in `references`.

    Adapter-facing responsibilities:
    - Always return exactly `len(references)` records in input order.
    - Never raise for per-file problems; the outer batch deadline degrades the
      whole batch uniformly instead of blocking the request.
    """
    settings = settings or DEFAULT_SETTINGS

    if not references:
        return []

    started = time.perf_counter()
    semaphore = asyncio.Semaphore(max(1, settings.extraction_concurrency))

    tasks = [
        asyncio.create_task(_extract_one(index, reference, semaphore, settings))
        for index, reference in enumerate(references)
    ]

    try:
        results = await asyncio.wait_for(
            asyncio.gather(*tasks),
            timeout=settings.batch_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Extraction batch exceeded %.1fs; degrading %d file(s)",
            settings.batch_timeout_seconds,
            len(references),
        )
        for task in tasks:
            task.cancel()
        return degraded_batch(references)

    succeeded = sum(1 for item in results if item.has_usable_text)
    logger.info(
        "Extraction batch finished: files=%d usable=%d failed=%d elapsed=%.2fs",
        len(results),
        succeeded,
        sum(1 for item in results if not item.success),
        time.perf_counter() - started,
    )
    return list(results)


def degraded_batch(references: list[AttachmentReference]) -> list[ExtractedContent]:
    """Uniform failure records for a batch that could not be extracted."""
    return [ExtractedContent.failed(reference, GENERIC_FAILURE_REASON) for reference in references]


# ============================================================
# PER-FILE
# ============================================================

async def _extract_one(
    index: int,
    reference: AttachmentReference,
    semaphore: asyncio.Semaphore,
    settings: PipelineSettings,
) -> ExtractedContent:
    """Extract one file; convert every failure into a failed record."""
    async with semaphore:
        logger.info(
            "Processing file %d: name=%r type=%r size=%s",
            index + 1,
            reference.display_name,
            reference.content_type,
            reference.size_bytes,
        )
        try:
            return await asyncio.wait_for(
                extract_content(reference, settings),
                timeout=settings.file_timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = ExtractionTimeoutError(
                f"Extraction timed out after {settings.file_timeout_seconds:g} seconds"
            )
            logger.warning("Extraction timed out for %s", reference.display_name)
            return ExtractedContent.failed(reference, str(error))
        except PipelineError as exc:
            logger.warning("Failed to extract content from %s: %s", reference.display_name, exc)
            return ExtractedContent.failed(reference, str(exc))
        except Exception:
            logger.exception("Unexpected extraction failure for %s", reference.display_name)
            return ExtractedContent.failed(
                reference,
                f"Failed to process {reference.content_type or 'file'}",
            )
