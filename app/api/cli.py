"""
Terminal adapter for the extraction and chat pipeline.

Architectural role:
- Runs the same extraction cascade and chat coordinator as the HTTP adapter on
  local files, for operators and manual verification.
- Delegates all work to `app.api.multimodal.file_input_manager` and
  `app.core.engine.process_chat`.

Request lifecycle:
1. Parse arguments (files, optional prompt, mode, content-type override).
2. Inline each local file as a `data:` URL reference so no upload directory is
   required.
3. Print one line per extraction record.
4. Unless `--extract-only`, run the chat coordinator and print the answer and
   stage timings.

Error handling strategy:
- Unreadable input paths abort before any pipeline work.
- Pipeline errors are printed without traceback and set exit status 1.
"""

from dotenv import load_dotenv

load_dotenv()

import argparse
import asyncio
import base64
import logging
import mimetypes
import os
import sys

from app.api.multimodal.attachments import AttachmentReference
from app.api.multimodal.file_input_manager import extract_batch
from app.core.engine import process_chat
from app.core.errors import PipelineError
from app.core.identity import StaticAccountDirectory
from app.image.service import register_default_providers
from app.llm.modes import Mode


CLI_USER_ID = "cli"


def build_reference(path: str, content_type: str | None = None) -> AttachmentReference:
    """Inline a local file as a data-URL attachment reference."""
    with open(path, "rb") as f:
        data = f.read()

    declared = content_type or mimetypes.guess_type(path)[0] or "application/octet-stream"
    encoded = base64.b64encode(data).decode("ascii")

    return AttachmentReference(
        display_name=os.path.basename(path),
        location=f"data:{declared};base64,{encoded}",
        content_type=declared,
        size_bytes=len(data),
    )


def _describe(item) -> str:
    status = "ok" if item.success else "failed"
    method = ""
    if item.metadata is not None and item.metadata.processing_method:
        method = f" [{item.metadata.processing_method}]"
    detail = item.error_reason if not item.success else f"{len(item.text)} chars"
    return f"- {item.source_file.display_name}: {status}{method} ({detail})"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract attachment text and chat about it.")
    parser.add_argument("files", nargs="*", help="Local files to attach")
    parser.add_argument("--prompt", default="Summarize the attached files.", help="User message")
    parser.add_argument("--mode", default=Mode.STANDARD.value, choices=[m.value for m in Mode])
    parser.add_argument("--type", dest="content_type", help="Override the content type of every file")
    parser.add_argument("--extract-only", action="store_true", help="Skip the generation call")
    parser.add_argument("--verbose", action="store_true", help="Enable info logging")
    return parser


async def run(args) -> int:
    references = [build_reference(path, args.content_type) for path in args.files]

    if args.extract_only:
        extracted = await extract_batch(references)
        for item in extracted:
            print(_describe(item))
            if item.text:
                print(item.text)
                print("-" * 60)
        return 0

    try:
        result = await process_chat(
            [{"role": "user", "content": args.prompt}],
            attachments=references,
            mode=args.mode,
            user_id=CLI_USER_ID,
            directory=StaticAccountDirectory(),
        )
    except PipelineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for item in result.extracted:
        print(_describe(item))

    print("\nResponse:\n")
    print(result.content)
    print("\n" + "-" * 60)
    timings = result.performance
    print(
        f"files={result.files_processed} usable={result.successful_extractions} "
        f"total={timings.total_time:.0f}ms model={timings.openai_time:.0f}ms"
    )
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    for path in args.files:
        if not os.path.isfile(path):
            print(f"File not found: {path}", file=sys.stderr)
            return 2

    register_default_providers()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
