"""Error taxonomy shared by the extraction pipeline and the chat coordinator.

Propagation policy:
    - Request-level errors (`ValidationError`, `AuthenticationError`,
      `ConfigurationError`, `UpstreamGenerationError`) abort the request and are
      mapped to HTTP status codes by `app.api.http_api`.
    - Attachment-level errors (`UnsupportedFormatError`, `FetchError`,
      `ParseError`, `ExtractionTimeoutError`) are absorbed by the extraction
      orchestrator and reported inside the affected `ExtractedContent` record.

Message safety:
    `str(error)` is the concise user-facing message. Internal detail belongs in
    logs, never in the message itself.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# =========================================================
# REQUEST-LEVEL
# =========================================================

class ValidationError(PipelineError):
    """Malformed or empty request input."""

    status_code = 400


class AuthenticationError(PipelineError):
    """Missing session or unknown account."""

    status_code = 401


class ConfigurationError(PipelineError):
    """A required credential or setting is missing. Never retried."""

    status_code = 500


class UpstreamGenerationError(PipelineError):
    """The generation capability failed or returned an empty completion."""

    status_code = 500


# =========================================================
# ATTACHMENT-LEVEL
# =========================================================

class UnsupportedFormatError(PipelineError):
    """Declared content type has no registered extractor."""

    def __init__(self, declared_type: str):
        self.declared_type = declared_type
        super().__init__(f"Unsupported file type: {declared_type}")


class FetchError(PipelineError):
    """Attachment bytes could not be retrieved from their location."""


class ParseError(PipelineError):
    """Attachment bytes could not be parsed by the format extractor."""


class ExtractionTimeoutError(PipelineError):
    """A stage, file, or batch exceeded its time budget."""
