"""Provider-specific transport client for chat-completion requests.

Architectural role:
    Executes HTTP requests against the configured model provider and normalizes the
    completion into a `GenerationResult`.

Model invocation flow:
    `service.ProviderGenerator.generate` -> `send_chat_request(payload)` -> provider
    branch (OpenAI-compatible / Anthropic / Gemini) -> parsed text + token usage.

Retry behavior:
    No retry loop is implemented. Each HTTP call is attempted once with timeout=120s.

Determinism:
    Provider routing and payload transformation are deterministic for fixed config and
    payload. Output text remains non-deterministic due to remote model inference.

Failure handling model:
    - Missing credentials raise `ConfigurationError`.
    - Transport/HTTP/parse failures raise `UpstreamGenerationError` carrying a
      sanitized, provider-labelled message (never the raw response body).
"""

import logging
from dataclasses import dataclass

import requests

from app.core.errors import ConfigurationError, UpstreamGenerationError
from app.llm.provider_config import (
    ANTHROPIC_URL,
    GEMINI_URL_TEMPLATE,
    PROVIDER,
    PROVIDERS,
    load_key,
)


logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 120


@dataclass(frozen=True)
class GenerationResult:
    """Completion text plus optional usage accounting."""

    text: str
    tokens_used: int | None = None
    model: str | None = None


def _build_sanitized_http_error(provider_name: str, err: requests.exceptions.RequestException) -> str:
    """Build provider-labeled HTTP error text without exposing raw internals.

    Args:
        provider_name: Active provider label.
        err: Request exception instance.

    Returns:
        Sanitized error string with optional status code.
    """
    status_code = None
    if getattr(err, "response", None) is not None:
        status_code = getattr(err.response, "status_code", None)

    label = str(provider_name or "provider").upper()
    if status_code:
        return f"{label} HTTP ERROR ({status_code})"
    return f"{label} HTTP ERROR"


def _sanitize_runtime_error(provider_name: str) -> str:
    """Build generic provider-labeled runtime failure text."""
    label = str(provider_name or "provider").upper()
    return f"{label} REQUEST FAILED"


def is_provider_configured(provider: str = PROVIDER) -> bool:
    """Whether `provider` is known and its credential (if any) is present."""
    config = PROVIDERS.get(provider)
    if not config:
        return False
    if not config["key_file"]:
        return True
    return bool(load_key(config["key_file"]))


def send_chat_request(payload: dict, provider: str = PROVIDER) -> GenerationResult:
    """Send one chat-completion request and parse the completion.

    Args:
        payload: OpenAI-style payload (`model`, `messages`, sampling params).
        provider: Key into `PROVIDERS`.

    Returns:
        `GenerationResult` with trimmed text (possibly empty; the caller decides
        whether empty output is an error).

    Provider handling:
        - OpenAI-compatible providers: direct pass-through payload.
        - Anthropic: system messages merged into `system`, sampling params mapped.
        - Gemini: message remap to `contents` and `generationConfig` mapping.

    Raises:
        ConfigurationError: Unknown provider or missing key.
        UpstreamGenerationError: Transport, HTTP, or response-shape failures.
    """
    config = PROVIDERS.get(provider)
    if not config:
        raise ConfigurationError(f"Configuration error: invalid provider {provider!r}")

    api_key = None
    if config["key_file"]:
        api_key = load_key(config["key_file"])
        if not api_key:
            key_name = f"{provider.upper()}_API_KEY"
            raise ConfigurationError(f"Configuration error: missing {key_name}")

    try:
        if provider == "anthropic":
            return _send_anthropic(payload, api_key)
        if provider == "gemini":
            return _send_gemini(payload, api_key)
        return _send_openai_compatible(config["url"], payload, api_key)

    except requests.exceptions.RequestException as err:
        logger.warning("Generation request failed for provider=%s: %s", provider, err)
        raise UpstreamGenerationError(_build_sanitized_http_error(provider, err)) from err

    except (KeyError, IndexError, TypeError, ValueError) as err:
        logger.warning("Unexpected completion shape from provider=%s: %r", provider, err)
        raise UpstreamGenerationError(_sanitize_runtime_error(provider)) from err


# ============================================================
# PROVIDER BRANCHES
# ============================================================

def _send_openai_compatible(url: str, payload: dict, api_key) -> GenerationResult:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    response = requests.post(url, headers=headers, json=payload, timeout=REQUEST_TIMEOUT_SECONDS)
    response.raise_for_status()
    data = response.json()

    content = data["choices"][0]["message"].get("content") or ""
    usage = data.get("usage") or {}

    return GenerationResult(
        text=content.strip(),
        tokens_used=usage.get("total_tokens"),
        model=data.get("model", payload.get("model")),
    )


def _send_anthropic(payload: dict, api_key) -> GenerationResult:
    headers = {
        "x-api-key": api_key,
        "anthropic-version": "2023-06-01",
        "Content-Type": "application/json",
    }

    system_parts = []
    anthropic_messages = []

    for msg in payload.get("messages", []):
        role = msg.get("role")
        content = msg.get("content", "")

        if role == "system":
            if isinstance(content, str) and content.strip():
                system_parts.append(content.strip())
        elif role in ["user", "assistant"]:
            anthropic_messages.append({"role": role, "content": content})

    anthropic_payload = {
        "model": payload.get("model"),
        "max_tokens": payload.get("max_tokens", 1024),
        "messages": anthropic_messages,
    }

    if system_parts:
        anthropic_payload["system"] = "\n\n".join(system_parts)

    if "temperature" in payload:
        anthropic_payload["temperature"] = payload["temperature"]
    if "top_p" in payload:
        anthropic_payload["top_p"] = payload["top_p"]

    response = requests.post(
        ANTHROPIC_URL,
        headers=headers,
        json=anthropic_payload,
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    data = response.json()

    usage = data.get("usage") or {}
    tokens = None
    if usage:
        tokens = int(usage.get("input_tokens", 0)) + int(usage.get("output_tokens", 0))

    return GenerationResult(
        text=data["content"][0]["text"].strip(),
        tokens_used=tokens,
        model=data.get("model", payload.get("model")),
    )


def _send_gemini(payload: dict, api_key) -> GenerationResult:
    model = payload.get("model")
    url = GEMINI_URL_TEMPLATE.format(model=model)

    headers = {
        "x-goog-api-key": api_key,
        "Content-Type": "application/json",
    }

    gemini_contents = []

    for msg in payload.get("messages", []):
        role = msg.get("role")
        content = msg.get("content", "")

        if not content:
            continue

        if role == "assistant":
            gemini_role = "model"
        elif role in ["user", "system"]:
            gemini_role = "user"
        else:
            continue

        gemini_contents.append({
            "role": gemini_role,
            "parts": [{"text": str(content)}],
        })

    gemini_payload = {"contents": gemini_contents}

    generation_config = {}
    if "temperature" in payload:
        generation_config["temperature"] = payload["temperature"]
    if "top_p" in payload:
        generation_config["topP"] = payload["top_p"]
    if "max_tokens" in payload:
        generation_config["maxOutputTokens"] = payload["max_tokens"]
    if generation_config:
        gemini_payload["generationConfig"] = generation_config

    response = requests.post(
        url,
        headers=headers,
        json=gemini_payload,
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    data = response.json()

    usage = data.get("usageMetadata") or {}

    return GenerationResult(
        text=data["candidates"][0]["content"]["parts"][0]["text"].strip(),
        tokens_used=usage.get("totalTokenCount"),
        model=model,
    )
