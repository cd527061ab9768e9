"""Provider/runtime configuration for the generation and vision layers.

Architectural role:
    Centralizes provider selection, model tiers, endpoint maps, base instructions,
    and credential lookup for `app.llm.client`, `app.llm.modes`, and
    `app.image.client`.

Determinism:
    Deterministic for a fixed process environment and key files. Values are resolved
    at import time (plus runtime key-file reads in `load_key`).

Failure behavior:
    Missing key material is represented as `None`; callers decide whether that is a
    `ConfigurationError` (generation) or a skipped stage (vision).
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Generation backend; every mode uses the same provider.
PROVIDER = os.getenv("PROVIDER", "openai")

# Model tiers consumed by `app.llm.modes`.
STANDARD_MODEL = os.getenv("STANDARD_MODEL", "gpt-4o-mini")
ADVANCED_MODEL = os.getenv("ADVANCED_MODEL", "gpt-4o")

# Directory holding optional `<provider>.key` files.
KEY_DIR = os.getenv("KEY_DIR", "config")


def _endpoint(url, provider=None):
    key_file = os.path.join(KEY_DIR, f"{provider}.key") if provider else None
    return {"url": url, "key_file": key_file}


# OpenAI-compatible chat endpoints plus the two native APIs handled in `client`.
PROVIDERS = {
    "local": _endpoint("http://127.0.0.1:8080/v1/chat/completions"),
    "openai": _endpoint("https://api.openai.com/v1/chat/completions", "openai"),
    "groq": _endpoint("https://api.groq.com/openai/v1/chat/completions", "groq"),
    "together": _endpoint("https://api.together.xyz/v1/chat/completions", "together"),
    "openrouter": _endpoint("https://openrouter.ai/api/v1/chat/completions", "openrouter"),
    "mistral": _endpoint("https://api.mistral.ai/v1/chat/completions", "mistral"),
    "anthropic": _endpoint("https://api.anthropic.com/v1/messages", "anthropic"),
    "gemini": _endpoint("https://generativelanguage.googleapis.com/v1beta/models", "gemini"),
}


ANTHROPIC_URL = PROVIDERS["anthropic"]["url"]

GEMINI_URL_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "{model}:generateContent"
)

# Vision analysis runs against an OpenAI-compatible chat endpoint.
VISION_PROVIDER = os.getenv("VISION_PROVIDER", "openai")
VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o-mini")
VISION_MAX_TOKENS = 1000
VISION_TEMPERATURE = 0.3


# Base instructions placed first in every assembled context.
SYSTEM_MESSAGE = os.getenv("SYSTEM_PROMPT") or (
    "You are a helpful assistant for a professional services team.\n\n"
    "Follow these rules:\n"
    "1. When files are attached, focus on their extracted text.\n"
    "2. Never mention file formats - only content.\n"
    "3. For images, ask clarifying questions if needed.\n"
    "4. Keep responses concise and actionable.\n"
    "5. Maintain a professional tone; use bullet points for lists and bold for emphasis.\n"
    "6. If you lack relevant information, say \"I don't have enough information "
    "to answer that definitively.\"\n"
)


def load_key(path):
    """Resolve a provider credential.

    Lookup order:
        1. `<STEM>_API_KEY` environment variable (`config/openai.key` ->
           `OPENAI_API_KEY`).
        2. Contents of the key file at `path`.

    Returns:
        Key string, or `None` for a `None` path or a missing/empty file.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip() or None
