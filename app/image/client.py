"""OpenAI-compatible vision client.

Processing flow:
    1. Resolve the vision provider endpoint from `app.llm.provider_config`.
    2. Load the API key from environment or key file.
    3. Submit one chat-completion request containing the analysis prompt and the
       image reference (remote URL or base64 data URL).
    4. Return the trimmed description text.

Error handling strategy:
    - Unknown provider / missing key -> `RuntimeError`.
    - Non-200 HTTP response or empty description -> `RuntimeError`.
    The image resolver treats every raised error as "fall through to OCR".

Security considerations:
    Error messages carry the status code only, never the provider response body.
"""

import requests

from app.llm.provider_config import (
    PROVIDERS,
    VISION_MAX_TOKENS,
    VISION_MODEL,
    VISION_PROVIDER,
    VISION_TEMPERATURE,
    load_key,
)


class OpenAIVisionClient:
    """Vision provider backed by an OpenAI-compatible chat endpoint.

    Args:
        provider: Key into `PROVIDERS`.
        model: Vision-capable model name.
        timeout: Per-request transport timeout in seconds.
    """

    def __init__(self, provider: str = VISION_PROVIDER, model: str = VISION_MODEL, timeout: float = 30):
        self.provider = provider
        self.model = model
        self.timeout = timeout

    def _api_key(self):
        config = PROVIDERS.get(self.provider)
        if not config:
            return None
        return load_key(config["key_file"])

    def is_available(self) -> bool:
        """Whether a vision credential is configured."""
        return bool(self._api_key())

    def describe(self, image_url: str, prompt: str) -> str:
        """Return a textual description of the referenced image.

        Args:
            image_url: HTTP(S) URL or `data:` URL of the image.
            prompt: Analysis instruction sent alongside the image.
        """
        config = PROVIDERS.get(self.provider)
        if not config:
            raise RuntimeError(f"Unknown vision provider: {self.provider}")

        api_key = self._api_key()
        if not api_key:
            raise RuntimeError("Vision API key not configured")

        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                    ],
                }
            ],
            "max_tokens": VISION_MAX_TOKENS,
            "temperature": VISION_TEMPERATURE,
        }

        response = requests.post(
            config["url"],
            json=payload,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )

        if response.status_code != 200:
            raise RuntimeError(f"Vision request failed with status {response.status_code}")

        data = response.json()
        try:
            description = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            description = ""

        description = description.strip()
        if not description:
            raise RuntimeError("Empty response from Vision API")

        return description
