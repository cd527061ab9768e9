"""Message-list-to-payload adapter for LLM invocation.

Architectural role:
    Provides the generation capability consumed by the chat coordinator. This
    module bridges the assembled context (`app.prompting`) and the selected mode
    parameters (`app.llm.modes`) to transport (`app.llm.client`).

Model call flow:
    context messages + ModeConfig -> payload construction -> `client.send_chat_request`.

Capability model:
    The coordinator only depends on the `GenerationProvider` protocol. The default
    `ProviderGenerator` is registered at import; tests and alternative backends
    replace it with `set_generation_provider`.

Determinism:
    Payload construction is deterministic for fixed inputs and configuration.
    Generated output remains non-deterministic because inference runs remotely.
"""

import asyncio
from typing import Protocol

from app.llm.client import GenerationResult, is_provider_configured, send_chat_request
from app.llm.modes import ModeConfig
from app.llm.provider_config import PROVIDER
from app.prompting.prompt_builder import ContextMessage


class GenerationProvider(Protocol):
    """Opaque text-generation capability."""

    def is_configured(self) -> bool:
        """Whether the required credential is present."""
        ...

    async def generate(self, messages: list[ContextMessage], config: ModeConfig) -> GenerationResult:
        """Return the completion for `messages`, or raise on failure."""
        ...


def build_payload(messages: list[ContextMessage], config: ModeConfig) -> dict:
    """Build an OpenAI-style request payload.

    Parameter semantics:
        - `temperature` / `top_p`: sampling controls from the mode table.
        - `frequency_penalty` / `presence_penalty`: repetition and topic-spread
          tuning from the mode table.
        - `max_tokens`: completion ceiling from the mode table.
    """
    return {
        "model": config.model,
        "messages": [{"role": m.role, "content": m.text} for m in messages],
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "top_p": config.top_p,
        "frequency_penalty": config.frequency_penalty,
        "presence_penalty": config.presence_penalty,
    }


class ProviderGenerator:
    """Default generation capability over the configured HTTP provider."""

    def __init__(self, provider: str = PROVIDER):
        self.provider = provider

    def is_configured(self) -> bool:
        return is_provider_configured(self.provider)

    async def generate(self, messages: list[ContextMessage], config: ModeConfig) -> GenerationResult:
        payload = build_payload(messages, config)
        # `requests` is blocking; keep the event loop free for other requests.
        return await asyncio.to_thread(send_chat_request, payload, self.provider)


_GENERATION_PROVIDER: GenerationProvider = ProviderGenerator()


def set_generation_provider(provider: GenerationProvider) -> None:
    global _GENERATION_PROVIDER
    _GENERATION_PROVIDER = provider


def get_generation_provider() -> GenerationProvider:
    return _GENERATION_PROVIDER
