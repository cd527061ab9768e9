"""LLM access package.

Architectural role:
    Provides provider configuration, mode-dependent generation parameters,
    request-payload construction, and transport adapters used by the chat
    coordinator to invoke text-generation backends.

Module split:
    - `provider_config`: environment-driven provider, model, and key configuration.
    - `modes`: request mode -> generation parameter table.
    - `service`: generation capability interface and payload construction.
    - `client`: provider-specific HTTP transport and response parsing.
"""
