"""Core orchestration package.

Architectural role:
    Exposes the request-orchestration layer that sits between API/CLI entrypoints
    and lower-level subsystems (extraction, prompting, LLM adapters).

Composition:
    - `engine`: chat request coordinator.
    - `errors`: request- and attachment-level error taxonomy.
    - `identity`: account lookup behind a TTL cache.
    - `settings`: environment-driven pipeline settings.

Determinism and side effects:
    Package import itself is side-effect free apart from `.env` loading in
    `settings`.
"""
