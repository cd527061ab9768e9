"""Multimodal attachment extraction package.

Architectural role:
- Converts attachment references into per-file extraction records.
- Fetches attachment bytes, dispatches by declared content type, and bounds the
  batch with concurrency limits and timeouts.

Scope:
- Content preprocessing only; no HTTP endpoint definitions.
"""
