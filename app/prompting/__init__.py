"""Context assembly helpers.

Exports deterministic builders that order base instructions, mode directives,
the file-context block, and conversation history for the generation call.
"""
