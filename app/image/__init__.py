"""Image understanding package.

Architectural role:
    Turns image attachments into text through a vision -> OCR -> metadata-only
    cascade built on pluggable capability providers.

Module split:
    - `client`: OpenAI-compatible vision provider.
    - `ocr`: Tesseract OCR provider.
    - `service`: provider interfaces and process-wide registry.
    - `resolver`: the fallback cascade.
"""
