"""Tesseract OCR provider.

Uses `pytesseract` over a Pillow image decoded from raw bytes. Confidence is the
mean of the per-word confidences reported by Tesseract, ignoring the `-1` values
it emits for non-word boxes.

Availability:
    `is_available()` probes the tesseract binary once and caches the answer, so a
    host without tesseract simply skips the OCR stage.
"""

import io
import logging
from dataclasses import dataclass

import pytesseract
from PIL import Image


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OcrResult:
    text: str
    confidence: float


class TesseractOcrClient:
    """OCR provider backed by the local tesseract binary."""

    def __init__(self, lang: str = "eng"):
        self.lang = lang
        self._available = None

    def is_available(self) -> bool:
        if self._available is None:
            try:
                pytesseract.get_tesseract_version()
                self._available = True
            except Exception:
                logger.warning("Tesseract binary not available; OCR stage disabled")
                self._available = False
        return self._available

    def recognize(self, image_bytes: bytes) -> OcrResult:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")

            data = pytesseract.image_to_data(
                img,
                lang=self.lang,
                output_type=pytesseract.Output.DICT,
            )

        lines: dict[tuple, list[str]] = {}
        confidences = []
        rows = zip(
            data.get("text", []),
            data.get("conf", []),
            data.get("block_num", []),
            data.get("par_num", []),
            data.get("line_num", []),
        )
        for word, conf, block, par, line in rows:
            try:
                score = float(conf)
            except (TypeError, ValueError):
                continue
            if score < 0:
                continue
            confidences.append(score)
            if word and word.strip():
                lines.setdefault((block, par, line), []).append(word.strip())

        text = "\n".join(" ".join(words) for words in lines.values())
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return OcrResult(text=text, confidence=confidence)
