"""
Right-to-left line reconstruction from OCR word boxes.

Turns the engine's word list into reading-order Arabic text:
1. Drop low-confidence and non-Arabic words
2. Sanitize tokens to the allowed character set
3. Group tokens into lines by vertical centre
4. Order lines top-to-bottom and tokens right-to-left

Bounding boxes are not always available or trustworthy, so two flatter
fallbacks follow the layout path.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from dua_vault.config import OCRConfig
from dua_vault.ocr.engine import BoundingBox, RecognitionOutput, RecognizedWord
from dua_vault.utils import ARABIC_PUNCTUATION, ARABIC_RANGE, collapse_whitespace, has_arabic

logger = logging.getLogger(__name__)

_DISALLOWED = re.compile(f'[^{ARABIC_RANGE}{ARABIC_PUNCTUATION}\\s]')


def sanitize_arabic(text: str) -> str:
    """Replace characters outside the Arabic set with spaces and collapse whitespace."""
    return collapse_whitespace(_DISALLOWED.sub(' ', text or ''))


def normalize_arabic_lines(text: str) -> str:
    """Keep only Arabic-bearing lines, join them and sanitize."""
    lines = [line.strip() for line in (text or '').split('\n')]
    return sanitize_arabic(' '.join(line for line in lines if has_arabic(line)))


def is_valid_extraction(text: str, min_chars: int = 8) -> bool:
    """Text qualifies as an extraction if long enough and Arabic-bearing."""
    collapsed = collapse_whitespace(text)
    return len(collapsed) >= min_chars and has_arabic(collapsed)


class LayoutTier(Enum):
    LAYOUT = "layout"
    FLAT = "flat"
    RAW = "raw"
    NONE = "none"


@dataclass
class _Token:
    text: str
    bbox: BoundingBox


@dataclass
class _Line:
    y: float
    tokens: list[_Token] = field(default_factory=list)


@dataclass
class Reconstruction:
    text: str
    tier: LayoutTier


class LayoutReconstructor:
    """Rebuilds Arabic reading order from word boxes, with flat fallbacks."""

    def __init__(self, config: Optional[OCRConfig] = None):
        config = config or OCRConfig()
        self.min_confidence = config.min_word_confidence
        self.line_tolerance = config.line_tolerance_px
        self.min_valid_chars = config.min_valid_chars

    def reconstruct(self, output: RecognitionOutput) -> Reconstruction:
        """Run the layout path, then the flat join, then the raw-text filter."""
        text = self.from_layout(output.words)
        if text:
            return Reconstruction(text, LayoutTier.LAYOUT)

        text = self.from_words(output.words)
        if text:
            logger.debug("Layout grouping empty, using flat word join")
            return Reconstruction(text, LayoutTier.FLAT)

        text = normalize_arabic_lines(output.raw_text)
        if text:
            logger.debug("Word lists empty, using raw text filter")
            return Reconstruction(text, LayoutTier.RAW)

        return Reconstruction("", LayoutTier.NONE)

    def is_valid(self, text: str) -> bool:
        return is_valid_extraction(text, self.min_valid_chars)

    def _confident(self, words: list[RecognizedWord]) -> list[RecognizedWord]:
        return [w for w in words if (w.confidence or 0) >= self.min_confidence]

    def from_words(self, words: list[RecognizedWord]) -> str:
        """Confidence-filtered flat join, ignoring layout."""
        tokens = [sanitize_arabic(w.text.strip()) for w in self._confident(words)]
        return collapse_whitespace(' '.join(t for t in tokens if has_arabic(t)))

    def from_layout(self, words: list[RecognizedWord]) -> str:
        """Group tokens into lines and order them for right-to-left reading."""
        candidates = []
        for word in self._confident(words):
            text = sanitize_arabic(word.text.strip())
            if text and has_arabic(text) and word.bbox is not None:
                candidates.append(_Token(text, word.bbox))

        if not candidates:
            return ""

        # Greedy grouping in order of appearance; a token joins the first
        # line whose running centre is close enough.
        lines: list[_Line] = []
        for token in candidates:
            y_center = token.bbox.y_center
            line = next(
                (l for l in lines if abs(l.y - y_center) < self.line_tolerance),
                None,
            )
            if line is None:
                lines.append(_Line(y=y_center, tokens=[token]))
            else:
                line.tokens.append(token)
                line.y = (line.y + y_center) / 2

        lines.sort(key=lambda l: l.y)
        text = '\n'.join(
            ' '.join(
                t.text for t in sorted(line.tokens, key=lambda t: t.bbox.x1, reverse=True)
            )
            for line in lines
        )
        logger.debug("Grouped %d tokens into %d lines", len(candidates), len(lines))
        return normalize_arabic_lines(text)
