"""
Best-of-N OCR extraction across escalating preprocessing variants.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from dua_vault.config import OCRConfig, PreprocessVariant
from dua_vault.errors import (
    DuaVaultError,
    EngineInitializationError,
    NoReliableText,
    PreprocessingUnavailable,
    RecognitionError,
)
from dua_vault.ocr.engine import Recognizer
from dua_vault.ocr.layout import LayoutReconstructor, LayoutTier
from dua_vault.ocr.preprocessor import ImagePreprocessor, SourceImage
from dua_vault.utils import collapse_whitespace, has_arabic

logger = logging.getLogger(__name__)


@dataclass
class OcrResult:
    """Text reconstructed from one variant pass."""
    arabic_text: str
    confidence: float  # 0 to 100
    raw_text: str
    variant: Optional[PreprocessVariant] = None
    tier: LayoutTier = LayoutTier.NONE
    score: float = 0.0


@dataclass
class OcrAttempt:
    """Log entry for one variant attempt."""
    index: int
    variant: PreprocessVariant
    result: Optional[OcrResult] = None
    error: Optional[str] = None


@dataclass
class ExtractionOutcome:
    """The best OCR result across variants, or a terminal failure."""
    result: Optional[OcrResult] = None
    error: Optional[DuaVaultError] = None
    attempts: list[OcrAttempt] = field(default_factory=list)

    @property
    def is_successful(self) -> bool:
        return self.error is None and self.result is not None


class VariantSelector:
    """
    Runs render → recognize → reconstruct for each variant in order and
    keeps the highest-scoring candidate.

    Strategy:
    1. Try the original image first, then progressively stronger variants
    2. Stop early once a candidate is long enough to be trusted
    3. Fail with NoReliableText if the best candidate is still too thin
    """

    def __init__(
        self,
        recognizer: Recognizer,
        config: Optional[OCRConfig] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
        reconstructor: Optional[LayoutReconstructor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or OCRConfig()
        self.recognizer = recognizer
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.reconstructor = reconstructor or LayoutReconstructor(self.config)
        self._sleep = sleep

    def score(self, result: OcrResult) -> float:
        return len(result.arabic_text) + self.config.confidence_weight * result.confidence

    def is_acceptable(self, text: str) -> bool:
        """Overall gate for the selected candidate."""
        collapsed = collapse_whitespace(text)
        return len(collapsed) >= self.config.min_extraction_chars and has_arabic(collapsed)

    def extract(self, source: SourceImage) -> ExtractionOutcome:
        """Extract the best Arabic text from ``source``."""
        outcome = ExtractionOutcome()
        best: Optional[OcrResult] = None
        variants = self.config.variants[: self.config.max_attempts]

        for index, variant in enumerate(variants):
            if index > 0 and self.config.attempt_delay > 0:
                self._sleep(self.config.attempt_delay * index)

            attempt = OcrAttempt(index=index, variant=variant)
            outcome.attempts.append(attempt)

            try:
                image = self.preprocessor.render(source, variant)
                recognition = self.recognizer.recognize(image, variant.mode)
            except EngineInitializationError as e:
                logger.error("OCR engine unavailable: %s", e)
                attempt.error = str(e)
                outcome.error = e
                return outcome
            except (PreprocessingUnavailable, RecognitionError) as e:
                logger.warning("Variant %d skipped: %s", index + 1, e)
                attempt.error = str(e)
                continue

            reconstruction = self.reconstructor.reconstruct(recognition)
            candidate = OcrResult(
                arabic_text=reconstruction.text,
                confidence=recognition.confidence,
                raw_text=recognition.raw_text,
                variant=variant,
                tier=reconstruction.tier,
            )
            candidate.score = self.score(candidate)
            attempt.result = candidate

            logger.info(
                "Variant %d/%d: %d chars via %s, confidence %.1f, score %.1f",
                index + 1,
                len(variants),
                len(candidate.arabic_text),
                candidate.tier.value,
                candidate.confidence,
                candidate.score,
            )

            if best is None or candidate.score > best.score:
                best = candidate
            if len(candidate.arabic_text) >= self.config.early_exit_chars:
                logger.debug("Early exit after variant %d", index + 1)
                break

        if best is None or not self.is_acceptable(best.arabic_text):
            outcome.error = NoReliableText(
                f"OCR could not find clear Arabic text after {len(outcome.attempts)} attempts"
            )
            logger.warning("%s", outcome.error)
            return outcome

        logger.info(
            "Selected variant %s (%d chars, confidence %.1f)",
            best.variant,
            len(best.arabic_text),
            best.confidence,
        )
        outcome.result = best
        return outcome
