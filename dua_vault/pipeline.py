"""
Capture pipeline orchestrator.

Ties together:
1. Image → multi-variant OCR → right-to-left layout reconstruction
2. Optional AI cleanup of the OCR text
3. Quota-gated AI translation and categorization
4. Direct AI extraction from an image or a web page
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

from dua_vault.ai.backends import GenerativeBackend, create_backend
from dua_vault.ai.client import AiNormalizationClient, AiOutcome
from dua_vault.ai.schemas import NormalizedRecord
from dua_vault.config import PipelineConfig
from dua_vault.errors import (
    DuaVaultError,
    QuotaCheckFailed,
    QuotaConsumeFailed,
    QuotaExceeded,
)
from dua_vault.ocr.engine import Recognizer, create_recognizer
from dua_vault.ocr.preprocessor import SourceImage
from dua_vault.ocr.selector import OcrAttempt, OcrResult, VariantSelector
from dua_vault.quota.gate import TranslationQuotaGate
from dua_vault.quota.store import InMemoryUsageStore, TranslationQuota, UsageStore
from dua_vault.utils import collapse_whitespace, has_arabic

logger = logging.getLogger(__name__)


@dataclass
class CaptureResult:
    """Arabic text captured from an image by OCR."""
    arabic: str = ""
    ocr: Optional[OcrResult] = None
    cleaned: bool = False
    error: Optional[DuaVaultError] = None
    warnings: list[str] = field(default_factory=list)
    attempts: list[OcrAttempt] = field(default_factory=list)
    processing_time_seconds: float = 0.0

    @property
    def is_successful(self) -> bool:
        return self.error is None and bool(self.arabic)

    def to_dict(self) -> dict:
        return {
            "arabic": self.arabic,
            "ocr_text": self.ocr.arabic_text if self.ocr else None,
            "ocr_confidence": self.ocr.confidence if self.ocr else None,
            "cleaned": self.cleaned,
            "error": self.error.user_message if self.error else None,
            "warnings": self.warnings,
            "attempts": [
                {
                    "variant": a.index + 1,
                    "chars": len(a.result.arabic_text) if a.result else 0,
                    "score": a.result.score if a.result else None,
                    "error": a.error,
                }
                for a in self.attempts
            ],
            "processing_time_seconds": self.processing_time_seconds,
        }


@dataclass
class TranslationOutcome:
    """Result of a quota-gated AI call."""
    record: Optional[NormalizedRecord] = None
    quota: Optional[TranslationQuota] = None
    error: Optional[DuaVaultError] = None
    cached: bool = False
    consumed: bool = False
    warnings: list[str] = field(default_factory=list)
    attempts: int = 0

    @property
    def is_successful(self) -> bool:
        return self.error is None and self.record is not None

    def to_dict(self) -> dict:
        return {
            "arabic": self.record.arabic if self.record else None,
            "translation": self.record.translation if self.record else None,
            "category": self.record.category.value if self.record else None,
            "cached": self.cached,
            "quota": (
                {
                    "period_start": self.quota.period_start.isoformat(),
                    "used": self.quota.used,
                    "limit": self.quota.limit,
                    "remaining": self.quota.remaining,
                    "allowed": self.quota.allowed,
                    "unlimited": self.quota.unlimited,
                }
                if self.quota
                else None
            ),
            "error": self.error.user_message if self.error else None,
            "warnings": self.warnings,
        }


class DuaCapturePipeline:
    """
    Complete photo-to-record pipeline.

    Usage:
        pipeline = DuaCapturePipeline(PipelineConfig())
        capture = pipeline.extract_text("dua.jpg")
        if capture.is_successful:
            outcome = pipeline.translate("user-1", capture.arabic)
            print(outcome.record.translation)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        recognizer: Optional[Recognizer] = None,
        backend: Optional[GenerativeBackend] = None,
        store: Optional[UsageStore] = None,
        ai_client: Optional[AiNormalizationClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Optional[Callable[[], date]] = None,
    ):
        self.config = config or PipelineConfig()
        self.recognizer = recognizer or create_recognizer(self.config.ocr)
        self.selector = VariantSelector(self.recognizer, self.config.ocr, sleep=sleep)
        self.gate = TranslationQuotaGate(store or InMemoryUsageStore(), today=today)
        self._backend = backend
        self._ai_client = ai_client
        self._sleep = sleep

        logger.info(
            "DuaCapturePipeline initialized (engine=%s, backend=%s)",
            self.recognizer.engine_name,
            backend.name if backend else self.config.ai.backend.value,
        )

    @property
    def ai(self) -> AiNormalizationClient:
        """The AI client, built on first use so OCR-only callers need no API key."""
        if self._ai_client is None:
            backend = self._backend or create_backend(self.config.ai)
            self._ai_client = AiNormalizationClient(backend, self.config.ai, sleep=self._sleep)
        return self._ai_client

    def extract_text(self, image: SourceImage, cleanup: Optional[bool] = None) -> CaptureResult:
        """
        OCR the image, then optionally let the AI fix OCR artifacts.

        The cleaned text replaces the OCR text only if it is long enough and
        still Arabic; any cleanup failure keeps the OCR text.
        """
        start = time.time()
        cleanup = self.config.cleanup_after_ocr if cleanup is None else cleanup

        extraction = self.selector.extract(image)
        result = CaptureResult(attempts=extraction.attempts)
        if not extraction.is_successful:
            result.error = extraction.error
            result.processing_time_seconds = time.time() - start
            return result

        result.ocr = extraction.result
        result.arabic = extraction.result.arabic_text

        if cleanup:
            self._apply_cleanup(result)

        result.processing_time_seconds = time.time() - start
        logger.info(
            "Captured %d chars (cleaned=%s) in %.2fs",
            len(result.arabic),
            result.cleaned,
            result.processing_time_seconds,
        )
        return result

    def _apply_cleanup(self, result: CaptureResult) -> None:
        try:
            outcome = self.ai.cleanup_ocr_artifacts(result.arabic)
        except DuaVaultError as e:
            outcome = AiOutcome(error=e)

        if not outcome.is_successful:
            logger.warning("OCR cleanup unavailable, keeping raw OCR text: %s", outcome.error)
            result.warnings.append(outcome.error.user_message)
            return

        corrected = collapse_whitespace(outcome.value)
        if len(corrected) >= self.config.ai.min_cleanup_chars and has_arabic(corrected):
            result.arabic = corrected
            result.cleaned = True
        else:
            logger.warning("OCR cleanup returned unusable text, keeping raw OCR text")

    def translate(self, user_id: str, arabic: str, premium: bool = False) -> TranslationOutcome:
        """Quota-gated translation and categorization of Arabic text."""
        return self._gated(user_id, premium, lambda: self.ai.translate_and_categorize(arabic))

    def from_image_with_ai(
        self,
        image: SourceImage,
        user_id: str,
        include_translation: bool = True,
        premium: bool = False,
    ) -> TranslationOutcome:
        """Let the AI read the image directly. Gated only when it translates."""
        if not include_translation:
            return self._ungated(lambda: self.ai.extract_from_image(image, include_translation=False))
        return self._gated(
            user_id, premium, lambda: self.ai.extract_from_image(image, include_translation=True)
        )

    def from_url(self, url: str, user_id: str, premium: bool = False) -> TranslationOutcome:
        """Extract and translate the main dua on a web page."""
        return self._gated(user_id, premium, lambda: self.ai.extract_from_url(url))

    def _ungated(self, call: Callable[[], AiOutcome]) -> TranslationOutcome:
        try:
            outcome = call()
        except DuaVaultError as e:
            return TranslationOutcome(error=e)
        return TranslationOutcome(
            record=outcome.value,
            error=outcome.error,
            cached=outcome.cached,
            attempts=outcome.attempts,
        )

    def _gated(
        self, user_id: str, premium: bool, call: Callable[[], AiOutcome]
    ) -> TranslationOutcome:
        limit = self.config.quota.monthly_limit

        try:
            quota = self.gate.check_quota(user_id, limit, premium=premium)
        except QuotaCheckFailed as e:
            return TranslationOutcome(error=e)

        if not quota.allowed:
            logger.info("Translation blocked for user %s: quota exhausted", user_id)
            return TranslationOutcome(
                quota=quota,
                error=QuotaExceeded(f"{quota.used}/{quota.limit} translations used this month"),
            )

        try:
            outcome = call()
        except DuaVaultError as e:
            return TranslationOutcome(quota=quota, error=e)

        result = TranslationOutcome(
            record=outcome.value,
            quota=quota,
            error=outcome.error,
            cached=outcome.cached,
            attempts=outcome.attempts,
        )
        # Only a fresh, successful call counts against the quota
        if not outcome.is_successful or outcome.cached or premium:
            return result

        try:
            consumption = self.gate.consume_quota(user_id, limit)
        except QuotaConsumeFailed as e:
            logger.warning("Translation succeeded but usage was not recorded: %s", e)
            result.warnings.append(e.user_message)
            return result

        result.quota = consumption.quota
        result.consumed = True
        return result
