"""
AI normalization client: OCR cleanup, translation and categorization.

Every operation follows the same flow:
1. Canonicalize the input and check the response cache
2. Call the backend under an operation-specific timeout
3. Retry transient failures (overload, timeout) with linear backoff
4. Validate the JSON answer against the expected shape
5. Cache the validated result

Failures are returned as typed ``AiOutcome`` values rather than raised.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from dua_vault.ai import prompts
from dua_vault.ai.backends import WEB_SEARCH_TOOL, GenerationRequest, GenerativeBackend
from dua_vault.ai.cache import ResponseCache, image_key, text_key
from dua_vault.ai.retry import RetryPolicy
from dua_vault.ai.schemas import (
    ARABIC_ONLY_RESPONSE_SCHEMA,
    CLEANUP_RESPONSE_SCHEMA,
    DUA_RESPONSE_SCHEMA,
    CleanupPayload,
    NormalizedRecord,
    TranslatedRecord,
)
from dua_vault.config import AIConfig
from dua_vault.errors import (
    AiError,
    AiMalformedResponse,
    AiRequestError,
    AiTimeout,
    DuaVaultError,
    NoReliableText,
)
from dua_vault.ocr.layout import is_valid_extraction
from dua_vault.ocr.preprocessor import ImagePreprocessor, SourceImage

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

KIND_TRANSLATE = "translate"
KIND_CLEANUP = "cleanup"
KIND_IMAGE = "image"
KIND_URL = "url"

CALL_THREAD_NAME = "dua-ai-call"


@dataclass
class AiOutcome(Generic[T]):
    """Result of one client operation."""
    value: Optional[T] = None
    error: Optional[DuaVaultError] = None
    cached: bool = False
    attempts: int = 0  # network calls made

    @property
    def is_successful(self) -> bool:
        return self.error is None and self.value is not None


class AiNormalizationClient:
    """Cached, retried and validated access to a generative backend."""

    def __init__(
        self,
        backend: GenerativeBackend,
        config: Optional[AIConfig] = None,
        cache: Optional[ResponseCache] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend
        self.config = config or AIConfig()
        self.cache = cache if cache is not None else ResponseCache(self.config.cache_max_entries)
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.retry = RetryPolicy(
            max_attempts=self.config.max_attempts,
            backoff=self.config.retry_backoff,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def translate_and_categorize(self, arabic_text: str) -> AiOutcome[NormalizedRecord]:
        """Translate Arabic text to English and pick its category."""
        text = (arabic_text or "").strip()
        if not text:
            return AiOutcome(error=AiRequestError("No Arabic text to translate"))

        request = GenerationRequest(
            prompt=prompts.translate_prompt(text),
            response_schema=DUA_RESPONSE_SCHEMA,
            temperature=self.config.text_temperature,
            timeout=self.config.text_timeout,
        )
        return self._cached_call(text_key(KIND_TRANSLATE, text), request, TranslatedRecord)

    def cleanup_ocr_artifacts(self, arabic_text: str) -> AiOutcome[str]:
        """Corrective pass over OCR output. No translation."""
        text = (arabic_text or "").strip()
        if not text:
            return AiOutcome(error=AiRequestError("No Arabic text to clean up"))

        request = GenerationRequest(
            prompt=prompts.cleanup_prompt(text),
            response_schema=CLEANUP_RESPONSE_SCHEMA,
            temperature=self.config.cleanup_temperature,
            timeout=self.config.text_timeout,
        )
        outcome = self._cached_call(text_key(KIND_CLEANUP, text), request, CleanupPayload)
        return AiOutcome(
            value=outcome.value.arabic if outcome.value is not None else None,
            error=outcome.error,
            cached=outcome.cached,
            attempts=outcome.attempts,
        )

    def extract_from_url(self, url: str) -> AiOutcome[NormalizedRecord]:
        """Find the main dua on a web page using the backend's search tool."""
        url = (url or "").strip()
        if not url:
            return AiOutcome(error=AiRequestError("No URL given"))

        request = GenerationRequest(
            prompt=prompts.url_prompt(url),
            response_schema=DUA_RESPONSE_SCHEMA,
            temperature=self.config.image_temperature,
            timeout=self.config.text_timeout,
            tools=(WEB_SEARCH_TOOL,),
        )
        return self._cached_call(text_key(KIND_URL, url), request, TranslatedRecord)

    def extract_from_image(
        self, image: SourceImage, include_translation: bool = True
    ) -> AiOutcome[NormalizedRecord]:
        """
        Read a dua straight from an image with escalating prompts.

        Each prompt level demands stricter fidelity. An answer that is
        malformed or lacks usable Arabic moves on to the next level; rate
        limiting or an exhausted transient-retry budget ends the attempt.
        """
        try:
            payload = self.preprocessor.encode(self.preprocessor.load(image))
        except DuaVaultError as e:
            return AiOutcome(error=e)

        key = image_key(
            KIND_IMAGE, payload, self.config.image_fingerprint_chars, include_translation
        )
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Image extraction cache hit")
            return AiOutcome(value=cached, cached=True)

        model_cls = TranslatedRecord if include_translation else NormalizedRecord
        schema = DUA_RESPONSE_SCHEMA if include_translation else ARABIC_ONLY_RESPONSE_SCHEMA
        total_attempts = 0
        last_error: DuaVaultError = NoReliableText("AI extraction returned no usable Arabic text")

        for level in range(len(prompts.IMAGE_PROMPTS)):
            request = GenerationRequest(
                prompt=prompts.image_prompt(level, include_translation),
                response_schema=schema,
                temperature=self.config.image_temperature,
                timeout=self.config.image_timeout,
                image=payload,
            )
            try:
                raw, attempts = self.retry.run(
                    lambda: self._invoke(request), label=f"{KIND_IMAGE} extraction"
                )
            except AiError as e:
                return AiOutcome(error=e, attempts=total_attempts + e.attempts)
            total_attempts += attempts

            try:
                record = self._parse(raw, model_cls)
            except AiMalformedResponse as e:
                logger.warning("Prompt level %d returned malformed JSON: %s", level + 1, e)
                last_error = e
                continue

            if not is_valid_extraction(record.arabic):
                logger.warning(
                    "Prompt level %d returned no usable Arabic (%d chars)",
                    level + 1,
                    len(record.arabic),
                )
                continue

            self.cache.put(key, record)
            return AiOutcome(value=record, attempts=total_attempts)

        return AiOutcome(error=last_error, attempts=total_attempts)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cached_call(self, key: tuple, request: GenerationRequest, model_cls: type[M]) -> AiOutcome[M]:
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("%s cache hit", key[0])
            return AiOutcome(value=cached, cached=True)

        try:
            raw, attempts = self.retry.run(lambda: self._invoke(request), label=key[0])
        except AiError as e:
            return AiOutcome(error=e, attempts=e.attempts)

        try:
            value = self._parse(raw, model_cls)
        except AiMalformedResponse as e:
            logger.error("%s returned malformed response: %s", key[0], e)
            return AiOutcome(error=e, attempts=attempts)

        self.cache.put(key, value)
        return AiOutcome(value=value, attempts=attempts)

    def _invoke(self, request: GenerationRequest) -> str:
        """
        Run one backend call, abandoning it after ``request.timeout`` seconds.

        Each call gets its own worker thread, so the clock starts when the
        call does no matter how many calls are in flight. An abandoned
        worker finishes in the background and its answer is dropped.
        """
        outcome: dict = {}

        def call() -> None:
            try:
                outcome["value"] = self.backend.generate(request)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=call, name=CALL_THREAD_NAME, daemon=True)
        worker.start()
        worker.join(request.timeout)
        if worker.is_alive():
            raise AiTimeout(
                f"{self.backend.name} did not answer within {request.timeout:.1f}s"
            )
        if "error" in outcome:
            raise outcome["error"]
        return outcome["value"]

    @staticmethod
    def _parse(raw: str, model_cls: type[M]) -> M:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise AiMalformedResponse(f"Response is not JSON: {e}") from e
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            raise AiMalformedResponse(
                f"Response does not match {model_cls.__name__}: {e.error_count()} errors"
            ) from e
