"""
Configuration management for the dua capture pipeline.
"""

import os
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional


class OCREngine(Enum):
    TESSERACT = "tesseract"
    EASYOCR = "easyocr"


class AIBackend(Enum):
    GEMINI = "gemini"
    CLAUDE = "claude"


class PageSegMode(IntEnum):
    """Page segmentation strategies, numbered as Tesseract numbers them."""
    AUTO = 3
    SINGLE_BLOCK = 6
    SINGLE_LINE = 7


@dataclass(frozen=True)
class PreprocessVariant:
    """One preprocessing configuration used for one OCR attempt."""
    scale: float = 1.0
    contrast_percent: int = 100
    grayscale: bool = False
    mode: PageSegMode = PageSegMode.AUTO

    def __post_init__(self):
        if self.scale <= 0:
            raise ValueError(f"scale must be > 0, got {self.scale}")
        if self.contrast_percent < 0:
            raise ValueError(
                f"contrast_percent must be >= 0, got {self.contrast_percent}"
            )

    @property
    def is_identity(self) -> bool:
        return (
            self.scale == 1.0
            and self.contrast_percent == 100
            and not self.grayscale
        )


# Escalation order: original image, then moderate, then strong re-renderings.
DEFAULT_VARIANTS: tuple[PreprocessVariant, ...] = (
    PreprocessVariant(1.0, 100, False, PageSegMode.AUTO),
    PreprocessVariant(1.4, 140, True, PageSegMode.SINGLE_BLOCK),
    PreprocessVariant(1.8, 175, True, PageSegMode.SINGLE_LINE),
)


@dataclass
class OCRConfig:
    """OCR extraction configuration."""
    engine: OCREngine = OCREngine.TESSERACT
    variants: tuple[PreprocessVariant, ...] = DEFAULT_VARIANTS
    max_attempts: int = 3
    # Seconds; the delay before attempt i (0-based) is attempt_delay * i
    attempt_delay: float = 0.25

    # Layout reconstruction
    min_word_confidence: float = 35.0
    line_tolerance_px: float = 18.0
    min_valid_chars: int = 8

    # Variant selection
    early_exit_chars: int = 20
    min_extraction_chars: int = 6
    confidence_weight: float = 0.2

    # Tesseract-specific
    tesseract_lang: str = "ara"
    tesseract_oem: int = 1  # LSTM only
    tessdata_dir: Optional[str] = None
    tesseract_params: dict[str, str] = field(
        default_factory=lambda: {
            "preserve_interword_spaces": "1",
            "tessedit_do_invert": "0",
            "tessedit_fix_fuzzy_spaces": "1",
            # Bias the decoder toward Arabic word shapes over Latin noise
            "language_model_penalty_non_dict_word": "0.05",
            "language_model_penalty_non_freq_dict_word": "0.05",
        }
    )

    # EasyOCR-specific
    easyocr_langs: list[str] = field(default_factory=lambda: ["ar"])
    easyocr_gpu: bool = False

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")


@dataclass
class AIConfig:
    """Generative backend configuration."""
    backend: AIBackend = AIBackend.GEMINI

    # API keys: loaded from env vars if not set
    gemini_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    gemini_model: str = "gemini-2.5-flash"
    claude_model: str = "claude-sonnet-4-20250514"

    text_temperature: float = 0.3
    image_temperature: float = 0.2
    cleanup_temperature: float = 0.1

    # Seconds
    text_timeout: float = 20.0
    image_timeout: float = 45.0

    # Transient-error retry
    max_attempts: int = 3
    retry_backoff: float = 1.0

    # Cache. Image keys use a SHA-256 digest unless a base64 prefix length is set
    image_fingerprint_chars: Optional[int] = None
    cache_max_entries: Optional[int] = None  # None = unbounded

    # Minimum cleaned-up text length accepted over raw OCR output
    min_cleanup_chars: int = 6

    def __post_init__(self):
        """Validate limits and load API keys from environment variables if not provided."""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if not self.gemini_api_key:
            self.gemini_api_key = (
                os.environ.get("GEMINI_API_KEY")
                or os.environ.get("GOOGLE_API_KEY")
                or os.environ.get("API_KEY")
            )
        if not self.anthropic_api_key:
            self.anthropic_api_key = os.environ.get("ANTHROPIC_API_KEY")

    def get_api_key(self) -> Optional[str]:
        """Return the API key for the selected backend."""
        key_map = {
            AIBackend.GEMINI: self.gemini_api_key,
            AIBackend.CLAUDE: self.anthropic_api_key,
        }
        return key_map.get(self.backend)


@dataclass
class QuotaConfig:
    """Monthly translation quota for free-plan users."""
    monthly_limit: int = 5

    def __post_init__(self):
        if self.monthly_limit <= 0:
            raise ValueError(f"monthly_limit must be > 0, got {self.monthly_limit}")


@dataclass
class PipelineConfig:
    """Aggregate configuration for the capture pipeline."""
    ocr: OCRConfig = field(default_factory=OCRConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    # Run the AI cleanup pass on OCR output before handing it back
    cleanup_after_ocr: bool = True
