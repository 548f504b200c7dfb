"""
OCR engine adapters for Arabic text recognition.

An adapter owns one warm engine instance. The engine is expensive to build,
so it is constructed lazily, at most once, and reused by every call.
Calls are serialized because the underlying engines are not assumed to be
reentrant.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
from PIL import Image

from dua_vault.config import OCRConfig, OCREngine, PageSegMode
from dua_vault.errors import EngineInitializationError, RecognitionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    x0: float
    y0: float
    x1: float
    y1: float

    def __post_init__(self):
        if self.x0 > self.x1 or self.y0 > self.y1:
            raise ValueError(f"Invalid bounding box: {self}")

    @property
    def y_center(self) -> float:
        return (self.y0 + self.y1) / 2


@dataclass
class RecognizedWord:
    """A single word reported by the engine."""
    text: str
    confidence: float  # 0 to 100
    bbox: Optional[BoundingBox] = None


@dataclass
class RecognitionOutput:
    """Everything the engine reported for one recognition pass."""
    words: list[RecognizedWord] = field(default_factory=list)
    raw_text: str = ""
    confidence: float = 0.0  # 0 to 100


class Recognizer(ABC):
    """Capability interface over a long-lived OCR engine."""

    def __init__(self, config: OCRConfig):
        self.config = config
        self._engine: Any = None
        self._init_lock = threading.Lock()
        self._call_lock = threading.Lock()

    @property
    @abstractmethod
    def engine_name(self) -> str:
        ...

    @abstractmethod
    def _create_engine(self) -> Any:
        """Build the underlying engine. Called at most once per instance."""
        ...

    @abstractmethod
    def _recognize(self, engine: Any, image: Image.Image, mode: PageSegMode) -> RecognitionOutput:
        ...

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    def warm_up(self) -> None:
        """Construct the engine now instead of on first use."""
        self._get_engine()

    def _get_engine(self) -> Any:
        if self._engine is None:
            with self._init_lock:
                if self._engine is None:
                    logger.info("Initializing OCR engine: %s", self.engine_name)
                    try:
                        self._engine = self._create_engine()
                    except EngineInitializationError:
                        raise
                    except Exception as e:
                        raise EngineInitializationError(
                            f"{self.engine_name} initialization failed: {e}"
                        ) from e
        return self._engine

    def recognize(self, image: Image.Image, mode: PageSegMode = PageSegMode.AUTO) -> RecognitionOutput:
        """
        Run one recognition pass.

        Raises:
            EngineInitializationError: if the engine cannot be constructed.
            RecognitionError: if this pass fails.
        """
        engine = self._get_engine()
        with self._call_lock:
            try:
                output = self._recognize(engine, image, mode)
            except Exception as e:
                raise RecognitionError(
                    f"{self.engine_name} recognition failed: {e}"
                ) from e

        logger.info(
            "%s (psm %d): %d words, confidence %.1f",
            self.engine_name,
            int(mode),
            len(output.words),
            output.confidence,
        )
        return output


class TesseractRecognizer(Recognizer):
    """Tesseract wrapper configured for Arabic."""

    @property
    def engine_name(self) -> str:
        return "tesseract"

    def _create_engine(self) -> Any:
        try:
            import pytesseract
        except ImportError as e:
            raise EngineInitializationError(
                "pytesseract is required. Install with: pip install pytesseract\n"
                "Also install Tesseract binary: sudo apt-get install tesseract-ocr tesseract-ocr-ara"
            ) from e

        version = pytesseract.get_tesseract_version()
        langs = pytesseract.get_languages(config=self._base_config())
        if self.config.tesseract_lang not in langs:
            raise EngineInitializationError(
                f"Tesseract language pack '{self.config.tesseract_lang}' is not installed"
            )
        logger.info("Tesseract %s ready (%s)", version, self.config.tesseract_lang)
        return pytesseract

    def _base_config(self) -> str:
        if self.config.tessdata_dir:
            return f'--tessdata-dir "{self.config.tessdata_dir}"'
        return ""

    def build_config(self, mode: PageSegMode) -> str:
        parts = [
            self._base_config(),
            f"--oem {self.config.tesseract_oem}",
            f"--psm {int(mode)}",
        ]
        parts.extend(f"-c {key}={value}" for key, value in self.config.tesseract_params.items())
        return " ".join(p for p in parts if p)

    def _recognize(self, engine: Any, image: Image.Image, mode: PageSegMode) -> RecognitionOutput:
        data = engine.image_to_data(
            image,
            lang=self.config.tesseract_lang,
            config=self.build_config(mode),
            output_type=engine.Output.DICT,
        )

        words: list[RecognizedWord] = []
        confidences: list[float] = []
        lines: dict[tuple, list[str]] = {}

        for i, text in enumerate(data["text"]):
            text = (text or "").strip()
            conf = float(data["conf"][i])
            if not text or conf < 0:
                continue
            left, top = float(data["left"][i]), float(data["top"][i])
            width, height = float(data["width"][i]), float(data["height"][i])
            words.append(
                RecognizedWord(
                    text=text,
                    confidence=conf,
                    bbox=BoundingBox(left, top, left + width, top + height),
                )
            )
            confidences.append(conf)
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(text)

        raw_text = "\n".join(" ".join(tokens) for tokens in lines.values())
        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

        return RecognitionOutput(words=words, raw_text=raw_text, confidence=avg_confidence)


class EasyOCRRecognizer(Recognizer):
    """EasyOCR wrapper with Arabic language support. Ignores the page mode."""

    @property
    def engine_name(self) -> str:
        return "easyocr"

    def _create_engine(self) -> Any:
        try:
            import easyocr
        except ImportError as e:
            raise EngineInitializationError(
                "easyocr is required. Install with: pip install easyocr"
            ) from e
        return easyocr.Reader(self.config.easyocr_langs, gpu=self.config.easyocr_gpu)

    def _recognize(self, engine: Any, image: Image.Image, mode: PageSegMode) -> RecognitionOutput:
        # detail=1, paragraph=False keeps per-box confidences
        results = engine.readtext(np.asarray(image), detail=1, paragraph=False)

        words: list[RecognizedWord] = []
        texts: list[str] = []
        for item in results:
            if len(item) != 3:
                continue
            polygon, text, conf = item
            text = str(text).strip()
            if not text:
                continue
            xs = [float(p[0]) for p in polygon]
            ys = [float(p[1]) for p in polygon]
            words.append(
                RecognizedWord(
                    text=text,
                    confidence=float(conf) * 100.0,
                    bbox=BoundingBox(min(xs), min(ys), max(xs), max(ys)),
                )
            )
            texts.append(text)

        avg_confidence = (
            sum(w.confidence for w in words) / len(words) if words else 0.0
        )
        return RecognitionOutput(
            words=words, raw_text="\n".join(texts), confidence=avg_confidence
        )


RECOGNIZER_MAP = {
    OCREngine.TESSERACT: TesseractRecognizer,
    OCREngine.EASYOCR: EasyOCRRecognizer,
}


def create_recognizer(config: OCRConfig) -> Recognizer:
    """Build the recognizer for the configured engine. The engine itself is lazy."""
    recognizer_cls = RECOGNIZER_MAP.get(config.engine)
    if recognizer_cls is None:
        raise ValueError(f"Unknown OCR engine: {config.engine}")
    return recognizer_cls(config)
