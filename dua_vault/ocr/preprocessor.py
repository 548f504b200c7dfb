"""
Deterministic image re-rendering for successive OCR attempts.

Each variant scales the source image, then optionally converts it to
grayscale and applies a contrast boost. Identical inputs always produce
identical pixels, so a variant can be re-run and compared.
"""

import base64
import binascii
import io
import logging
import os
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from dua_vault.config import PreprocessVariant
from dua_vault.errors import PreprocessingUnavailable

logger = logging.getLogger(__name__)

SourceImage = Union[bytes, bytearray, str, os.PathLike, Image.Image, np.ndarray]

JPEG_QUALITY = 92


class ImagePreprocessor:
    """
    Renders a source image through a ``PreprocessVariant``.

    Order of operations:
    1. Decode the source (bytes, data URL, base64, path, PIL image, array)
    2. Scale with bilinear resampling
    3. Grayscale conversion
    4. Contrast filter with the same curve as CSS ``contrast(p%)``
    """

    def load(self, source: SourceImage) -> Image.Image:
        """Decode any supported source into a PIL image."""
        try:
            if isinstance(source, Image.Image):
                img = source.copy()
            elif isinstance(source, np.ndarray):
                img = Image.fromarray(source)
            elif isinstance(source, (bytes, bytearray)):
                img = Image.open(io.BytesIO(bytes(source)))
            elif isinstance(source, str) and source.startswith("data:"):
                _, _, payload = source.partition(",")
                img = Image.open(io.BytesIO(base64.b64decode(payload)))
            elif isinstance(source, (str, os.PathLike)) and os.path.exists(source):
                img = Image.open(source)
            elif isinstance(source, str):
                img = Image.open(io.BytesIO(base64.b64decode(source, validate=True)))
            else:
                raise PreprocessingUnavailable(
                    f"Unsupported image source type: {type(source).__name__}"
                )
            img.load()
        except PreprocessingUnavailable:
            raise
        except (UnidentifiedImageError, OSError, ValueError, binascii.Error) as e:
            raise PreprocessingUnavailable(f"Could not decode image: {e}") from e

        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        return img

    def render(self, source: SourceImage, variant: PreprocessVariant) -> Image.Image:
        """
        Produce the re-rendering of ``source`` described by ``variant``.

        Raises:
            PreprocessingUnavailable: if the image cannot be decoded or the
                output surface cannot be created.
        """
        img = self.load(source)
        if variant.is_identity:
            return img

        try:
            if variant.scale != 1.0:
                width = max(1, round(img.width * variant.scale))
                height = max(1, round(img.height * variant.scale))
                img = img.resize((width, height), Image.Resampling.BILINEAR)
                logger.debug(
                    "Scaled image x%.2f to %dx%d", variant.scale, width, height
                )

            if variant.grayscale:
                img = img.convert("L")

            if variant.contrast_percent != 100:
                img = self._apply_contrast(img, variant.contrast_percent)
        except (MemoryError, ValueError, OSError) as e:
            raise PreprocessingUnavailable(
                f"Could not render variant {variant}: {e}"
            ) from e

        return img

    @staticmethod
    def _apply_contrast(img: Image.Image, percent: int) -> Image.Image:
        """Linear contrast around mid-gray: v' = (v - 128) * p/100 + 128."""
        factor = percent / 100.0
        levels = np.arange(256, dtype=np.float64)
        lut = np.clip(np.rint((levels - 128.0) * factor + 128.0), 0, 255)
        table = lut.astype(np.uint8).tolist()
        bands = len(img.getbands())
        logger.debug("Applied contrast %d%%", percent)
        return img.point(table * bands)

    @staticmethod
    def encode(img: Image.Image) -> bytes:
        """Encode an image as JPEG for transmission to the generative backend."""
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=JPEG_QUALITY)
        return buf.getvalue()

    @staticmethod
    def to_array(img: Image.Image) -> np.ndarray:
        return np.asarray(img)
