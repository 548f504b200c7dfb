"""Tests for variant image rendering."""

import base64
import io

import numpy as np
import pytest
from PIL import Image

from dua_vault.config import PreprocessVariant
from dua_vault.errors import PreprocessingUnavailable
from dua_vault.ocr.preprocessor import ImagePreprocessor


def _png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class TestImagePreprocessor:
    def setup_method(self):
        self.preprocessor = ImagePreprocessor()
        self.source = Image.new("RGB", (100, 50), (200, 100, 50))

    def test_identity_variant_keeps_image(self):
        out = self.preprocessor.render(self.source, PreprocessVariant())
        assert out.size == (100, 50)
        assert out.mode == "RGB"
        assert out is not self.source

    def test_scale_rounds_dimensions(self):
        out = self.preprocessor.render(self.source, PreprocessVariant(scale=1.4))
        assert out.size == (140, 70)

    def test_scale_never_below_one_pixel(self):
        out = self.preprocessor.render(self.source, PreprocessVariant(scale=0.001))
        assert out.size == (1, 1)

    def test_grayscale_conversion(self):
        out = self.preprocessor.render(
            self.source, PreprocessVariant(grayscale=True, contrast_percent=100)
        )
        assert out.mode == "L"

    def test_contrast_curve(self):
        gray = Image.new("L", (4, 1))
        gray.putdata([0, 100, 128, 200])
        out = self.preprocessor.render(gray, PreprocessVariant(contrast_percent=200))
        # (v - 128) * 2 + 128, clamped
        assert list(out.getdata()) == [0, 72, 128, 255]

    def test_zero_contrast_is_flat_gray(self):
        gray = Image.new("L", (3, 1))
        gray.putdata([0, 50, 255])
        out = self.preprocessor.render(gray, PreprocessVariant(contrast_percent=0))
        assert set(out.getdata()) == {128}

    def test_deterministic(self):
        variant = PreprocessVariant(scale=1.8, contrast_percent=175, grayscale=True)
        first = np.asarray(self.preprocessor.render(self.source, variant))
        second = np.asarray(self.preprocessor.render(self.source, variant))
        assert np.array_equal(first, second)

    def test_load_from_bytes(self):
        out = self.preprocessor.load(_png_bytes(self.source))
        assert out.size == (100, 50)

    def test_load_from_data_url(self):
        encoded = base64.b64encode(_png_bytes(self.source)).decode("ascii")
        out = self.preprocessor.load(f"data:image/png;base64,{encoded}")
        assert out.size == (100, 50)

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "dua.png"
        self.source.save(path)
        assert self.preprocessor.load(str(path)).size == (100, 50)
        assert self.preprocessor.load(path).size == (100, 50)

    def test_load_from_array(self):
        array = np.zeros((20, 30, 3), dtype=np.uint8)
        assert self.preprocessor.load(array).size == (30, 20)

    def test_rgba_converted_to_rgb(self):
        rgba = Image.new("RGBA", (10, 10))
        assert self.preprocessor.load(rgba).mode == "RGB"

    def test_undecodable_bytes(self):
        with pytest.raises(PreprocessingUnavailable):
            self.preprocessor.render(b"not an image", PreprocessVariant(scale=1.4))

    def test_unsupported_source(self):
        with pytest.raises(PreprocessingUnavailable):
            self.preprocessor.load(12345)

    def test_encode_produces_jpeg(self):
        payload = self.preprocessor.encode(self.source)
        assert payload[:2] == b"\xff\xd8"
