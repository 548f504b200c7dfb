"""
OCR subsystem for Arabic text extraction from photographs.

Renders escalating preprocessing variants, recognizes each one and rebuilds
right-to-left reading order from word boxes.
"""

from dua_vault.ocr.layout import LayoutReconstructor, is_valid_extraction


def __getattr__(name: str):
    if name == "ImagePreprocessor":
        from dua_vault.ocr.preprocessor import ImagePreprocessor
        return ImagePreprocessor
    if name == "VariantSelector":
        from dua_vault.ocr.selector import VariantSelector
        return VariantSelector
    if name == "create_recognizer":
        from dua_vault.ocr.engine import create_recognizer
        return create_recognizer
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ImagePreprocessor",
    "LayoutReconstructor",
    "VariantSelector",
    "create_recognizer",
    "is_valid_extraction",
]
