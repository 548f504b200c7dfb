"""
DuaVault Capture Pipeline
=========================

Turns a photograph of an Arabic dua into a cleaned Arabic transcription,
an English translation and a topical category.

Architecture:
    Image → Preprocessing Variants → OCR → Right-to-Left Layout Reconstruction
        → Best-Variant Selection → AI Cleanup → Quota-Gated AI Translation

The OCR passes escalate from the original image to stronger re-renderings
and stop early once the text is long enough. Generative backend calls are
cached, bounded by timeouts and retried only on transient failures.
"""

__version__ = "1.0.0"

from dua_vault.config import PipelineConfig


def __getattr__(name: str):
    """Lazy import for heavy modules that require Pillow/numpy."""
    if name == "DuaCapturePipeline":
        from dua_vault.pipeline import DuaCapturePipeline
        return DuaCapturePipeline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["DuaCapturePipeline", "PipelineConfig"]
