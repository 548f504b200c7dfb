"""
Generative backend access for OCR cleanup, translation and categorization.
"""

from dua_vault.ai.schemas import Category, NormalizedRecord

__all__ = [
    "AiNormalizationClient",
    "Category",
    "NormalizedRecord",
    "create_backend",
]


def __getattr__(name: str):
    if name == "AiNormalizationClient":
        from dua_vault.ai.client import AiNormalizationClient
        return AiNormalizationClient
    if name == "create_backend":
        from dua_vault.ai.backends import create_backend
        return create_backend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
