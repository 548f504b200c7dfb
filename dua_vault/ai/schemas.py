"""
Response shapes expected from the generative backend.

The ``*_SCHEMA`` dicts are sent with each request; the pydantic models
validate what comes back.
"""

import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger(__name__)


class Category(str, Enum):
    MORNING_EVENING = "Morning/Evening"
    TRAVEL = "Travel"
    FOOD = "Food"
    SLEEP = "Sleep"
    PROTECTION = "Protection"
    GRATITUDE = "Gratitude"
    GENERAL = "General"
    OTHER = "Other"

    @classmethod
    def coerce(cls, value: object) -> "Category":
        """Map a backend value to a known category, defaulting to General."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for category in cls:
            if text.lower() in (category.value.lower(), category.name.lower()):
                return category
        logger.debug("Unknown category %r coerced to %s", value, cls.GENERAL.value)
        return cls.GENERAL


CATEGORY_VALUES = [c.value for c in Category]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @field_validator("arabic", check_fields=False)
    @classmethod
    def _arabic_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("arabic must not be empty")
        return value


class NormalizedRecord(_Payload):
    """Cleaned Arabic, English translation and category for one dua."""
    arabic: str
    translation: str = ""
    # Required: only an unrecognised value falls back to General
    category: Category

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: object) -> Category:
        return Category.coerce(value)


class TranslatedRecord(NormalizedRecord):
    translation: str

    @field_validator("translation")
    @classmethod
    def _translation_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("translation must not be empty")
        return value


class CleanupPayload(_Payload):
    arabic: str


def _string(description: str) -> dict:
    return {"type": "STRING", "description": description}


ARABIC_FIELD = _string(
    "The Arabic text. Include all diacritics (harakat) if visible."
)
TRANSLATION_FIELD = _string(
    "A faithful English translation of the spiritual meaning."
)
CATEGORY_FIELD = {
    "type": "STRING",
    "description": "The most appropriate category.",
    "enum": CATEGORY_VALUES,
}

DUA_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "arabic": ARABIC_FIELD,
        "translation": TRANSLATION_FIELD,
        "category": CATEGORY_FIELD,
    },
    "required": ["arabic", "translation", "category"],
}

ARABIC_ONLY_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "arabic": ARABIC_FIELD,
        "category": CATEGORY_FIELD,
    },
    "required": ["arabic", "category"],
}

CLEANUP_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {"arabic": ARABIC_FIELD},
    "required": ["arabic"],
}
