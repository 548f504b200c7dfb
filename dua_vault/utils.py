"""
Utility functions shared across the dua capture pipeline.
"""

import logging
import re
from datetime import date, datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

# Arabic, Arabic Supplement, Arabic Extended-A, Presentation Forms A and B
ARABIC_RANGE = r'\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF'

# Tatweel, Arabic question mark, Arabic comma, Arabic semicolon
ARABIC_PUNCTUATION = r'\u0640\u061F\u060C\u061B'

_ARABIC_CHAR = re.compile(f'[{ARABIC_RANGE}]')
_WHITESPACE = re.compile(r'\s+')


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def has_arabic(text: str) -> bool:
    """Check if text contains at least one Arabic-range character."""
    return bool(text) and _ARABIC_CHAR.search(text) is not None


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to a single space and trim."""
    return _WHITESPACE.sub(' ', text or '').strip()


def period_start(today: Optional[date] = None) -> date:
    """First day of the calendar month (UTC) containing ``today``."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today.replace(day=1)
