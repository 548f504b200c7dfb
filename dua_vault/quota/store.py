"""
Persistence boundary for translation usage.

The surrounding application supplies the real store. ``InMemoryUsageStore``
implements the same contract for development and tests.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional

from dua_vault.errors import NotProvisioned

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranslationQuota:
    """Usage for one user and period. ``remaining`` and ``allowed`` are derived."""
    period_start: date
    used: int
    limit: int
    unlimited: bool = False

    def __post_init__(self):
        if self.used < 0:
            raise ValueError(f"used must be >= 0, got {self.used}")
        if self.limit <= 0:
            raise ValueError(f"limit must be > 0, got {self.limit}")

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    @property
    def allowed(self) -> bool:
        return self.unlimited or self.remaining > 0


class UsageStore(ABC):
    """
    Contract the quota gate needs from persistence.

    Implementations raise ``NotProvisioned`` when the backing table or
    function does not exist, and any other exception for real failures.
    """

    @abstractmethod
    def get_translation_usage(self, user_id: str, period_start: date) -> Optional[int]:
        """Return the used count, or None when no row exists yet."""
        ...

    @abstractmethod
    def consume_translation_quota_atomic(
        self, user_id: str, limit: int, period_start: date
    ) -> TranslationQuota:
        """Increment usage and return the new quota in one server-side step."""
        ...

    @abstractmethod
    def upsert_translation_usage(self, user_id: str, period_start: date, used: int) -> None:
        ...


class InMemoryUsageStore(UsageStore):
    """
    Process-local usage store.

    ``atomic=False`` makes the atomic path report NotProvisioned so callers
    exercise the read-then-write fallback; ``provisioned=False`` does the
    same for every operation.
    """

    def __init__(self, atomic: bool = True, provisioned: bool = True):
        self.atomic = atomic
        self.provisioned = provisioned
        self._rows: dict[tuple[str, date], int] = {}
        self._lock = threading.Lock()

    def _require_provisioned(self, what: str) -> None:
        if not self.provisioned:
            raise NotProvisioned(f"{what} does not exist")

    def get_translation_usage(self, user_id: str, period_start: date) -> Optional[int]:
        self._require_provisioned("translation_usage table")
        with self._lock:
            return self._rows.get((user_id, period_start))

    def consume_translation_quota_atomic(
        self, user_id: str, limit: int, period_start: date
    ) -> TranslationQuota:
        self._require_provisioned("translation_usage table")
        if not self.atomic:
            raise NotProvisioned("consume_translation_quota function does not exist")
        with self._lock:
            used = self._rows.get((user_id, period_start), 0) + 1
            self._rows[(user_id, period_start)] = used
        return TranslationQuota(period_start=period_start, used=used, limit=limit)

    def upsert_translation_usage(self, user_id: str, period_start: date, used: int) -> None:
        self._require_provisioned("translation_usage table")
        with self._lock:
            self._rows[(user_id, period_start)] = used

    def reset(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            if user_id is None:
                self._rows.clear()
            else:
                for key in [k for k in self._rows if k[0] == user_id]:
                    del self._rows[key]
