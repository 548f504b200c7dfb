"""
Monthly translation quota gate.

Per user and period the gate moves through
``Unknown -> Checked(allowed, remaining) -> Consumed(used + 1)``.
A translation is checked before the backend is called and consumed only
after it succeeds.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from dua_vault.errors import NotProvisioned, QuotaCheckFailed, QuotaConsumeFailed
from dua_vault.quota.store import TranslationQuota, UsageStore
from dua_vault.utils import period_start

logger = logging.getLogger(__name__)

PATH_ATOMIC = "atomic"
PATH_FALLBACK = "fallback"
PATH_UNPROVISIONED = "unprovisioned"


@dataclass(frozen=True)
class QuotaConsumption:
    """Quota after a consume, and which write path produced it."""
    quota: TranslationQuota
    path: str

    @property
    def race_free(self) -> bool:
        return self.path == PATH_ATOMIC


class TranslationQuotaGate:
    """Decides whether a translation is allowed and records it afterwards."""

    def __init__(self, store: UsageStore, today: Optional[Callable[[], date]] = None):
        self.store = store
        self._today = today

    def current_period(self) -> date:
        return period_start(self._today() if self._today else None)

    def check_quota(self, user_id: str, limit: int, premium: bool = False) -> TranslationQuota:
        """
        Read current-period usage.

        Raises:
            QuotaCheckFailed: if usage could not be read for any reason other
                than the usage table not being provisioned.
        """
        period = self.current_period()
        if premium:
            return TranslationQuota(period_start=period, used=0, limit=limit, unlimited=True)

        try:
            used = self.store.get_translation_usage(user_id, period)
        except NotProvisioned as e:
            logger.warning("Translation usage not provisioned, treating quota as open: %s", e)
            used = None
        except Exception as e:
            logger.error("Quota check failed for user %s: %s", user_id, e)
            raise QuotaCheckFailed(f"Could not read translation usage: {e}") from e

        quota = TranslationQuota(period_start=period, used=used or 0, limit=limit)
        logger.info(
            "Quota for user %s: %d/%d used, allowed=%s",
            user_id,
            quota.used,
            quota.limit,
            quota.allowed,
        )
        return quota

    def consume_quota(self, user_id: str, limit: int) -> QuotaConsumption:
        """
        Record one successful translation.

        Prefers the store's atomic increment. When that is not provisioned,
        falls back to read-then-write, which is not race-free across
        concurrent sessions of the same user.

        Raises:
            QuotaConsumeFailed: if the usage write failed.
        """
        period = self.current_period()

        try:
            quota = self.store.consume_translation_quota_atomic(user_id, limit, period)
            logger.info("Consumed translation quota (atomic): %d/%d", quota.used, quota.limit)
            return QuotaConsumption(quota=quota, path=PATH_ATOMIC)
        except NotProvisioned:
            logger.debug("Atomic quota function unavailable, using read-then-write")
        except Exception as e:
            logger.error("Atomic quota consume failed for user %s: %s", user_id, e)
            raise QuotaConsumeFailed(f"Could not record translation usage: {e}") from e

        try:
            current = self.store.get_translation_usage(user_id, period) or 0
            used = current + 1
            self.store.upsert_translation_usage(user_id, period, used)
        except NotProvisioned as e:
            logger.warning("Translation usage not provisioned, usage not recorded: %s", e)
            return QuotaConsumption(
                quota=TranslationQuota(period_start=period, used=0, limit=limit),
                path=PATH_UNPROVISIONED,
            )
        except Exception as e:
            logger.error("Quota consume fallback failed for user %s: %s", user_id, e)
            raise QuotaConsumeFailed(f"Could not record translation usage: {e}") from e

        quota = TranslationQuota(period_start=period, used=used, limit=limit)
        logger.warning(
            "Consumed translation quota via non-atomic fallback: %d/%d", quota.used, quota.limit
        )
        return QuotaConsumption(quota=quota, path=PATH_FALLBACK)
