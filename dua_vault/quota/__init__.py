"""
Monthly translation quota accounting.
"""

from dua_vault.quota.gate import QuotaConsumption, TranslationQuotaGate
from dua_vault.quota.store import InMemoryUsageStore, TranslationQuota, UsageStore

__all__ = [
    "InMemoryUsageStore",
    "QuotaConsumption",
    "TranslationQuota",
    "TranslationQuotaGate",
    "UsageStore",
]
