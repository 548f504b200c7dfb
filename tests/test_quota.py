"""Tests for the monthly translation quota gate."""

from datetime import date

import pytest

from dua_vault.errors import NotProvisioned, QuotaCheckFailed, QuotaConsumeFailed
from dua_vault.quota import InMemoryUsageStore, TranslationQuota, TranslationQuotaGate
from dua_vault.quota.gate import PATH_ATOMIC, PATH_FALLBACK, PATH_UNPROVISIONED

MARCH = date(2026, 3, 1)


def march_17():
    return date(2026, 3, 17)


class BrokenStore(InMemoryUsageStore):
    """Every operation fails with a non-provisioning error."""

    def get_translation_usage(self, user_id, period_start):
        raise RuntimeError("connection refused")

    def consume_translation_quota_atomic(self, user_id, limit, period_start):
        raise RuntimeError("connection refused")

    def upsert_translation_usage(self, user_id, period_start, used):
        raise RuntimeError("connection refused")


class InterleavingStore(InMemoryUsageStore):
    """Runs ``on_read`` once, between reading usage and returning it."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.on_read = None

    def get_translation_usage(self, user_id, period_start):
        value = super().get_translation_usage(user_id, period_start)
        hook, self.on_read = self.on_read, None
        if hook is not None:
            hook()
        return value


class TestTranslationQuota:
    def test_derived_fields(self):
        quota = TranslationQuota(period_start=MARCH, used=3, limit=5)
        assert quota.remaining == 2
        assert quota.allowed

    def test_remaining_never_negative(self):
        quota = TranslationQuota(period_start=MARCH, used=7, limit=5)
        assert quota.remaining == 0
        assert not quota.allowed

    def test_unlimited_always_allowed(self):
        quota = TranslationQuota(period_start=MARCH, used=9, limit=5, unlimited=True)
        assert quota.allowed

    def test_rejects_negative_used(self):
        with pytest.raises(ValueError):
            TranslationQuota(period_start=MARCH, used=-1, limit=5)


class TestCheckQuota:
    def setup_method(self):
        self.store = InMemoryUsageStore()
        self.gate = TranslationQuotaGate(self.store, today=march_17)

    def test_absent_row_counts_as_zero(self):
        quota = self.gate.check_quota("alice", 3)
        assert quota.used == 0
        assert quota.remaining == 3
        assert quota.period_start == MARCH

    def test_reads_current_period_only(self):
        self.store.upsert_translation_usage("alice", date(2026, 2, 1), 3)
        assert self.gate.check_quota("alice", 3).used == 0

    def test_premium_is_unlimited(self):
        gate = TranslationQuotaGate(BrokenStore(), today=march_17)
        quota = gate.check_quota("alice", 3, premium=True)
        assert quota.unlimited
        assert quota.allowed

    def test_unprovisioned_table_is_open(self):
        gate = TranslationQuotaGate(InMemoryUsageStore(provisioned=False), today=march_17)
        quota = gate.check_quota("alice", 3)
        assert quota.allowed
        assert quota.used == 0

    def test_read_failure_raises(self):
        gate = TranslationQuotaGate(BrokenStore(), today=march_17)
        with pytest.raises(QuotaCheckFailed) as exc_info:
            gate.check_quota("alice", 3)
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestConsumeQuota:
    def test_limit_reached_after_three(self):
        store = InMemoryUsageStore()
        gate = TranslationQuotaGate(store, today=march_17)

        used = [gate.consume_quota("alice", 3).quota.used for _ in range(3)]

        assert used == [1, 2, 3]
        assert not gate.check_quota("alice", 3).allowed

    def test_atomic_path_is_race_free(self):
        gate = TranslationQuotaGate(InMemoryUsageStore(), today=march_17)
        consumption = gate.consume_quota("alice", 5)
        assert consumption.path == PATH_ATOMIC
        assert consumption.race_free

    def test_users_counted_separately(self):
        gate = TranslationQuotaGate(InMemoryUsageStore(), today=march_17)
        gate.consume_quota("alice", 5)
        assert gate.consume_quota("bob", 5).quota.used == 1

    def test_fallback_when_atomic_unavailable(self):
        store = InMemoryUsageStore(atomic=False)
        gate = TranslationQuotaGate(store, today=march_17)

        first = gate.consume_quota("alice", 5)
        second = gate.consume_quota("alice", 5)

        assert first.path == PATH_FALLBACK
        assert not first.race_free
        assert second.quota.used == 2
        assert store.get_translation_usage("alice", MARCH) == 2

    def test_fallback_loses_concurrent_increment(self):
        store = InterleavingStore(atomic=False)
        store.upsert_translation_usage("alice", MARCH, 2)
        session_a = TranslationQuotaGate(store, today=march_17)
        session_b = TranslationQuotaGate(store, today=march_17)
        store.on_read = lambda: session_b.consume_quota("alice", 5)

        result = session_a.consume_quota("alice", 5)

        # Both sessions read 2 and wrote 3
        assert result.quota.used == 3
        assert store.get_translation_usage("alice", MARCH) == 3

    def test_unprovisioned_store_records_nothing(self):
        gate = TranslationQuotaGate(InMemoryUsageStore(provisioned=False), today=march_17)
        consumption = gate.consume_quota("alice", 5)
        assert consumption.path == PATH_UNPROVISIONED
        assert consumption.quota.used == 0

    def test_atomic_failure_raises(self):
        gate = TranslationQuotaGate(BrokenStore(), today=march_17)
        with pytest.raises(QuotaConsumeFailed):
            gate.consume_quota("alice", 5)

    def test_fallback_write_failure_raises(self):
        class ReadOnlyStore(InMemoryUsageStore):
            def upsert_translation_usage(self, user_id, period_start, used):
                raise PermissionError("row level security")

        gate = TranslationQuotaGate(ReadOnlyStore(atomic=False), today=march_17)
        with pytest.raises(QuotaConsumeFailed):
            gate.consume_quota("alice", 5)

    def test_new_month_resets(self):
        store = InMemoryUsageStore()
        days = iter([date(2026, 3, 31), date(2026, 4, 1)])
        gate = TranslationQuotaGate(store, today=lambda: next(days))

        gate.consume_quota("alice", 1)
        assert gate.check_quota("alice", 1).allowed


class TestInMemoryUsageStore:
    def test_atomic_disabled_signals_not_provisioned(self):
        with pytest.raises(NotProvisioned):
            InMemoryUsageStore(atomic=False).consume_translation_quota_atomic("a", 5, MARCH)

    def test_reset(self):
        store = InMemoryUsageStore()
        store.upsert_translation_usage("alice", MARCH, 2)
        store.reset("alice")
        assert store.get_translation_usage("alice", MARCH) is None
