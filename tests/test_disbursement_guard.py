"""Tests for the disbursement guard — proves cap inclusivity, rolling window
accounting, stale-prefix eviction and zero-change rejection."""

import pytest

from custody.errors import (
    DailyLimitExceeded,
    InvalidAmount,
    InvalidCapOrdering,
    NonMonotonicTime,
    TxLimitExceeded,
)
from custody.models.treasury import DAILY_WINDOW_SECONDS, Limits, QueueEntry
from custody.ratelimit.guard import CapBook, DisbursementGuard
from custody.ratelimit.queue import QueueBook

TENANT = 1
TOKEN = "tokenA"
USER = "U"
KEY = (TENANT, TOKEN, USER)


@pytest.fixture
def guard() -> DisbursementGuard:
    return DisbursementGuard(QueueBook(), CapBook())


def _entries(guard: DisbursementGuard) -> list:
    return guard.queues.get(KEY).entries()


class TestCapBook:
    def test_defaults_to_unlimited(self) -> None:
        caps = CapBook()
        assert caps.limits(TENANT, TOKEN) == Limits(None, None)

    def test_zero_resets_to_unlimited(self) -> None:
        caps = CapBook()
        caps.set_tx_cap(TENANT, TOKEN, 10)
        caps.set_tx_cap(TENANT, TOKEN, 0)
        assert caps.limits(TENANT, TOKEN).tx_cap is None
        assert caps.configured() == {}

    def test_daily_below_tx_rejected(self) -> None:
        caps = CapBook()
        caps.set_tx_cap(TENANT, TOKEN, 100)
        with pytest.raises(InvalidCapOrdering):
            caps.set_daily_cap(TENANT, TOKEN, 99)
        assert caps.limits(TENANT, TOKEN) == Limits(tx_cap=100, daily_cap=None)

    def test_tx_above_daily_rejected(self) -> None:
        caps = CapBook()
        caps.set_daily_cap(TENANT, TOKEN, 50)
        with pytest.raises(InvalidCapOrdering):
            caps.set_tx_cap(TENANT, TOKEN, 51)

    def test_equal_caps_allowed(self) -> None:
        caps = CapBook()
        caps.set_tx_cap(TENANT, TOKEN, 50)
        caps.set_daily_cap(TENANT, TOKEN, 50)
        assert caps.limits(TENANT, TOKEN) == Limits(50, 50)

    def test_reset_one_side_lifts_ordering(self) -> None:
        caps = CapBook()
        caps.set_tx_cap(TENANT, TOKEN, 50)
        caps.set_daily_cap(TENANT, TOKEN, 60)
        caps.set_tx_cap(TENANT, TOKEN, 0)
        caps.set_daily_cap(TENANT, TOKEN, 10)
        assert caps.limits(TENANT, TOKEN) == Limits(None, 10)

    def test_propose_stores_nothing(self) -> None:
        caps = CapBook()
        proposed = caps.propose_daily_cap(TENANT, TOKEN, 80)
        assert proposed == Limits(None, 80)
        assert caps.configured() == {}
        caps.apply(TENANT, TOKEN, proposed)
        with pytest.raises(InvalidCapOrdering):
            caps.propose_tx_cap(TENANT, TOKEN, 81)
        assert caps.limits(TENANT, TOKEN) == Limits(None, 80)

    def test_negative_cap_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            CapBook().set_tx_cap(TENANT, TOKEN, -1)


class TestTxCap:
    def test_cap_is_inclusive(self, guard: DisbursementGuard) -> None:
        guard.caps.set_tx_cap(TENANT, TOKEN, 100)
        guard.guard_and_record(TENANT, TOKEN, USER, 100, now=0)
        with pytest.raises(TxLimitExceeded):
            guard.guard_and_record(TENANT, TOKEN, USER, 101, now=1)
        assert _entries(guard) == [QueueEntry(0, 100)]

    def test_rejection_before_first_use_creates_no_queue(
        self, guard: DisbursementGuard
    ) -> None:
        guard.caps.set_tx_cap(TENANT, TOKEN, 10)
        with pytest.raises(TxLimitExceeded):
            guard.guard_and_record(TENANT, TOKEN, USER, 11, now=0)
        assert KEY not in guard.queues


class TestRollingWindow:
    def test_daily_cap_scenario(self, guard: DisbursementGuard) -> None:
        guard.caps.set_daily_cap(TENANT, TOKEN, 120)

        guard.guard_and_record(TENANT, TOKEN, USER, 50, now=0)
        assert _entries(guard) == [QueueEntry(0, 50)]

        plan = guard.guard_and_record(TENANT, TOKEN, USER, 50, now=1000)
        assert plan.fresh_total == 50
        assert _entries(guard) == [QueueEntry(0, 50), QueueEntry(1000, 50)]

        with pytest.raises(DailyLimitExceeded):
            guard.guard_and_record(TENANT, TOKEN, USER, 50, now=2000)
        assert _entries(guard) == [QueueEntry(0, 50), QueueEntry(1000, 50)]

    def test_eviction_scenario(self, guard: DisbursementGuard) -> None:
        guard.caps.set_daily_cap(TENANT, TOKEN, 120)
        guard.guard_and_record(TENANT, TOKEN, USER, 50, now=0)
        guard.guard_and_record(TENANT, TOKEN, USER, 50, now=1000)

        plan = guard.guard_and_record(TENANT, TOKEN, USER, 90, now=90000)
        assert plan.stale_count == 2
        assert plan.fresh_total == 0
        assert plan.remaining_daily == 30
        assert _entries(guard) == [QueueEntry(90000, 90)]

    def test_entry_exactly_at_window_edge_is_fresh(
        self, guard: DisbursementGuard
    ) -> None:
        guard.caps.set_daily_cap(TENANT, TOKEN, 100)
        guard.guard_and_record(TENANT, TOKEN, USER, 60, now=0)
        with pytest.raises(DailyLimitExceeded):
            guard.guard_and_record(TENANT, TOKEN, USER, 41, now=DAILY_WINDOW_SECONDS)
        plan = guard.guard_and_record(TENANT, TOKEN, USER, 41, now=DAILY_WINDOW_SECONDS + 1)
        assert plan.stale_count == 1

    def test_partial_stale_prefix(self, guard: DisbursementGuard) -> None:
        for t in (0, 10, 50000, 80000):
            guard.guard_and_record(TENANT, TOKEN, USER, 1, now=t)
        plan = guard.guard_and_record(TENANT, TOKEN, USER, 1, now=DAILY_WINDOW_SECONDS + 20)
        assert plan.stale_count == 2
        assert plan.fresh_total == 2
        assert [e.timestamp for e in _entries(guard)] == [
            50000, 80000, DAILY_WINDOW_SECONDS + 20
        ]

    def test_daily_cap_is_inclusive(self, guard: DisbursementGuard) -> None:
        guard.caps.set_daily_cap(TENANT, TOKEN, 100)
        guard.guard_and_record(TENANT, TOKEN, USER, 60, now=0)
        plan = guard.guard_and_record(TENANT, TOKEN, USER, 40, now=1)
        assert plan.remaining_daily == 0

    def test_history_recorded_without_caps(self, guard: DisbursementGuard) -> None:
        guard.guard_and_record(TENANT, TOKEN, USER, 500, now=0)
        guard.guard_and_record(TENANT, TOKEN, USER, 500, now=1)
        assert len(_entries(guard)) == 2
        guard.caps.set_daily_cap(TENANT, TOKEN, 1000)
        with pytest.raises(DailyLimitExceeded):
            guard.guard_and_record(TENANT, TOKEN, USER, 1, now=2)

    def test_recipients_have_independent_windows(
        self, guard: DisbursementGuard
    ) -> None:
        guard.caps.set_daily_cap(TENANT, TOKEN, 100)
        guard.guard_and_record(TENANT, TOKEN, "alice", 100, now=0)
        guard.guard_and_record(TENANT, TOKEN, "bob", 100, now=0)
        with pytest.raises(DailyLimitExceeded):
            guard.guard_and_record(TENANT, TOKEN, "alice", 1, now=1)

    def test_rejected_call_does_not_evict(self, guard: DisbursementGuard) -> None:
        guard.caps.set_daily_cap(TENANT, TOKEN, 100)
        guard.guard_and_record(TENANT, TOKEN, USER, 10, now=0)
        with pytest.raises(DailyLimitExceeded):
            guard.guard_and_record(TENANT, TOKEN, USER, 101, now=90000)
        # The stale entry survives until a disbursement commits
        assert _entries(guard) == [QueueEntry(0, 10)]

    def test_time_going_backwards_rejected(self, guard: DisbursementGuard) -> None:
        guard.guard_and_record(TENANT, TOKEN, USER, 10, now=500)
        with pytest.raises(NonMonotonicTime):
            guard.guard_and_record(TENANT, TOKEN, USER, 10, now=499)

    def test_same_timestamp_allowed(self, guard: DisbursementGuard) -> None:
        guard.guard_and_record(TENANT, TOKEN, USER, 10, now=500)
        guard.guard_and_record(TENANT, TOKEN, USER, 10, now=500)
        assert len(_entries(guard)) == 2


class TestEvaluateCommit:
    def test_evaluate_is_pure(self, guard: DisbursementGuard) -> None:
        plan = guard.evaluate(TENANT, TOKEN, USER, 10, now=0)
        assert KEY not in guard.queues
        guard.commit(plan)
        assert _entries(guard) == [QueueEntry(0, 10)]

    def test_remaining_allowance(self, guard: DisbursementGuard) -> None:
        assert guard.remaining_daily_allowance(TENANT, TOKEN, USER, 0) is None
        guard.caps.set_daily_cap(TENANT, TOKEN, 120)
        guard.guard_and_record(TENANT, TOKEN, USER, 50, now=0)
        assert guard.remaining_daily_allowance(TENANT, TOKEN, USER, 10) == 70
        assert guard.remaining_daily_allowance(TENANT, TOKEN, USER, 90000) == 120

    def test_zero_quantity_rejected(self, guard: DisbursementGuard) -> None:
        with pytest.raises(InvalidAmount):
            guard.evaluate(TENANT, TOKEN, USER, 0, now=0)

    def test_custom_window(self) -> None:
        guard = DisbursementGuard(QueueBook(), CapBook(), window_seconds=60)
        guard.caps.set_daily_cap(TENANT, TOKEN, 10)
        guard.guard_and_record(TENANT, TOKEN, USER, 10, now=0)
        plan = guard.guard_and_record(TENANT, TOKEN, USER, 10, now=61)
        assert plan.stale_count == 1

    def test_non_positive_window_rejected(self) -> None:
        with pytest.raises(ValueError):
            DisbursementGuard(QueueBook(), CapBook(), window_seconds=0)
