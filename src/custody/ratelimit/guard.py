"""Disbursement guard — per-transaction and rolling daily caps per recipient.

Before a disbursement of `quantity` to `recipient` for (tenant, token) at
time `now` is recorded:

1. If a per-transaction cap is set and quantity exceeds it → TxLimitExceeded.
2. The (tenant, token, recipient) queue is created on first use.
3. The queue is scanned newest → oldest, summing entries whose age
   (now - timestamp) is <= the window. Entries are enqueued in
   non-decreasing time order, so the first stale entry met on this scan
   marks a contiguous stale prefix at the front of the queue.
4. Exactly that stale prefix is evicted.
5. If a daily cap is set and fresh_total + quantity exceeds it
   → DailyLimitExceeded.
6. (now, quantity) is enqueued, whether or not any cap is configured, so
   later cap changes have history to evaluate against.

Caps are inclusive (quantity == cap passes). An unset cap is unlimited.
The window is rolling from `now`, not a calendar day.

Evaluation and commit are separate steps. evaluate() is pure and returns
a DisbursementPlan; commit() applies it. A rejected disbursement therefore
changes nothing, including the stale prefix, which is evicted on the next
successful commit instead.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Hashable, Optional, Tuple

from custody.errors import (
    DailyLimitExceeded,
    InvalidCapOrdering,
    NonMonotonicTime,
    TxLimitExceeded,
)
from custody.models.treasury import (
    DAILY_WINDOW_SECONDS,
    UNLIMITED,
    DisbursementPlan,
    Limits,
    QueueEntry,
    require_non_negative,
    require_positive,
)
from custody.ratelimit.queue import QueueBook, RateLimitQueue


class CapBook:
    """Per (tenant, token) disbursement caps.

    Setters accept 0 as "reset to unlimited"; internally an unlimited cap
    is None.
    """

    def __init__(self) -> None:
        self._limits: Dict[Tuple[int, Hashable], Limits] = {}

    def limits(self, tenant: int, token: Hashable) -> Limits:
        return self._limits.get((tenant, token), UNLIMITED)

    def set_tx_cap(self, tenant: int, token: Hashable, quantity: int) -> Limits:
        return self.apply(tenant, token, self.propose_tx_cap(tenant, token, quantity))

    def set_daily_cap(self, tenant: int, token: Hashable, quantity: int) -> Limits:
        return self.apply(tenant, token, self.propose_daily_cap(tenant, token, quantity))

    def propose_tx_cap(self, tenant: int, token: Hashable, quantity: int) -> Limits:
        """Limits that set_tx_cap() would store, without storing them."""
        limits = replace(self.limits(tenant, token), tx_cap=_cap_or_none(quantity))
        return _checked_ordering(tenant, token, limits)

    def propose_daily_cap(self, tenant: int, token: Hashable, quantity: int) -> Limits:
        limits = replace(self.limits(tenant, token), daily_cap=_cap_or_none(quantity))
        return _checked_ordering(tenant, token, limits)

    def apply(self, tenant: int, token: Hashable, limits: Limits) -> Limits:
        """Store limits returned by a propose_* call."""
        _checked_ordering(tenant, token, limits)
        if limits.is_unlimited:
            self._limits.pop((tenant, token), None)
        else:
            self._limits[(tenant, token)] = limits
        return limits

    def configured(self) -> Dict[Tuple[int, Hashable], Limits]:
        return dict(self._limits)


def _checked_ordering(tenant: int, token: Hashable, limits: Limits) -> Limits:
    if not limits.is_consistent:
        raise InvalidCapOrdering(
            f"Daily cap {limits.daily_cap} is below per-transaction cap "
            f"{limits.tx_cap} for tenant {tenant}, token {token}",
            tenant=tenant,
            token=token,
        )
    return limits


def _cap_or_none(quantity: int) -> Optional[int]:
    require_non_negative(quantity, "cap")
    return quantity or None


class DisbursementGuard:
    """Applies caps using a QueueBook of per-recipient history.

    Usage:
        guard = DisbursementGuard(QueueBook(), CapBook())
        guard.caps.set_daily_cap(1, "usdc", 120)
        guard.guard_and_record(1, "usdc", "alice", 50, now=0)
        guard.guard_and_record(1, "usdc", "alice", 50, now=1000)
        guard.guard_and_record(1, "usdc", "alice", 50, now=2000)  # DailyLimitExceeded
    """

    def __init__(
        self,
        queues: QueueBook,
        caps: CapBook,
        window_seconds: int = DAILY_WINDOW_SECONDS,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self._queues = queues
        self._caps = caps
        self._window = window_seconds

    @property
    def caps(self) -> CapBook:
        return self._caps

    @property
    def queues(self) -> QueueBook:
        return self._queues

    @property
    def window_seconds(self) -> int:
        return self._window

    def evaluate(
        self,
        tenant: int,
        token: Hashable,
        recipient: str,
        quantity: int,
        now: int,
    ) -> DisbursementPlan:
        """Check a disbursement against the caps without changing state.

        Raises:
            TxLimitExceeded: quantity is above the per-transaction cap.
            DailyLimitExceeded: the rolling window total would exceed the
                daily cap.
            NonMonotonicTime: now is earlier than the newest recorded entry.
        """
        require_positive(quantity, "quantity")
        limits = self._caps.limits(tenant, token)
        if limits.tx_cap is not None and quantity > limits.tx_cap:
            raise TxLimitExceeded(
                f"Quantity {quantity} exceeds per-transaction cap {limits.tx_cap}",
                quantity=quantity,
                tx_cap=limits.tx_cap,
            )

        key = QueueBook.key(tenant, token, recipient)
        stale_count, fresh_total = self._scan(self._queues.get(key), now)

        if limits.daily_cap is not None and fresh_total + quantity > limits.daily_cap:
            raise DailyLimitExceeded(
                f"Disbursing {quantity} would bring the rolling total to "
                f"{fresh_total + quantity}, above daily cap {limits.daily_cap}",
                quantity=quantity,
                fresh_total=fresh_total,
                daily_cap=limits.daily_cap,
            )

        return DisbursementPlan(
            key=key,
            quantity=quantity,
            now=now,
            stale_count=stale_count,
            fresh_total=fresh_total,
            limits=limits,
        )

    def commit(self, plan: DisbursementPlan) -> QueueEntry:
        """Evict the stale prefix and record the disbursement."""
        queue = self._queues.get_or_create(plan.key)
        for _ in range(plan.stale_count):
            queue.dequeue()
        return queue.enqueue(plan.now, plan.quantity)

    def guard_and_record(
        self,
        tenant: int,
        token: Hashable,
        recipient: str,
        quantity: int,
        now: int,
    ) -> DisbursementPlan:
        plan = self.evaluate(tenant, token, recipient, quantity, now)
        self.commit(plan)
        return plan

    def fresh_total(
        self, tenant: int, token: Hashable, recipient: str, now: int
    ) -> int:
        """Sum of disbursements to recipient inside the window ending at now."""
        queue = self._queues.get(QueueBook.key(tenant, token, recipient))
        return self._scan(queue, now)[1]

    def remaining_daily_allowance(
        self, tenant: int, token: Hashable, recipient: str, now: int
    ) -> Optional[int]:
        """How much more recipient may receive right now, or None if unlimited."""
        limits = self._caps.limits(tenant, token)
        if limits.daily_cap is None:
            return None
        used = self.fresh_total(tenant, token, recipient, now)
        return max(0, limits.daily_cap - used)

    def _scan(self, queue: Optional[RateLimitQueue], now: int) -> Tuple[int, int]:
        """Return (stale_count, fresh_total) for a queue at time now."""
        if queue is None or queue.is_empty():
            return 0, 0

        newest = queue.peek_back()
        if now < newest.timestamp:
            raise NonMonotonicTime(
                f"Time {now} precedes the newest recorded entry at {newest.timestamp}",
                now=now,
                newest=newest.timestamp,
            )

        fresh_total = 0
        for offset in range(queue.length() - 1, -1, -1):
            entry = queue.at(offset)
            if entry.age_at(now) > self._window:
                # Everything at or before this offset is stale as well
                return offset + 1, fresh_total
            fresh_total += entry.quantity
        return 0, fresh_total
