"""Treasury models — quantities, queue entries, limits, splits, disbursements.

Token quantities are unsigned integers in base units. No floats and no
Decimal: every token amount is an exact integer bounded by MAX_QUANTITY.

Sentinels are explicit:
- An unlimited cap is None, never 0.
- An unset fee is None, distinct from a configured 0%.
- A never-touched queue is tracked by an initialized flag, not by emptiness.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Optional, Tuple

from custody.errors import InvalidAddress, InvalidAmount, InvalidTenant


MAX_QUANTITY = 2**256 - 1
"""Largest representable token quantity (unsigned 256-bit)."""

MAX_TENANT_ID = 2**32 - 1
"""Tenant ids are packed into 32 bits of a request identifier."""

DAILY_WINDOW_SECONDS = 86400
"""Width of the rolling disbursement window, in time units."""

QueueKey = Tuple[int, Hashable, str]


@dataclass(frozen=True)
class QueueEntry:
    """A single disbursement event in a recipient's history queue."""
    timestamp: int
    quantity: int

    def age_at(self, now: int) -> int:
        return now - self.timestamp


@dataclass(frozen=True)
class Limits:
    """Per (tenant, token) disbursement caps. None means unlimited.

    Invariant: when both caps are set, daily_cap >= tx_cap.
    """
    tx_cap: Optional[int] = None
    daily_cap: Optional[int] = None

    @property
    def is_unlimited(self) -> bool:
        return self.tx_cap is None and self.daily_cap is None

    @property
    def is_consistent(self) -> bool:
        if self.tx_cap is None or self.daily_cap is None:
            return True
        return self.daily_cap >= self.tx_cap


UNLIMITED = Limits()


@dataclass(frozen=True)
class RevenueSplit:
    """Outcome of splitting sale proceeds between tenant and operator.

    Invariant: tenant_share + operator_share == gross
    """
    gross: int
    tenant_share: int
    operator_share: int
    fee_percent: Optional[int]

    @property
    def fee_configured(self) -> bool:
        return self.fee_percent is not None


@dataclass(frozen=True)
class DisbursementPlan:
    """Result of evaluating a disbursement against the guard, before commit.

    Evaluation is pure. Committing the plan evicts `stale_count` entries
    from the front of the queue and enqueues (now, quantity).
    """
    key: QueueKey
    quantity: int
    now: int
    stale_count: int
    fresh_total: int
    limits: Limits

    @property
    def remaining_daily(self) -> Optional[int]:
        """Allowance left in the window after this disbursement, or None."""
        if self.limits.daily_cap is None:
            return None
        return self.limits.daily_cap - self.fresh_total - self.quantity


@dataclass(frozen=True)
class DisbursementRecord:
    """A committed disbursement, as reported to the caller."""
    tenant: int
    token: Hashable
    recipient: str
    quantity: int
    timestamp: int
    evicted: int
    remaining_daily: Optional[int]
    request_id: Optional[int] = None


# ------------------------------------------------------------------
# Validation helpers
# ------------------------------------------------------------------

def require_positive(amount: int, what: str = "amount") -> int:
    """Reject non-integer, zero, negative or out-of-range quantities."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{what} must be an integer, got {amount!r}")
    if amount <= 0:
        raise InvalidAmount(f"{what} must be positive, got {amount}", amount=amount)
    if amount > MAX_QUANTITY:
        raise InvalidAmount(f"{what} exceeds 256-bit range", amount=amount)
    return amount


def require_non_negative(amount: int, what: str = "amount") -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{what} must be an integer, got {amount!r}")
    if amount < 0 or amount > MAX_QUANTITY:
        raise InvalidAmount(f"{what} out of range: {amount}", amount=amount)
    return amount


def require_tenant(tenant: int) -> int:
    """Tenant ids are positive and fit in 32 bits; 0 means unset."""
    if isinstance(tenant, bool) or not isinstance(tenant, int):
        raise InvalidTenant(f"Tenant id must be an integer, got {tenant!r}")
    if tenant <= 0 or tenant > MAX_TENANT_ID:
        raise InvalidTenant(f"Invalid tenant id: {tenant}", tenant=tenant)
    return tenant


def require_address(address: str, what: str = "recipient") -> str:
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddress(f"{what} address must be a non-empty string")
    return address
