"""Treasury state — the single object holding all mutable treasury data.

Nothing in the treasury is a module-level singleton. A TreasuryState is
built once (normally from a TreasuryConfig) and handed by reference to the
components that read and write it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from custody.codec.request_id import RequestIdIssuer
from custody.config import TreasuryConfig
from custody.ledger.registry import TokenRegistry
from custody.ledger.store import LedgerStore
from custody.ratelimit.guard import CapBook, DisbursementGuard
from custody.ratelimit.queue import QueueBook
from custody.revenue.splitter import FeeSchedule


@dataclass
class TreasuryState:
    """All authoritative treasury state."""
    registry: TokenRegistry = field(default_factory=TokenRegistry)
    ledger: LedgerStore = field(default_factory=LedgerStore)
    queues: QueueBook = field(default_factory=QueueBook)
    caps: CapBook = field(default_factory=CapBook)
    fees: FeeSchedule = field(default_factory=FeeSchedule)
    request_ids: RequestIdIssuer = field(default_factory=RequestIdIssuer)

    @classmethod
    def from_config(cls, config: Optional[TreasuryConfig] = None) -> TreasuryState:
        config = config or TreasuryConfig()
        return cls(
            registry=TokenRegistry(reserved=config.reserved_tokens),
            fees=FeeSchedule(config.default_fees),
        )

    def guard(self, window_seconds: int) -> DisbursementGuard:
        return DisbursementGuard(self.queues, self.caps, window_seconds)
