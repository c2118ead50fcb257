"""Ledger subsystem — token allow-list and balance counters."""

from custody.ledger.registry import TokenRegistry
from custody.ledger.store import LedgerStore

__all__ = ["LedgerStore", "TokenRegistry"]
