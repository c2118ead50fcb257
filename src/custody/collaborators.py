"""Collaborator contracts — what the treasury core consumes from outside.

The treasury never moves assets or decides who a tenant is. Those jobs
belong to collaborators behind these Protocols:

- AssetTransfer: the physical transfer primitive. The service calls it
  before committing any ledger change; a False return or an exception
  aborts the operation with state unchanged.
- TenantDirectory: confirms a tenant exists. Authorization (owner, admin,
  server roles) happens in the routing layer before the core is called.

InMemoryCustody and StaticTenantDirectory are reference implementations
used by the CLI simulator and the tests.
"""

from __future__ import annotations

from typing import Dict, Hashable, Iterable, Optional, Protocol, Set, Tuple, runtime_checkable


POOL_ADDRESS = "custody:pool"
"""Address of the shared custodial pool inside InMemoryCustody."""


@runtime_checkable
class AssetTransfer(Protocol):
    """Moves `amount` of `token` from `source` to `destination`.

    Returns True once the transfer is confirmed, False if it was refused.
    """

    def transfer(
        self, token: Hashable, source: str, destination: str, amount: int
    ) -> bool:
        ...


@runtime_checkable
class TenantDirectory(Protocol):
    """Answers whether a tenant id refers to an existing tenant."""

    def exists(self, tenant: int) -> bool:
        ...


class InMemoryCustody:
    """Holdings per (address, token) with an optional failure switch.

    Addresses without a recorded holding are treated as external wallets
    with unlimited funds, so deposits from users always succeed unless
    the switch is set. The pool address is always tracked exactly.
    """

    def __init__(self, pool_address: str = POOL_ADDRESS) -> None:
        self.pool_address = pool_address
        self._holdings: Dict[Tuple[str, Hashable], int] = {}
        self._tracked: Set[str] = {pool_address}
        self.fail_next = False
        self.transfers: list[Tuple[Hashable, str, str, int]] = []

    def track(self, address: str, holdings: Optional[Dict[Hashable, int]] = None) -> None:
        """Start tracking an address's holdings exactly."""
        self._tracked.add(address)
        for token, amount in (holdings or {}).items():
            self._holdings[(address, token)] = amount

    def holding(self, address: str, token: Hashable) -> int:
        return self._holdings.get((address, token), 0)

    def transfer(
        self, token: Hashable, source: str, destination: str, amount: int
    ) -> bool:
        if self.fail_next:
            self.fail_next = False
            return False
        if source in self._tracked:
            available = self.holding(source, token)
            if available < amount:
                return False
            self._holdings[(source, token)] = available - amount
        if destination in self._tracked:
            self._holdings[(destination, token)] = self.holding(destination, token) + amount
        self.transfers.append((token, source, destination, amount))
        return True


class StaticTenantDirectory:
    """A fixed set of known tenant ids."""

    def __init__(self, tenants: Iterable[int] = ()) -> None:
        self._tenants: Set[int] = set(tenants)

    def add(self, tenant: int) -> None:
        self._tenants.add(tenant)

    def exists(self, tenant: int) -> bool:
        return tenant in self._tenants
