"""Ledger store — per-tenant and operator-wide token balances.

The ledger is pure bookkeeping over the shared custodial pool. It never
moves external assets. The service layer pairs every mutation with the
external transfer primitive and only mutates the ledger once the transfer
is confirmed, so a failed transfer leaves the ledger untouched.

Invariants:
- Balances are unsigned and bounded by MAX_QUANTITY.
- A balance is created on first credit, persists at zero and is never
  deleted.
- Tenant balances and operator balances live in separate namespaces.
"""

from __future__ import annotations

from typing import Dict, Hashable, Tuple

from custody.errors import InsufficientBalance, Overflow
from custody.models.treasury import MAX_QUANTITY, require_positive


class LedgerStore:
    """In-memory balance counters for tenants and the operator.

    Usage:
        ledger = LedgerStore()
        ledger.credit(1, "usdc", 500)
        ledger.debit(1, "usdc", 200)
        ledger.balance_of(1, "usdc")         # 300
        ledger.credit_operator("usdc", 25)
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[int, Hashable], int] = {}
        self._operator: Dict[Hashable, int] = {}

    # ------------------------------------------------------------------
    # Tenant balances
    # ------------------------------------------------------------------

    def credit(self, tenant: int, token: Hashable, amount: int) -> int:
        """Add to a tenant balance. Returns the new balance.

        Raises:
            InvalidAmount: If amount is not a positive integer.
            Overflow: If the new balance would exceed MAX_QUANTITY.
        """
        require_positive(amount)
        key = (tenant, token)
        new_balance = self._checked_add(self._balances.get(key, 0), amount, key)
        self._balances[key] = new_balance
        return new_balance

    def debit(self, tenant: int, token: Hashable, amount: int) -> int:
        """Subtract from a tenant balance. Returns the new balance.

        Raises:
            InvalidAmount: If amount is not a positive integer.
            InsufficientBalance: If the balance is below amount.
        """
        require_positive(amount)
        key = (tenant, token)
        new_balance = self._checked_sub(self._balances.get(key, 0), amount, key)
        self._balances[key] = new_balance
        return new_balance

    def check_credit(self, tenant: int, token: Hashable, amount: int) -> None:
        """Raise exactly what credit() would, without changing anything."""
        require_positive(amount)
        key = (tenant, token)
        self._checked_add(self._balances.get(key, 0), amount, key)

    def check_debit(self, tenant: int, token: Hashable, amount: int) -> None:
        """Raise exactly what debit() would, without changing anything."""
        require_positive(amount)
        key = (tenant, token)
        self._checked_sub(self._balances.get(key, 0), amount, key)

    def balance_of(self, tenant: int, token: Hashable) -> int:
        return self._balances.get((tenant, token), 0)

    def can_debit(self, tenant: int, token: Hashable, amount: int) -> bool:
        return self.balance_of(tenant, token) >= amount

    def balances(self, tenant: int) -> Dict[Hashable, int]:
        """Snapshot of every token balance a tenant has ever held."""
        return {
            token: balance
            for (owner, token), balance in self._balances.items()
            if owner == tenant
        }

    # ------------------------------------------------------------------
    # Operator balances
    # ------------------------------------------------------------------

    def credit_operator(self, token: Hashable, amount: int) -> int:
        require_positive(amount)
        new_balance = self._checked_add(self._operator.get(token, 0), amount, token)
        self._operator[token] = new_balance
        return new_balance

    def debit_operator(self, token: Hashable, amount: int) -> int:
        require_positive(amount)
        new_balance = self._checked_sub(self._operator.get(token, 0), amount, token)
        self._operator[token] = new_balance
        return new_balance

    def check_credit_operator(self, token: Hashable, amount: int) -> None:
        require_positive(amount)
        self._checked_add(self._operator.get(token, 0), amount, token)

    def check_debit_operator(self, token: Hashable, amount: int) -> None:
        require_positive(amount)
        self._checked_sub(self._operator.get(token, 0), amount, token)

    def operator_balance_of(self, token: Hashable) -> int:
        return self._operator.get(token, 0)

    def can_debit_operator(self, token: Hashable, amount: int) -> bool:
        return self.operator_balance_of(token) >= amount

    def operator_balances(self) -> Dict[Hashable, int]:
        return dict(self._operator)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def total_liability(self, token: Hashable) -> int:
        """Sum owed to all tenants plus the operator for a token.

        This is what the custodial pool must hold for the token.
        """
        tenants = sum(
            balance for (_, held), balance in self._balances.items() if held == token
        )
        return tenants + self._operator.get(token, 0)

    def tenant_count(self) -> int:
        return len({tenant for tenant, _ in self._balances})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _checked_add(balance: int, amount: int, key: object) -> int:
        result = balance + amount
        if result > MAX_QUANTITY:
            raise Overflow(
                f"Credit of {amount} overflows balance {balance} for {key}",
                balance=balance,
                amount=amount,
            )
        return result

    @staticmethod
    def _checked_sub(balance: int, amount: int, key: object) -> int:
        if balance < amount:
            raise InsufficientBalance(
                f"Balance {balance} is below debit {amount} for {key}",
                balance=balance,
                amount=amount,
            )
        return balance - amount
