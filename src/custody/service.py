"""Treasury service — unified facade over the custodial treasury core.

This is the primary interface for programmatic access. It orchestrates:
- Token allow-list (register, unregister)
- Tenant and operator balances (deposit, credit, debit, operator payout)
- Guarded disbursements (per-transaction and rolling daily caps)
- Marketplace purchases (revenue split between tenant and operator)
- Request identifiers (issue, encode, decode, one-shot consumption)

All operations produce typed ServiceResults. A failed operation never
raises a TreasuryError to the caller and never leaves partial state:
each mutating call validates everything first, then invokes the external
transfer primitive, then appends its audit event, and only then commits
ledger and queue changes. If the audit log refuses the event, any transfer
already made is sent back and the call fails with EVENT_LOG_FAILURE.

Calls are serialised. A call that arrives while another mutation is in
flight (reentrant or concurrent) is rejected with REENTRANT_CALL.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Hashable, Iterator, Optional, Tuple
from uuid import uuid4

from custody.codec import request_id as request_codec
from custody.collaborators import (
    POOL_ADDRESS,
    AssetTransfer,
    InMemoryCustody,
    TenantDirectory,
)
from custody.config import TreasuryConfig
from custody.errors import (
    AuditFailure,
    InsufficientBalance,
    InvalidAddress,
    ReentrantCall,
    TransferFailed,
    TreasuryError,
    UnknownTenant,
)
from custody.logging import get_logger
from custody.models.treasury import (
    DisbursementRecord,
    Limits,
    require_address,
    require_positive,
    require_tenant,
)
from custody.persistence.event_log import EventKind, EventLog, EventRecord
from custody.revenue import splitter
from custody.state import TreasuryState

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    error_code: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)


class TreasuryService:
    """Custodial treasury facade.

    Usage:
        service = TreasuryService(TreasuryConfig.from_config_dir())
        service.register_token("usdc")
        service.deposit(1, "usdc", 1_000, source="0xabc")
        service.set_daily_cap(1, "usdc", 120)
        result = service.disburse(1, "usdc", "0xuser", 50, now=0)
        if not result.success:
            print(result.error_code, result.errors)
    """

    def __init__(
        self,
        config: Optional[TreasuryConfig] = None,
        state: Optional[TreasuryState] = None,
        transfer: Optional[AssetTransfer] = None,
        tenants: Optional[TenantDirectory] = None,
        event_log: Optional[EventLog] = None,
        clock: Optional[Callable[[], int]] = None,
        pool_address: str = POOL_ADDRESS,
    ) -> None:
        self._config = config or TreasuryConfig()
        self._state = state or TreasuryState.from_config(self._config)
        self._guard = self._state.guard(self._config.window_seconds)
        self._transfer: AssetTransfer = transfer or InMemoryCustody(pool_address)
        self._tenants = tenants
        self._event_log = event_log or EventLog()
        self._clock = clock or (lambda: int(time.time()))
        self._pool = pool_address
        self._lock = threading.Lock()

    @property
    def state(self) -> TreasuryState:
        return self._state

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    # ------------------------------------------------------------------
    # Token registry
    # ------------------------------------------------------------------

    def register_token(self, token: Hashable) -> ServiceResult:
        def op() -> dict[str, Any]:
            registry = self._state.registry
            registry.check_register(token)
            self._audit(EventKind.TOKEN_REGISTERED, "operator", {"token": str(token)})
            registry.register(token)
            return {"token": token, "registered": registry.count}
        return self._run("register_token", op)

    def unregister_token(self, token: Hashable) -> ServiceResult:
        def op() -> dict[str, Any]:
            registry = self._state.registry
            registry.check_unregister(token)
            self._audit(EventKind.TOKEN_UNREGISTERED, "operator", {"token": str(token)})
            registry.unregister(token)
            return {"token": token, "registered": registry.count}
        return self._run("unregister_token", op)

    def is_token_allowed(self, token: Hashable) -> bool:
        return self._state.registry.is_allowed(token)

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def deposit(
        self, tenant: int, token: Hashable, amount: int, source: str,
    ) -> ServiceResult:
        """Pull funds from source into the pool and credit the tenant."""
        def op() -> dict[str, Any]:
            self._require_tenant(tenant)
            self._state.registry.require_allowed(token)
            require_positive(amount)
            self._require_external(source, "source")
            self._state.ledger.check_credit(tenant, token, amount)

            self._external_transfer(token, source, self._pool, amount)
            self._audit_transfer(
                EventKind.DEPOSIT_RECORDED,
                f"tenant:{tenant}",
                {"token": str(token), "amount": str(amount), "source": source},
                (token, source, self._pool, amount),
            )
            balance = self._state.ledger.credit(tenant, token, amount)
            return {"tenant": tenant, "token": token, "balance": balance}
        return self._run("deposit", op)

    def credit(self, tenant: int, token: Hashable, amount: int) -> ServiceResult:
        """Bookkeeping credit with no external transfer."""
        def op() -> dict[str, Any]:
            self._require_tenant(tenant)
            self._state.registry.require_allowed(token)
            self._state.ledger.check_credit(tenant, token, amount)
            self._audit(
                EventKind.BALANCE_CREDITED,
                f"tenant:{tenant}",
                {"token": str(token), "amount": str(amount)},
            )
            balance = self._state.ledger.credit(tenant, token, amount)
            return {"tenant": tenant, "token": token, "balance": balance}
        return self._run("credit", op)

    def debit(self, tenant: int, token: Hashable, amount: int) -> ServiceResult:
        """Bookkeeping debit with no external transfer."""
        def op() -> dict[str, Any]:
            self._require_tenant(tenant)
            self._state.registry.require_allowed(token)
            self._state.ledger.check_debit(tenant, token, amount)
            self._audit(
                EventKind.BALANCE_DEBITED,
                f"tenant:{tenant}",
                {"token": str(token), "amount": str(amount)},
            )
            balance = self._state.ledger.debit(tenant, token, amount)
            return {"tenant": tenant, "token": token, "balance": balance}
        return self._run("debit", op)

    def balance_of(self, tenant: int, token: Hashable) -> int:
        return self._state.ledger.balance_of(tenant, token)

    def operator_balance_of(self, token: Hashable) -> int:
        return self._state.ledger.operator_balance_of(token)

    # ------------------------------------------------------------------
    # Disbursements
    # ------------------------------------------------------------------

    def disburse(
        self,
        tenant: int,
        token: Hashable,
        recipient: str,
        quantity: int,
        now: Optional[int] = None,
        request_id: Optional[int] = None,
    ) -> ServiceResult:
        """Pay quantity out of a tenant's balance to recipient, under the caps.

        Order: validate, evaluate caps, check balance, transfer, audit, commit.
        If request_id is given it must belong to the tenant and be unused;
        it is consumed only when the disbursement commits.
        """
        def op() -> dict[str, Any]:
            at = self._now(now)
            self._require_tenant(tenant)
            self._state.registry.require_allowed(token)
            self._require_external(recipient, "recipient")
            if request_id is not None:
                self._state.request_ids.check(request_id, tenant)

            plan = self._guard.evaluate(tenant, token, recipient, quantity, at)
            ledger = self._state.ledger
            if not ledger.can_debit(tenant, token, quantity):
                raise InsufficientBalance(
                    f"Tenant {tenant} holds {ledger.balance_of(tenant, token)} "
                    f"{token}, cannot disburse {quantity}",
                    tenant=tenant,
                    quantity=quantity,
                )

            self._external_transfer(token, self._pool, recipient, quantity)
            self._audit_transfer(
                EventKind.DISBURSEMENT_RECORDED,
                f"tenant:{tenant}",
                {
                    "token": str(token),
                    "recipient": recipient,
                    "quantity": str(quantity),
                    "timestamp": at,
                    "request_id": (
                        request_codec.to_hex(request_id) if request_id is not None else None
                    ),
                },
                (token, self._pool, recipient, quantity),
            )

            self._guard.commit(plan)
            ledger.debit(tenant, token, quantity)
            if request_id is not None:
                self._state.request_ids.consume(request_id, tenant)

            record = DisbursementRecord(
                tenant=tenant,
                token=token,
                recipient=recipient,
                quantity=quantity,
                timestamp=at,
                evicted=plan.stale_count,
                remaining_daily=plan.remaining_daily,
                request_id=request_id,
            )
            logger.info(
                "disbursement_recorded",
                tenant=tenant,
                token=str(token),
                recipient=recipient,
                quantity=quantity,
                evicted=plan.stale_count,
                remaining_daily=plan.remaining_daily,
            )
            return asdict(record)
        return self._run("disburse", op)

    def guard_and_record_disbursement(
        self,
        tenant: int,
        token: Hashable,
        recipient: str,
        quantity: int,
        now: Optional[int] = None,
    ) -> ServiceResult:
        """Apply the caps and record history without moving any balance."""
        def op() -> dict[str, Any]:
            at = self._now(now)
            self._require_tenant(tenant)
            self._state.registry.require_allowed(token)
            require_address(recipient)
            plan = self._guard.evaluate(tenant, token, recipient, quantity, at)
            self._audit(
                EventKind.DISBURSEMENT_GUARDED,
                f"tenant:{tenant}",
                {
                    "token": str(token),
                    "recipient": recipient,
                    "quantity": str(quantity),
                    "timestamp": at,
                },
            )
            self._guard.commit(plan)
            return {
                "fresh_total": plan.fresh_total,
                "evicted": plan.stale_count,
                "remaining_daily": plan.remaining_daily,
            }
        return self._run("guard_and_record_disbursement", op)

    def set_tx_cap(self, tenant: int, token: Hashable, quantity: int) -> ServiceResult:
        """Set the per-transaction cap; 0 resets it to unlimited."""
        def op() -> dict[str, Any]:
            self._require_tenant(tenant)
            limits = self._state.caps.propose_tx_cap(tenant, token, quantity)
            self._audit(
                EventKind.TX_CAP_SET,
                f"tenant:{tenant}",
                {"token": str(token), "quantity": str(quantity)},
            )
            return _limits_data(self._state.caps.apply(tenant, token, limits))
        return self._run("set_tx_cap", op)

    def set_daily_cap(self, tenant: int, token: Hashable, quantity: int) -> ServiceResult:
        """Set the rolling daily cap; 0 resets it to unlimited."""
        def op() -> dict[str, Any]:
            self._require_tenant(tenant)
            limits = self._state.caps.propose_daily_cap(tenant, token, quantity)
            self._audit(
                EventKind.DAILY_CAP_SET,
                f"tenant:{tenant}",
                {"token": str(token), "quantity": str(quantity)},
            )
            return _limits_data(self._state.caps.apply(tenant, token, limits))
        return self._run("set_daily_cap", op)

    def limits(self, tenant: int, token: Hashable) -> Limits:
        return self._state.caps.limits(tenant, token)

    def remaining_daily_allowance(
        self, tenant: int, token: Hashable, recipient: str, now: Optional[int] = None,
    ) -> Optional[int]:
        return self._guard.remaining_daily_allowance(
            tenant, token, recipient, self._now(now)
        )

    # ------------------------------------------------------------------
    # Revenue
    # ------------------------------------------------------------------

    def set_fee(self, token: Hashable, fee_percent: int) -> ServiceResult:
        def op() -> dict[str, Any]:
            splitter.check_percent(fee_percent)
            self._audit(
                EventKind.FEE_SET, "operator",
                {"token": str(token), "fee_percent": fee_percent},
            )
            self._state.fees.set_fee(token, fee_percent)
            return {"token": token, "fee_percent": fee_percent}
        return self._run("set_fee", op)

    def clear_fee(self, token: Hashable) -> ServiceResult:
        def op() -> dict[str, Any]:
            fees = self._state.fees
            had_fee = fees.has_fee(token)
            self._audit(EventKind.FEE_CLEARED, "operator", {"token": str(token)})
            fees.clear_fee(token)
            return {"token": token, "cleared": had_fee}
        return self._run("clear_fee", op)

    def record_purchase(
        self, tenant: int, token: Hashable, gross: int, buyer: str,
    ) -> ServiceResult:
        """Collect gross from buyer and split it between tenant and operator."""
        def op() -> dict[str, Any]:
            self._require_tenant(tenant)
            self._state.registry.require_allowed(token)
            require_positive(gross, "gross")
            self._require_external(buyer, "buyer")

            result = self._state.fees.split(token, gross)
            ledger = self._state.ledger
            if result.tenant_share:
                ledger.check_credit(tenant, token, result.tenant_share)
            if result.operator_share:
                ledger.check_credit_operator(token, result.operator_share)

            self._external_transfer(token, buyer, self._pool, gross)
            self._audit_transfer(
                EventKind.PURCHASE_RECORDED,
                f"tenant:{tenant}",
                {
                    "token": str(token),
                    "buyer": buyer,
                    "gross": str(gross),
                    "tenant_share": str(result.tenant_share),
                    "operator_share": str(result.operator_share),
                },
                (token, buyer, self._pool, gross),
            )

            if result.tenant_share:
                ledger.credit(tenant, token, result.tenant_share)
            if result.operator_share:
                ledger.credit_operator(token, result.operator_share)

            logger.info(
                "purchase_recorded",
                tenant=tenant,
                token=str(token),
                gross=gross,
                tenant_share=result.tenant_share,
                operator_share=result.operator_share,
                fee_configured=result.fee_configured,
            )
            return asdict(result)
        return self._run("record_purchase", op)

    def withdraw_operator(
        self, token: Hashable, amount: int, recipient: str,
    ) -> ServiceResult:
        """Pay operator revenue out of the pool."""
        def op() -> dict[str, Any]:
            self._state.registry.require_allowed(token)
            self._require_external(recipient, "recipient")
            ledger = self._state.ledger
            ledger.check_debit_operator(token, amount)

            self._external_transfer(token, self._pool, recipient, amount)
            self._audit_transfer(
                EventKind.OPERATOR_WITHDRAWAL,
                "operator",
                {"token": str(token), "amount": str(amount), "recipient": recipient},
                (token, self._pool, recipient, amount),
            )
            balance = ledger.debit_operator(token, amount)
            return {"token": token, "balance": balance}
        return self._run("withdraw_operator", op)

    def split_revenue(self, gross: int, fee_percent: Optional[int]) -> ServiceResult:
        def op() -> dict[str, Any]:
            result = splitter.split(gross, fee_percent)
            return {**asdict(result), "fee_configured": result.fee_configured}
        return self._pure(op)

    # ------------------------------------------------------------------
    # Request identifiers
    # ------------------------------------------------------------------

    def issue_request_id(self, tenant: int) -> ServiceResult:
        def op() -> dict[str, Any]:
            self._require_tenant(tenant)
            issuer = self._state.request_ids
            rid = issuer.next_id(tenant)
            self._audit(
                EventKind.REQUEST_ID_ISSUED,
                f"tenant:{tenant}",
                {"request_id": request_codec.to_hex(rid)},
            )
            issuer.issue(tenant)
            sequence, _ = request_codec.decode(rid)
            return {
                "request_id": rid,
                "hex": request_codec.to_hex(rid),
                "sequence": sequence,
            }
        return self._run("issue_request_id", op)

    def encode_request_id(self, sequence: int, tenant: int) -> ServiceResult:
        def op() -> dict[str, Any]:
            rid = request_codec.encode(sequence, tenant)
            return {"request_id": rid, "hex": request_codec.to_hex(rid)}
        return self._pure(op)

    def decode_tenant(self, request_id: int) -> ServiceResult:
        return self._pure(lambda: {"tenant": request_codec.decode_tenant(request_id)})

    def decode_sequence(self, request_id: int) -> ServiceResult:
        return self._pure(
            lambda: {"sequence": request_codec.decode_sequence(request_id)}
        )

    def decode_request_id(self, request_id: int) -> ServiceResult:
        def op() -> dict[str, Any]:
            sequence, tenant = request_codec.decode(request_id)
            return {"tenant": tenant, "sequence": sequence}
        return self._pure(op)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Return a treasury-wide summary."""
        state = self._state
        return {
            "tokens": {
                "registered": [str(t) for t in state.registry.tokens()],
                "reserved": sorted(str(t) for t in state.registry.reserved),
            },
            "ledger": {
                "tenants": state.ledger.tenant_count(),
                "operator": {
                    str(t): str(b) for t, b in state.ledger.operator_balances().items()
                },
            },
            "rate_limits": {
                "window_seconds": self._guard.window_seconds,
                "configured": len(state.caps.configured()),
                "queues": len(state.queues),
                "queued_entries": state.queues.total_entries(),
            },
            "fees": {str(t): p for t, p in state.fees.as_dict().items()},
            "events": self._event_log.count,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise ReentrantCall("Another treasury mutation is in flight")
        try:
            yield
        finally:
            self._lock.release()

    def _run(self, operation: str, op: Callable[[], dict[str, Any]]) -> ServiceResult:
        """Run a mutating operation serially and convert failures to results."""
        try:
            with self._exclusive():
                data = op()
        except TreasuryError as e:
            logger.warning("treasury_operation_rejected", operation=operation, **e.to_dict())
            return ServiceResult(success=False, errors=[e.message], error_code=e.code)
        return ServiceResult(success=True, data=data)

    def _pure(self, op: Callable[[], dict[str, Any]]) -> ServiceResult:
        try:
            return ServiceResult(success=True, data=op())
        except TreasuryError as e:
            return ServiceResult(success=False, errors=[e.message], error_code=e.code)

    def _require_tenant(self, tenant: int) -> None:
        require_tenant(tenant)
        if self._tenants is not None and not self._tenants.exists(tenant):
            raise UnknownTenant(f"Unknown tenant: {tenant}", tenant=tenant)

    def _require_external(self, address: str, what: str) -> None:
        """Counterparties of a transfer are never the pool itself."""
        require_address(address, what)
        if address == self._pool:
            raise InvalidAddress(
                f"{what} address cannot be the custodial pool", address=address
            )

    def _external_transfer(
        self, token: Hashable, source: str, destination: str, amount: int,
    ) -> None:
        try:
            confirmed = self._transfer.transfer(token, source, destination, amount)
        except Exception as e:
            raise TransferFailed(
                f"Transfer of {amount} {token} from {source} to {destination} "
                f"raised {type(e).__name__}: {e}",
                token=token,
                amount=amount,
            ) from e
        if not confirmed:
            raise TransferFailed(
                f"Transfer of {amount} {token} from {source} to {destination} "
                f"was not confirmed",
                token=token,
                amount=amount,
            )

    def _now(self, now: Optional[int]) -> int:
        return self._clock() if now is None else now

    def _audit(self, kind: EventKind, actor_id: str, payload: dict[str, Any]) -> None:
        """Append the audit event for a mutation that is about to commit.

        Called after every check has passed and before any state changes,
        so a log failure leaves the treasury untouched.
        """
        event = EventRecord.create(
            event_id=f"evt_{uuid4().hex[:16]}",
            event_kind=kind,
            actor_id=actor_id,
            payload=payload,
        )
        try:
            self._event_log.append(event)
        except (ValueError, OSError) as e:
            raise AuditFailure(f"Event log failure: {e}", event_kind=kind.value) from e

    def _audit_transfer(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        transfer: Tuple[Hashable, str, str, int],
    ) -> None:
        """Audit a confirmed transfer, sending it back if the log refuses."""
        try:
            self._audit(kind, actor_id, payload)
        except AuditFailure:
            token, source, destination, amount = transfer
            try:
                self._external_transfer(token, destination, source, amount)
            except TransferFailed as e:
                logger.error(
                    "transfer_reversal_failed",
                    token=str(token),
                    source=source,
                    destination=destination,
                    amount=amount,
                    error=e.message,
                )
            raise


def _limits_data(limits: Limits) -> dict[str, Any]:
    return {"tx_cap": limits.tx_cap, "daily_cap": limits.daily_cap}
