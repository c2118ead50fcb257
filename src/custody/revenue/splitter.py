"""Revenue splitter — divides sale proceeds between tenant and operator.

    operator_share = floor(gross * fee_percent / 100)
    tenant_share   = gross - operator_share

Rounding always favours the tenant. If no fee is configured for a token
the whole gross goes to the tenant. That outcome equals a configured 0%
fee, but the two are kept apart: an unset fee is None, not 0.

Invariant: tenant_share + operator_share == gross
"""

from __future__ import annotations

from typing import Dict, Hashable, Mapping, Optional

from custody.errors import InvalidFeePercent
from custody.models.treasury import RevenueSplit, require_non_negative

MAX_FEE_PERCENT = 100


def split(gross: int, fee_percent: Optional[int]) -> RevenueSplit:
    """Split gross proceeds using fee_percent (None = unset)."""
    require_non_negative(gross, "gross")
    if fee_percent is None:
        return RevenueSplit(
            gross=gross, tenant_share=gross, operator_share=0, fee_percent=None
        )
    check_percent(fee_percent)
    operator_share = gross * fee_percent // 100
    return RevenueSplit(
        gross=gross,
        tenant_share=gross - operator_share,
        operator_share=operator_share,
        fee_percent=fee_percent,
    )


def check_percent(fee_percent: int) -> int:
    if isinstance(fee_percent, bool) or not isinstance(fee_percent, int):
        raise InvalidFeePercent(f"Fee percent must be an integer, got {fee_percent!r}")
    if not 0 <= fee_percent <= MAX_FEE_PERCENT:
        raise InvalidFeePercent(
            f"Fee percent must be in [0, {MAX_FEE_PERCENT}], got {fee_percent}",
            fee_percent=fee_percent,
        )
    return fee_percent


class FeeSchedule:
    """Operator fee per token. A token with no entry has an unset fee.

    Usage:
        fees = FeeSchedule({"usdc": 5})
        fees.split("usdc", 1000)     # tenant 950, operator 50
        fees.split("dai", 1000)      # tenant 1000, operator 0 (unset)
    """

    def __init__(self, initial: Optional[Mapping[Hashable, int]] = None) -> None:
        self._fees: Dict[Hashable, int] = {}
        for token, pct in (initial or {}).items():
            self.set_fee(token, pct)

    def set_fee(self, token: Hashable, fee_percent: int) -> None:
        self._fees[token] = check_percent(fee_percent)

    def clear_fee(self, token: Hashable) -> bool:
        """Remove a token's fee. Returns whether one was configured."""
        return self._fees.pop(token, None) is not None

    def fee_for(self, token: Hashable) -> Optional[int]:
        return self._fees.get(token)

    def has_fee(self, token: Hashable) -> bool:
        return token in self._fees

    def split(self, token: Hashable, gross: int) -> RevenueSplit:
        return split(gross, self.fee_for(token))

    def as_dict(self) -> Dict[Hashable, int]:
        return dict(self._fees)
