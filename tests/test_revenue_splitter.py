"""Tests for the revenue splitter — proves shares always sum to gross."""

import pytest

from custody.errors import InvalidAmount, InvalidFeePercent
from custody.revenue.splitter import FeeSchedule, split


class TestSplit:
    def test_five_percent(self) -> None:
        result = split(1000, 5)
        assert (result.tenant_share, result.operator_share) == (950, 50)
        assert result.fee_configured

    def test_unset_fee(self) -> None:
        result = split(1000, None)
        assert (result.tenant_share, result.operator_share) == (1000, 0)
        assert not result.fee_configured

    def test_zero_fee_matches_unset_outcome(self) -> None:
        configured = split(1000, 0)
        unset = split(1000, None)
        assert configured.tenant_share == unset.tenant_share
        assert configured.operator_share == unset.operator_share
        assert configured.fee_percent == 0
        assert unset.fee_percent is None

    def test_rounding_favours_tenant(self) -> None:
        result = split(999, 5)
        assert result.operator_share == 49
        assert result.tenant_share == 950

    def test_full_fee(self) -> None:
        result = split(77, 100)
        assert (result.tenant_share, result.operator_share) == (0, 77)

    @pytest.mark.parametrize("gross", [0, 1, 19, 99, 101, 12345, 2**200 + 3])
    @pytest.mark.parametrize("fee", [None, 0, 1, 33, 50, 99, 100])
    def test_shares_sum_to_gross(self, gross: int, fee) -> None:
        result = split(gross, fee)
        assert result.tenant_share + result.operator_share == gross
        assert result.tenant_share >= 0
        assert result.operator_share >= 0

    @pytest.mark.parametrize("fee", [-1, 101])
    def test_out_of_range_percent(self, fee: int) -> None:
        with pytest.raises(InvalidFeePercent):
            split(1000, fee)

    def test_negative_gross_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            split(-1, 5)


class TestFeeSchedule:
    def test_seeded_from_mapping(self) -> None:
        fees = FeeSchedule({"usdc": 5})
        assert fees.fee_for("usdc") == 5
        assert fees.fee_for("dai") is None

    def test_split_by_token(self) -> None:
        fees = FeeSchedule({"usdc": 5})
        assert fees.split("usdc", 1000).operator_share == 50
        assert fees.split("dai", 1000).operator_share == 0

    def test_clear_fee(self) -> None:
        fees = FeeSchedule({"usdc": 5})
        assert fees.clear_fee("usdc") is True
        assert fees.clear_fee("usdc") is False
        assert not fees.has_fee("usdc")

    def test_zero_fee_is_configured(self) -> None:
        fees = FeeSchedule()
        fees.set_fee("usdc", 0)
        assert fees.has_fee("usdc")
        assert fees.fee_for("usdc") == 0

    def test_invalid_seed_rejected(self) -> None:
        with pytest.raises(InvalidFeePercent):
            FeeSchedule({"usdc": 150})
