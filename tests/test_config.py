"""Tests for treasury configuration loading and parameter invariants."""

import json
from pathlib import Path

import pytest

from custody.config import TreasuryConfig
from custody.invariants import check, collect_errors
from custody.state import TreasuryState

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def _params(**overrides) -> dict:
    params = json.loads((CONFIG_DIR / "treasury_params.json").read_text())
    params.update(overrides)
    return params


class TestLoading:
    def test_shipped_config_loads(self) -> None:
        config = TreasuryConfig.from_config_dir(CONFIG_DIR)
        assert "native" in config.reserved_tokens
        assert config.window_seconds == 86400
        assert config.default_fees["native"] == 5

    def test_env_overrides_logging(self) -> None:
        config = TreasuryConfig().with_env_overrides(
            {"CUSTODY_LOG_LEVEL": "debug", "CUSTODY_LOG_JSON": "true"}
        )
        assert config.log_level == "DEBUG"
        assert config.json_logs is True

    def test_env_without_overrides_keeps_values(self) -> None:
        config = TreasuryConfig(log_level="WARNING", json_logs=False)
        assert config.with_env_overrides({}) == config

    def test_bad_boolean_rejected(self) -> None:
        with pytest.raises(ValueError):
            TreasuryConfig().with_env_overrides({"CUSTODY_LOG_JSON": "maybe"})

    def test_bad_window_rejected(self) -> None:
        with pytest.raises(ValueError):
            TreasuryConfig.from_dict({"disbursement": {"WINDOW_SECONDS": 0}})

    def test_env_config_dir(self, tmp_path: Path, monkeypatch) -> None:
        (tmp_path / "treasury_params.json").write_text(
            json.dumps({"reserved_tokens": ["eth"]})
        )
        monkeypatch.setenv("CUSTODY_CONFIG_DIR", str(tmp_path))
        config = TreasuryConfig.from_config_dir()
        assert config.reserved_tokens == ("eth",)

    def test_state_from_config(self) -> None:
        state = TreasuryState.from_config(
            TreasuryConfig(reserved_tokens=("eth",), default_fees={"eth": 3})
        )
        assert state.registry.is_allowed("eth")
        assert state.fees.fee_for("eth") == 3


class TestInvariants:
    def test_shipped_params_pass(self) -> None:
        assert collect_errors(_params()) == []
        assert check(CONFIG_DIR) == 0

    def test_duplicate_reserved_tokens(self) -> None:
        errors = collect_errors(_params(reserved_tokens=["a", "a"]))
        assert any("duplicates" in e for e in errors)

    def test_window_must_be_a_day(self) -> None:
        errors = collect_errors(_params(disbursement={"WINDOW_SECONDS": 3600}))
        assert any("WINDOW_SECONDS" in e for e in errors)

    def test_fee_out_of_range(self) -> None:
        errors = collect_errors(_params(revenue={"DEFAULT_FEE_PERCENT": {"x": 120}}))
        assert any("DEFAULT_FEE_PERCENT[x]" in e for e in errors)

    def test_bad_log_level(self) -> None:
        errors = collect_errors(_params(logging={"LEVEL": "LOUD"}))
        assert any("logging.LEVEL" in e for e in errors)
