"""Treasury configuration — loaded from config/treasury_params.json.

The parameter file holds the reserved token set, the disbursement window
and the default operator fee per token. Logging settings can be overridden
from the environment (a .env file at the project root is honoured):

    CUSTODY_CONFIG_DIR   directory containing treasury_params.json
    CUSTODY_LOG_LEVEL    DEBUG / INFO / WARNING / ERROR
    CUSTODY_LOG_JSON     "1"/"true" for JSON logs, "0"/"false" for console
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from custody.models.treasury import DAILY_WINDOW_SECONDS

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_DIR = ROOT / "config"
PARAMS_FILENAME = "treasury_params.json"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class TreasuryConfig:
    """Static treasury parameters.

    Attributes:
        reserved_tokens: Tokens that are always allowed, never registered.
        window_seconds: Width of the rolling disbursement window.
        default_fees: Operator fee percent per token, seeded into the
            fee schedule at service construction.
        log_level: Minimum log level.
        json_logs: True for JSON, False for console, None to auto-detect.
    """
    reserved_tokens: Tuple[str, ...] = ()
    window_seconds: int = DAILY_WINDOW_SECONDS
    default_fees: Mapping[str, int] = field(default_factory=dict)
    log_level: str = "INFO"
    json_logs: Optional[bool] = None

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> TreasuryConfig:
        disbursement = params.get("disbursement", {})
        revenue = params.get("revenue", {})
        logging_params = params.get("logging", {})
        window = disbursement.get("WINDOW_SECONDS", DAILY_WINDOW_SECONDS)
        if not isinstance(window, int) or window <= 0:
            raise ValueError(f"WINDOW_SECONDS must be a positive integer, got {window!r}")
        return cls(
            reserved_tokens=tuple(params.get("reserved_tokens", ())),
            window_seconds=window,
            default_fees=dict(revenue.get("DEFAULT_FEE_PERCENT", {})),
            log_level=str(logging_params.get("LEVEL", "INFO")).upper(),
            json_logs=logging_params.get("JSON"),
        )

    @classmethod
    def from_config_dir(cls, config_dir: Optional[Path] = None) -> TreasuryConfig:
        """Load treasury_params.json, then apply environment overrides."""
        load_dotenv(ROOT / ".env")
        if config_dir is None:
            env_dir = os.getenv("CUSTODY_CONFIG_DIR")
            config_dir = Path(env_dir) if env_dir else DEFAULT_CONFIG_DIR
        params = json.loads((config_dir / PARAMS_FILENAME).read_text(encoding="utf-8"))
        config = cls.from_dict(params)
        return config.with_env_overrides(os.environ)

    def with_env_overrides(self, env: Mapping[str, str]) -> TreasuryConfig:
        level = env.get("CUSTODY_LOG_LEVEL")
        json_flag = _parse_bool(env.get("CUSTODY_LOG_JSON"))
        return TreasuryConfig(
            reserved_tokens=self.reserved_tokens,
            window_seconds=self.window_seconds,
            default_fees=self.default_fees,
            log_level=level.upper() if level else self.log_level,
            json_logs=self.json_logs if json_flag is None else json_flag,
        )


def _parse_bool(raw: Optional[str]) -> Optional[bool]:
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"Cannot interpret {raw!r} as a boolean")
