"""Treasury parameter invariant checks.

Validates config/treasury_params.json before a treasury is started from it.
Exposed through `custody check-invariants` and tools/check_invariants.py.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from custody.config import DEFAULT_CONFIG_DIR, PARAMS_FILENAME
from custody.models.treasury import DAILY_WINDOW_SECONDS
from custody.revenue.splitter import MAX_FEE_PERCENT


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def collect_errors(params: dict) -> list[str]:
    errors: list[str] = []

    # --- Reserved tokens ---
    reserved = params.get("reserved_tokens", [])
    if not isinstance(reserved, list):
        errors.append("reserved_tokens must be a list")
        reserved = []
    if len(set(reserved)) != len(reserved):
        errors.append("reserved_tokens must not contain duplicates")
    for token in reserved:
        if not isinstance(token, str) or not token:
            errors.append(f"reserved token must be a non-empty string, got {token!r}")

    # --- Disbursement window ---
    window = params.get("disbursement", {}).get("WINDOW_SECONDS")
    if not isinstance(window, int) or isinstance(window, bool) or window <= 0:
        errors.append(f"WINDOW_SECONDS must be a positive integer, got {window!r}")
    elif window != DAILY_WINDOW_SECONDS:
        errors.append(
            f"WINDOW_SECONDS must be {DAILY_WINDOW_SECONDS} (rolling 24h), got {window}"
        )

    # --- Default fees ---
    fees = params.get("revenue", {}).get("DEFAULT_FEE_PERCENT", {})
    if not isinstance(fees, dict):
        errors.append("DEFAULT_FEE_PERCENT must be an object")
        fees = {}
    for token, pct in fees.items():
        if not isinstance(pct, int) or isinstance(pct, bool):
            errors.append(f"DEFAULT_FEE_PERCENT[{token}] must be an integer")
        elif not 0 <= pct <= MAX_FEE_PERCENT:
            errors.append(
                f"DEFAULT_FEE_PERCENT[{token}] must be in [0, {MAX_FEE_PERCENT}], got {pct}"
            )

    # --- Logging ---
    level = params.get("logging", {}).get("LEVEL", "INFO")
    if str(level).upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        errors.append(f"logging.LEVEL is not a log level: {level!r}")

    return errors


def check(config_dir: Optional[Path] = None) -> int:
    path = (config_dir or DEFAULT_CONFIG_DIR) / PARAMS_FILENAME
    errors = collect_errors(load_json(path))
    if errors:
        print("Treasury invariant checks failed:")
        for err in errors:
            print(f"- {err}")
        return 1
    print("Treasury invariant checks passed.")
    return 0
