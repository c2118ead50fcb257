#!/usr/bin/env python3
"""Treasury invariant checks against config/treasury_params.json."""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from custody.invariants import check  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(check(ROOT / "config"))
