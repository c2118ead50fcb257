"""Custody CLI — command-line interface for the treasury core.

Usage:
    python -m custody.cli status
    python -m custody.cli encode-request-id --sequence 42 --tenant 7
    python -m custody.cli decode-request-id --id 0x0000000700...002a
    python -m custody.cli split --gross 1000 --fee 5
    python -m custody.cli simulate scenario.json
    python -m custody.cli check-invariants

A simulation file replays operations against a fresh in-memory treasury:

    {
      "tokens": ["usdc"],
      "operations": [
        {"op": "deposit", "tenant": 1, "token": "usdc", "amount": 500, "source": "0xabc"},
        {"op": "set_daily_cap", "tenant": 1, "token": "usdc", "quantity": 120},
        {"op": "disburse", "tenant": 1, "token": "usdc", "recipient": "0xu", "quantity": 50, "now": 0}
      ]
    }
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from custody.codec.request_id import from_hex
from custody.config import DEFAULT_CONFIG_DIR, TreasuryConfig
from custody.logging import configure_logging
from custody.service import ServiceResult, TreasuryService

SIMULATION_OPS = {
    "register_token",
    "unregister_token",
    "deposit",
    "credit",
    "debit",
    "disburse",
    "guard_and_record_disbursement",
    "set_tx_cap",
    "set_daily_cap",
    "set_fee",
    "clear_fee",
    "record_purchase",
    "withdraw_operator",
    "issue_request_id",
}


def _make_service(config_dir: Path) -> TreasuryService:
    config = TreasuryConfig.from_config_dir(config_dir)
    configure_logging(level=config.log_level, json_format=config.json_logs)
    return TreasuryService(config)


def _parse_int(text: str) -> int:
    return int(text, 0)


def _result_json(result: ServiceResult) -> dict[str, Any]:
    return {
        "success": result.success,
        "error_code": result.error_code,
        "errors": result.errors,
        "data": result.data,
    }


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args.config)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_encode_request_id(args: argparse.Namespace) -> int:
    service = _make_service(args.config)
    result = service.encode_request_id(args.sequence, args.tenant)
    if result.success:
        print(result.data["hex"])
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_decode_request_id(args: argparse.Namespace) -> int:
    service = _make_service(args.config)
    result = service.decode_request_id(args.id)
    if result.success:
        print(json.dumps(result.data, indent=2))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_split(args: argparse.Namespace) -> int:
    service = _make_service(args.config)
    result = service.split_revenue(args.gross, args.fee)
    if result.success:
        print(json.dumps(result.data, indent=2))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_simulate(args: argparse.Namespace) -> int:
    """Replay a scenario file and print one JSON result per operation."""
    service = _make_service(args.config)
    scenario = json.loads(args.scenario.read_text(encoding="utf-8"))

    for token in scenario.get("tokens", []):
        result = service.register_token(token)
        if not result.success:
            print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
            return 1

    failures = 0
    for step, operation in enumerate(scenario.get("operations", []), 1):
        params = dict(operation)
        name = params.pop("op", None)
        if name not in SIMULATION_OPS:
            print(f"Unknown operation at step {step}: {name}", file=sys.stderr)
            return 1
        try:
            result = getattr(service, name)(**params)
        except TypeError as e:
            print(f"Invalid arguments at step {step}: {e}", file=sys.stderr)
            return 1
        if not result.success:
            failures += 1
        print(json.dumps({"step": step, "op": name, **_result_json(result)}, default=str))

    if args.strict and failures:
        return 1
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run the parameter file invariant checks."""
    from custody.invariants import check
    return check(args.config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="custody",
        description="Custodial treasury ledger and disbursement limiter",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_DIR,
        help="Path to config directory (default: config/)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show treasury status")

    p_enc = sub.add_parser("encode-request-id", help="Pack a sequence and tenant id")
    p_enc.add_argument("--sequence", required=True, type=_parse_int, help="Sequence number")
    p_enc.add_argument("--tenant", required=True, type=_parse_int, help="Tenant id")

    p_dec = sub.add_parser("decode-request-id", help="Unpack a request id")
    p_dec.add_argument("--id", required=True, type=from_hex, help="Request id in hex")

    p_split = sub.add_parser("split", help="Split sale proceeds")
    p_split.add_argument("--gross", required=True, type=int, help="Gross proceeds")
    p_split.add_argument("--fee", type=int, default=None, help="Operator fee percent (omit for unset)")

    p_sim = sub.add_parser("simulate", help="Replay a scenario file")
    p_sim.add_argument("scenario", type=Path, help="Path to scenario JSON")
    p_sim.add_argument("--strict", action="store_true", help="Exit 1 if any operation failed")

    sub.add_parser("check-invariants", help="Validate treasury_params.json")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "encode-request-id": cmd_encode_request_id,
        "decode-request-id": cmd_decode_request_id,
        "split": cmd_split,
        "simulate": cmd_simulate,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
