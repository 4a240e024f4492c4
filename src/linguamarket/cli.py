"""linguamarket CLI — operator commands for the settlement engine.

Usage:
    linguamarket status
    linguamarket --config settlement.json status
    linguamarket quote-royalty --total 10000000 --fee-bp 500 --verifiers 2
    linguamarket verify-log --path data/events.jsonl
    linguamarket simulate --bounty 1000000 --royalty 10000000 --verifiers 2
"""

from __future__ import annotations

import argparse
import hashlib
import json
import sys
from pathlib import Path

from linguamarket.compensation.royalty import compute_shares
from linguamarket.compensation.transfers import InMemoryBalances
from linguamarket.config import SettlementConfig
from linguamarket.errors import SettlementError
from linguamarket.logconfig import setup_logging
from linguamarket.persistence.event_log import EventLog
from linguamarket.service import SettlementEngine


def _load_config(args: argparse.Namespace) -> SettlementConfig:
    if args.config is not None:
        return SettlementConfig.from_config_file(args.config)
    return SettlementConfig.from_env(env_file=args.env_file)


def _fingerprint(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def cmd_status(args: argparse.Namespace, config: SettlementConfig) -> int:
    print(json.dumps(config.to_dict(), indent=2))
    return 0


def cmd_quote_royalty(args: argparse.Namespace, config: SettlementConfig) -> int:
    """Show how a royalty total would be split."""
    fee_bp = config.platform_fee_rate_bp if args.fee_bp is None else args.fee_bp
    try:
        breakdown = compute_shares(args.total, fee_bp, config.translator_share_bp)
    except SettlementError as e:
        print(f"Failed: {e.code.value}: {e.message}", file=sys.stderr)
        return 1
    data = breakdown.to_dict()
    data["approving_verifiers"] = args.verifiers
    data["per_verifier_share"] = breakdown.per_verifier_share(args.verifiers)
    print(json.dumps(data, indent=2))
    return 0


def cmd_verify_log(args: argparse.Namespace, config: SettlementConfig) -> int:
    """Load an event log and check every record's hash."""
    if not args.path.exists():
        print(f"Failed: no such event log: {args.path}", file=sys.stderr)
        return 1
    try:
        log = EventLog(storage_path=args.path)
    except (ValueError, KeyError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps({"events": log.count, "by_kind": log.counts_by_kind()}, indent=2))
    return 0


def cmd_simulate(args: argparse.Namespace, config: SettlementConfig) -> int:
    """Run one request through approval and royalty payout in memory."""
    balances = InMemoryBalances()
    event_log = EventLog(storage_path=args.event_log) if args.event_log else EventLog()
    engine = SettlementEngine(balances, config, event_log=event_log)

    creator, translator = "creator", "translator"
    verifiers = [f"verifier-{i + 1}" for i in range(args.verifiers)]
    balances.deposit(creator, args.bounty)
    balances.deposit("licensee", args.royalty)

    steps = [
        ("create_request", lambda: engine.create_request(
            creator, _fingerprint("source text"), args.source, args.target,
            args.bounty, args.verifiers,
        )),
        ("submit_translation", lambda: engine.submit_translation(
            0, translator, _fingerprint("translated text"),
        )),
        ("start_verification", lambda: engine.start_verification(0)),
    ]
    steps += [
        (f"cast_vote:{v}", lambda v=v: engine.cast_vote(0, v, approved=True))
        for v in verifiers
    ]
    steps.append(("initiate_distribution", lambda: engine.initiate_distribution(
        0, args.royalty, caller=config.controller_id, source_account="licensee",
    )))
    steps += [
        (f"claim_share:{who}", lambda who=who: engine.claim_share(0, who))
        for who in [translator] + verifiers
    ]
    steps.append(("sweep_platform_fee", lambda: engine.sweep_platform_fee(
        0, config.controller_id,
    )))

    for name, step in steps:
        result = step()
        if not result.success:
            print(f"Failed at {name}: {result.error.value}: {result.message}", file=sys.stderr)
            return 1

    print(json.dumps({
        "balances": balances.balances(),
        "status": engine.status(),
    }, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linguamarket",
        description="Translation marketplace settlement engine CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a JSON settlement config (default: environment)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Optional .env file read before LINGUAMARKET_* variables",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show effective configuration")

    # quote-royalty
    p_quote = sub.add_parser("quote-royalty", help="Split a royalty total")
    p_quote.add_argument("--total", type=int, required=True, help="Royalty total (smallest unit)")
    p_quote.add_argument("--fee-bp", type=int, help="Platform fee rate in basis points")
    p_quote.add_argument("--verifiers", type=int, default=1, help="Approving verifiers (default: 1)")

    # verify-log
    p_verify = sub.add_parser("verify-log", help="Integrity-check an event log")
    p_verify.add_argument("--path", type=Path, required=True, help="JSONL event log")

    # simulate
    p_sim = sub.add_parser("simulate", help="Run a full settlement scenario in memory")
    p_sim.add_argument("--bounty", type=int, default=1_000_000, help="Request bounty")
    p_sim.add_argument("--royalty", type=int, default=10_000_000, help="Royalty total")
    p_sim.add_argument("--verifiers", type=int, default=2, help="Verifier panel size")
    p_sim.add_argument("--source", default="en", help="Source language (default: en)")
    p_sim.add_argument("--target", default="es", help="Target language (default: es)")
    p_sim.add_argument("--event-log", type=Path, help="Write the audit trail to this JSONL file")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "quote-royalty": cmd_quote_royalty,
        "verify-log": cmd_verify_log,
        "simulate": cmd_simulate,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        config = _load_config(args)
        setup_logging(args.log_level or config.log_level)
        return handler(args, config)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
