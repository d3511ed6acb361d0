"""Operator command line for the monthly draw.

Usage::

    python scripts/draw_control.py simulate --preset typical
    python scripts/draw_control.py run --min 18 --max 40 --operator 1
    python scripts/draw_control.py publish --operator 1
    python scripts/draw_control.py reset --operator 1
    python scripts/draw_control.py export --cycle "October 2026" --out winners.csv
    python scripts/draw_control.py report --cycle "October 2026"
    python scripts/draw_control.py pay 12 13 14 --operator 1 --reference BATCH-2026-10
    python scripts/draw_control.py jackpot
    python scripts/draw_control.py audit --out winners-audit.csv

Pass ``--remote-accounts`` to read subscriber standing from the account
service configured by ``ACCOUNTS_API_BASE_URL`` and ``ACCOUNTS_API_KEY``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from golfdraw.accounts import AccountsClient
from golfdraw.db.engine import get_sessionmaker, make_engine
from golfdraw.draw import DrawEngine, DrawEngineError, NotFoundError
from golfdraw.models import DrawCycle
from golfdraw.workflows import (
    export_winners,
    jackpot_history,
    mark_winners_paid,
    publish_draw,
    reset_draw,
    run_draw,
    simulate_draw,
    winner_audit_report,
)

logger = logging.getLogger("golfdraw.control")

EXIT_RETRYABLE = 75


def _cycle(session, label: Optional[str]) -> DrawCycle:
    cycle = DrawCycle.get_by_label(session, label) if label else DrawCycle.current(session)
    if cycle is None:
        raise NotFoundError(f"No draw cycle {label!r}" if label else "No unpublished draw cycle")
    return cycle


def _add_range_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--min", dest="range_min", type=int)
    parser.add_argument("--max", dest="range_max", type=int)
    parser.add_argument("--preset", choices=["full", "common", "typical", "conservative", "narrow"])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run and settle the monthly prize draw.")
    parser.add_argument("--db-url", help="database URL; defaults to DB_URL")
    parser.add_argument("--remote-accounts", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    _add_range_args(sub.add_parser("simulate", help="preview without saving"))
    run = sub.add_parser("run", help="compute and store the draw")
    _add_range_args(run)
    run.add_argument("--cycle")
    for name in ("publish", "reset"):
        p = sub.add_parser(name)
        p.add_argument("--cycle")
    for p in (run, sub.choices["publish"], sub.choices["reset"]):
        p.add_argument("--operator", type=int)
        p.add_argument(
            "--expected-version",
            type=int,
            help="reject the action if the draw changed since this version was read",
        )

    export = sub.add_parser("export", help="write the winner ledger as CSV")
    export.add_argument("--cycle")
    export.add_argument("--out", help="output file; stdout when omitted")
    report = sub.add_parser("report")
    report.add_argument("--cycle")

    pay = sub.add_parser("pay", help="record one payout run for several winning entries")
    pay.add_argument("entry_ids", type=int, nargs="+")
    pay.add_argument("--operator", type=int, required=True)
    pay.add_argument("--reference")
    jackpot = sub.add_parser("jackpot", help="show jackpot rollover history")
    jackpot.add_argument("--limit", type=int)
    audit = sub.add_parser("audit", help="write winners of every draw as CSV")
    audit.add_argument("--participant", type=int)
    audit.add_argument("--out", help="output file; stdout when omitted")
    return parser


def dispatch(session, args) -> object:
    directory = AccountsClient() if args.remote_accounts else None
    if args.command == "simulate":
        preview = simulate_draw(session, args.range_min, args.range_max, args.preset, directory)
        return preview.to_json()
    if args.command == "run":
        cycle = _cycle(session, args.cycle) if args.cycle else None
        outcome = run_draw(
            session,
            cycle,
            args.range_min,
            args.range_max,
            args.preset,
            args.operator,
            directory,
            expected_version=args.expected_version,
        )
        return outcome.cycle.to_json()
    if args.command == "publish":
        outcome = publish_draw(
            session,
            _cycle(session, args.cycle),
            args.operator,
            expected_version=args.expected_version,
        )
        return {"published": outcome.published.label, "next_cycle": outcome.next_cycle.label}
    if args.command == "reset":
        cycle = reset_draw(
            session,
            _cycle(session, args.cycle),
            args.operator,
            expected_version=args.expected_version,
        )
        return cycle.to_json()
    if args.command == "export":
        cycle = _cycle(session, args.cycle)
        if args.out:
            with open(args.out, "w", newline="", encoding="utf-8") as fp:
                rows = export_winners(session, cycle, fp)
        else:
            rows = export_winners(session, cycle, sys.stdout)
        return {"cycle": cycle.label, "rows": len(rows)}
    if args.command == "pay":
        result = mark_winners_paid(session, args.entry_ids, args.operator, args.reference)
        return {
            "total": result.total,
            "settled": [e.id for e in result.settled],
            "settled_net_cents": result.settled_net_cents,
            "failed": {str(k): v for k, v in result.failed.items()},
        }
    if args.command == "jackpot":
        return jackpot_history(session, args.limit).to_json()
    if args.command == "audit":
        if args.out:
            with open(args.out, "w", newline="", encoding="utf-8") as fp:
                rows = winner_audit_report(session, args.participant, fp)
        else:
            rows = winner_audit_report(session, args.participant, sys.stdout)
        return {"rows": len(rows)}
    return DrawEngine(session).cycle_report(_cycle(session, args.cycle).id)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    engine = make_engine(args.db_url)
    Session = get_sessionmaker(engine)
    try:
        with Session.begin() as session:
            result = dispatch(session, args)
    except DrawEngineError as exc:
        logger.error(f"{args.command} failed ({exc.category.value}): {exc}")
        return EXIT_RETRYABLE if exc.retryable else 1
    finally:
        engine.dispose()

    if args.command not in ("export", "audit") or args.out:
        print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
