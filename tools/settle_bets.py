#!/usr/bin/env python3
"""Run settlement against MongoDB without the HTTP server.

Meant to be invoked by cron or any external scheduler.

Usage:
    python tools/settle_bets.py                 # one pass over all pending bets
    python tools/settle_bets.py --bet-id <id>   # settle a single bet
    python tools/settle_bets.py --details       # include per-bet details in the output
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure backend is on sys.path so `app.*` imports work
_backend = Path(__file__).resolve().parent.parent / "backend"
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

import app.database as _db
from app.middleware.logging import setup_logging
from app.utils import parse_utc
from app.workers.settlement_runner import SettlementError, run_settlement_pass, settle_single_bet

log = logging.getLogger("betledger.settle_bets")


async def run(*, bet_id: str | None = None, details: bool = False, now: str | None = None) -> int:
    as_of = parse_utc(now) if now else None
    await _db.connect_db()
    try:
        if bet_id:
            try:
                bet, message = await settle_single_bet(bet_id, now=as_of)
            except SettlementError as exc:
                log.error("%s: %s", bet_id, exc)
                return 1
            print(json.dumps({"bet_id": bet.id, "result": bet.result.value, "message": message}))
            return 0

        summary = await run_settlement_pass(now=as_of)
        payload = summary.model_dump(exclude=None if details else {"details"})
        print(json.dumps(payload, indent=2))
        return 1 if summary.errors else 0
    finally:
        await _db.close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Settle pending bets from provider scores and stats")
    parser.add_argument("--bet-id", type=str, default=None, help="Settle only this bet")
    parser.add_argument("--details", action="store_true", help="Print per-bet details")
    parser.add_argument("--now", type=str, default=None, help="Settle as of this ISO timestamp (UTC)")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run(bet_id=args.bet_id, details=args.details, now=args.now)))


if __name__ == "__main__":
    main()
