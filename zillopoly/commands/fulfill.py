import argparse
import asyncio
import json
from sqlalchemy.orm import Session
from zillopoly.contracts.contracts import BatchGamesCreated
from zillopoly.database import SessionLocal
from zillopoly.ledger import GameLedger
from zillopoly.logging_config import configure_logging
from zillopoly.orchestrator import build_orchestrator
from zillopoly.schemas.app_schemas import FulfillmentReport


def _pending_range(start: int | None, end: int | None) -> tuple[int, int] | None:
    db: Session = SessionLocal()
    try:
        pending = GameLedger(db).pending_game_ids(start, end)
    finally:
        db.close()
    if not pending:
        return None
    return pending[0], pending[-1]


async def fulfill(start: int | None = None, end: int | None = None, remote: bool = False) -> FulfillmentReport | None:
    """
    Replay fulfillment over [start, end]. Without bounds, covers the span of
    every slot that is still pending.
    """
    if start is None or end is None:
        span = _pending_range(start, end)
        if span is None:
            return None
        start, end = span
    orchestrator = build_orchestrator(SessionLocal, remote=remote)
    try:
        return await orchestrator.fulfill(BatchGamesCreated(player="", startGameId=start, endGameId=end))
    finally:
        await orchestrator.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Fulfill pending game slots.")
    parser.add_argument("--start", type=int, default=None)
    parser.add_argument("--end", type=int, default=None)
    parser.add_argument("--remote", action="store_true", help="submit through the ledger HTTP API")
    args = parser.parse_args(argv)
    configure_logging()

    report = asyncio.run(fulfill(args.start, args.end, remote=args.remote))
    if report is None:
        print(json.dumps({"status": "nothing pending"}))
        return 0
    print(report.model_dump_json(indent=2))
    return 1 if report.failed else 0

if __name__ == "__main__":
    raise SystemExit(main())
