import asyncio
from datetime import datetime, timedelta, timezone
from sqlalchemy import or_
from sqlalchemy.orm import Session

from zillopoly.config import OutboxStatus, settings
from zillopoly.contracts.contracts import BatchGamesCreated
from zillopoly.logging_config import get_logger
from zillopoly.orchestrator import FulfillmentOrchestrator
from zillopoly import models

logger = get_logger(__name__)


def _utcnow() -> datetime:
    # SQLite hands back naive UTC timestamps.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _due(record: models.BatchEventOutbox, now: datetime) -> bool:
    if record.next_attempt_at is None:
        return True
    return record.next_attempt_at.replace(tzinfo=None) <= now


async def process_outbox(db: Session, orchestrator: FulfillmentOrchestrator) -> int:
    """
    Deliver every due BatchGamesCreated notification to the orchestrator.

    A record is marked delivered only when its whole range was fulfilled.
    Otherwise it is rescheduled with exponential backoff; replaying a range
    is safe because already-initialized slots are left as they are.
    """
    pending = (
        db.query(models.BatchEventOutbox)
        .filter(models.BatchEventOutbox.status != OutboxStatus.DELIVERED.value)
        .order_by(models.BatchEventOutbox.id)
        .all()
    )
    delivered = 0
    for record in pending:
        if not _due(record, _utcnow()):
            continue
        logger.info(
            "Processing outbox record: record_id=%s event_type=%s attempt_count=%s",
            record.id,
            record.event_type,
            record.attempt_count,
        )
        record.attempt_count = (record.attempt_count or 0) + 1
        try:
            event = BatchGamesCreated(**record.payload)
            report = await orchestrator.fulfill(event)
            if report.failed:
                raise RuntimeError(f"{len(report.failed)} of {report.totalGames} slots left pending")
            record.status = OutboxStatus.DELIVERED.value
            record.last_error = None
            delivered += 1
        except Exception as exc:  # noqa: BLE001
            record.status = OutboxStatus.FAILED.value
            record.last_error = str(exc)
            record.next_attempt_at = _utcnow() + timedelta(seconds=2 ** record.attempt_count)
            logger.warning(
                "Outbox delivery failed: record_id=%s error=%s next_attempt_at=%s attempt_count=%s",
                record.id,
                exc,
                record.next_attempt_at,
                record.attempt_count,
            )
        finally:
            db.add(record)
            db.commit()
    return delivered


async def background_outbox_worker(db_factory, orchestrator: FulfillmentOrchestrator):
    while True:
        db = db_factory()
        try:
            await process_outbox(db, orchestrator)
        finally:
            db.close()
        await asyncio.sleep(settings.outbox_poll_seconds)
