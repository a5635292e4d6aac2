"""
Game ledger: the only component allowed to create game slots or change
their status.

Slots move strictly pending -> initialized -> played -> settled. Every
transition is a conditional UPDATE on the slot's current status, so a
replayed or concurrent call can never apply twice.
"""
import time
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from zillopoly.config import BATCH_GAMES_CREATED, SlotStatus, settings, slot_transitions
from zillopoly.contracts.contracts import BatchGamesCreated, validate_listing_id
from zillopoly.errors import (
    InvalidListingError,
    InvalidSizeError,
    InvalidStateError,
    SlotNotFoundError,
    UnauthorizedError,
)
from zillopoly.logging_config import get_logger
from zillopoly import models

logger = get_logger(__name__)

FIRST_GAME_ID = 1


class GameLedger:
    def __init__(self, db: Session, oracle_address: str | None = None):
        self.db = db
        self.oracle_address = oracle_address if oracle_address is not None else settings.oracle_address

    def _next_game_id(self) -> int:
        last = self.db.query(func.max(models.BatchRequest.end_game_id)).scalar()
        return FIRST_GAME_ID if last is None else last + 1

    def request_batch(self, player: str, size: int) -> models.BatchRequest:
        """
        Allocate `size` contiguous game ids for `player`, create them as
        pending slots and record a BatchGamesCreated event in the outbox.
        """
        if size < 1:
            raise InvalidSizeError(size)
        start = self._next_game_id()
        batch = models.BatchRequest(
            player=player,
            start_game_id=start,
            end_game_id=start + size - 1,
            timestamp=int(time.time()),
        )
        self.db.add(batch)
        self.db.flush()
        self.db.add_all(
            models.GameSlot(game_id=game_id, batch_id=batch.id, player=player, status=SlotStatus.PENDING.value)
            for game_id in range(batch.start_game_id, batch.end_game_id + 1)
        )
        event = BatchGamesCreated.from_batch(batch)
        self.db.add(
            models.BatchEventOutbox(
                event_type=BATCH_GAMES_CREATED,
                batch_id=batch.id,
                payload=event.model_dump(),
                status="pending",
            )
        )
        self.db.commit()
        self.db.refresh(batch)
        logger.info(
            "Created batch batch_id=%s player=%s startGameId=%s endGameId=%s",
            batch.id,
            player,
            batch.start_game_id,
            batch.end_game_id,
        )
        return batch

    def _require_oracle(self, caller: Optional[str]):
        if not caller or caller.lower() != self.oracle_address.lower():
            raise UnauthorizedError(caller)

    def get_slot(self, game_id: int) -> models.GameSlot:
        slot = self.db.get(models.GameSlot, game_id)
        if slot is None:
            raise SlotNotFoundError(game_id)
        return slot

    def _transition(self, game_id: int, source: SlotStatus, values: dict) -> models.GameSlot:
        target = slot_transitions[source]
        result = self.db.execute(
            update(models.GameSlot)
            .where(models.GameSlot.game_id == game_id)
            .where(models.GameSlot.status == source.value)
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            slot = self.get_slot(game_id)
            raise InvalidStateError(game_id, slot.status, source.value)
        self.db.commit()
        slot = self.get_slot(game_id)
        logger.info("Game slot transition game_id=%s %s->%s", game_id, source.value, target.value)
        return slot

    def initialize_slot(self, caller: Optional[str], game_id: int, listing_id: str, displayed_price: int) -> models.GameSlot:
        """
        Oracle-only. Store the listing and displayed price on a pending slot.
        Any slot that is no longer pending raises InvalidStateError and is
        left untouched.
        """
        self._require_oracle(caller)
        validate_listing_id(listing_id)
        if displayed_price <= 0:
            raise InvalidListingError(f"displayed price must be positive, got {displayed_price}")
        return self._transition(
            game_id,
            SlotStatus.PENDING,
            {"listing_id": listing_id, "displayed_price": displayed_price},
        )

    def mark_played(self, game_id: int) -> models.GameSlot:
        return self._transition(game_id, SlotStatus.INITIALIZED, {})

    def settle(self, game_id: int, actual_price: int) -> models.GameSlot:
        return self._transition(game_id, SlotStatus.PLAYED, {"actual_price": actual_price})

    def slots_in_range(self, start_game_id: int, end_game_id: int) -> list[models.GameSlot]:
        return (
            self.db.query(models.GameSlot)
            .filter(models.GameSlot.game_id >= start_game_id)
            .filter(models.GameSlot.game_id <= end_game_id)
            .order_by(models.GameSlot.game_id)
            .all()
        )

    def pending_game_ids(self, start_game_id: int | None = None, end_game_id: int | None = None) -> list[int]:
        query = self.db.query(models.GameSlot.game_id).filter(models.GameSlot.status == SlotStatus.PENDING.value)
        if start_game_id is not None:
            query = query.filter(models.GameSlot.game_id >= start_game_id)
        if end_game_id is not None:
            query = query.filter(models.GameSlot.game_id <= end_game_id)
        return [row.game_id for row in query.order_by(models.GameSlot.game_id)]

    def player_history(self, player: str) -> list[models.GameSlot]:
        return (
            self.db.query(models.GameSlot)
            .filter(models.GameSlot.player == player)
            .order_by(models.GameSlot.game_id)
            .all()
        )

    def total_games(self) -> int:
        return self.db.query(func.count(models.GameSlot.game_id)).scalar() or 0


def player_view(slot: models.GameSlot) -> dict:
    """Serialize a slot as players see it: the actual price stays hidden until settlement."""
    return {
        "gameId": slot.game_id,
        "player": slot.player,
        "status": slot.status,
        "listingId": slot.listing_id,
        "displayedPrice": slot.displayed_price,
        "actualPrice": slot.actual_price if slot.status == SlotStatus.SETTLED.value else None,
    }
