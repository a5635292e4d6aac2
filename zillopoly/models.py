from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, JSON, String, CheckConstraint
from sqlalchemy.sql import func
from zillopoly.database import Base


class BatchRequest(Base):
    __tablename__ = "batch_requests"
    id = Column(Integer, primary_key=True)
    player = Column(String, index=True, nullable=False)
    start_game_id = Column(Integer, unique=True, nullable=False)
    end_game_id = Column(Integer, unique=True, nullable=False)
    timestamp = Column(Integer, nullable=False)  # unix seconds, carried on the event
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    __table_args__ = (CheckConstraint("end_game_id >= start_game_id", name="ck_batch_range"),)

    @property
    def size(self) -> int:
        return self.end_game_id - self.start_game_id + 1


class GameSlot(Base):
    __tablename__ = "game_slots"
    # Assigned by the ledger from the batch range, never autoincremented.
    game_id = Column(Integer, primary_key=True, autoincrement=False)
    batch_id = Column(Integer, ForeignKey("batch_requests.id"), index=True, nullable=False)
    player = Column(String, index=True, nullable=False)
    status = Column(String, index=True, nullable=False, default="pending")
    listing_id = Column(String(66), nullable=True)
    displayed_price = Column(BigInteger, nullable=True)
    actual_price = Column(BigInteger, nullable=True)  # revealed on settlement only
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class BatchEventOutbox(Base):
    __tablename__ = "batch_event_outbox"
    id = Column(Integer, primary_key=True)
    event_type = Column(String, nullable=False)
    batch_id = Column(Integer, ForeignKey("batch_requests.id"), index=True, nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(String, index=True, nullable=False, default="pending")
    attempt_count = Column(Integer, default=0)
    next_attempt_at = Column(DateTime(timezone=True), server_default=func.now())
    last_error = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
