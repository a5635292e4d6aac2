from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

from zillopoly.config import OutcomeStatus


class BatchCreateRequest(BaseModel):
    player: str
    size: int


class BatchResponse(BaseModel):
    batchId: int
    player: str
    startGameId: int
    endGameId: int
    timestamp: int


class InitializeSlotRequest(BaseModel):
    listingId: str
    displayedPrice: int


class SlotView(BaseModel):
    gameId: int
    player: str
    status: str
    listingId: Optional[str] = None
    displayedPrice: Optional[int] = None
    actualPrice: Optional[int] = None


class FulfillRangeRequest(BaseModel):
    startGameId: int
    endGameId: int
    player: Optional[str] = None


class SlotOutcome(BaseModel):
    gameId: int
    status: OutcomeStatus
    reason: Optional[str] = None
    listingId: Optional[str] = None
    location: Optional[str] = None
    displayedPrice: Optional[int] = None


class FulfillmentReport(BaseModel):
    player: Optional[str] = None
    startGameId: int
    endGameId: int
    totalGames: int
    results: list[SlotOutcome] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def failed(self) -> list[SlotOutcome]:
        return [r for r in self.results if r.status == OutcomeStatus.FAILED]
